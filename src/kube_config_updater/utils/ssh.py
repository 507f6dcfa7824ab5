# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import paramiko

from kube_config_updater.config.models import HostSpec
from kube_config_updater.utils.ssh_runner import SSHRunner

log = logging.getLogger("kube_config_updater")


class AuthMethod(str, Enum):
    KEY = "key"
    PASSWORD = "password"
    AGENT = "agent"


def select_auth(host: HostSpec, password: Optional[str]) -> AuthMethod:
    """identity file -> password -> SSH agent; first match wins."""
    if host.identity_file:
        return AuthMethod.KEY
    if password:
        return AuthMethod.PASSWORD
    return AuthMethod.AGENT


def load_private_key(path: str) -> paramiko.PKey:
    last_exc: Optional[Exception] = None
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(path)
        except paramiko.SSHException as exc:
            last_exc = exc
            continue
        except OSError as exc:
            raise paramiko.AuthenticationException(f"Cannot read private key {path}: {exc}") from exc
    raise paramiko.AuthenticationException(f"Unsupported private key format for {path}: {last_exc}")


def open_ssh(
    host: HostSpec,
    *,
    password: Optional[str] = None,
    connect_timeout: float = 10.0,
    op_timeout: float = 30.0,
) -> SSHRunner:
    """
    Connect with exactly one authentication method. Key and password auth
    disable the agent and ~/.ssh key discovery so a rejected credential is
    reported instead of silently retried another way.
    """
    method = select_auth(host, password)
    pkey = load_private_key(str(host.identity_file)) if method is AuthMethod.KEY else None

    client = paramiko.SSHClient()
    client.load_system_host_keys()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    kwargs = dict(
        hostname=host.address,
        port=host.port,
        username=host.user,
        timeout=connect_timeout,
        banner_timeout=op_timeout,
        auth_timeout=op_timeout,
        look_for_keys=False,
    )
    if method is AuthMethod.KEY:
        log.info("[%s] Authenticating with private key: %s", host.name, host.identity_file)
        kwargs.update(pkey=pkey, allow_agent=False)
    elif method is AuthMethod.PASSWORD:
        log.info("[%s] Authenticating with password", host.name)
        kwargs.update(password=password, allow_agent=False)
    else:
        log.info("[%s] Authenticating with SSH agent", host.name)
        kwargs.update(allow_agent=True)

    try:
        client.connect(**kwargs)
    except Exception:
        client.close()
        raise

    return SSHRunner(client)
