# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/fetch/remote.py

from __future__ import annotations

import hashlib
import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import paramiko

from ..config.models import HostSpec
from ..utils import ssh

log = logging.getLogger("kube_config_updater")

# sudo -S messages meaning the password itself was refused
_SUDO_REJECTED = (
    "incorrect password",
    "sorry, try again",
    "authentication failure",
    "is not in the sudoers file",
)


@dataclass(frozen=True)
class FetchedDocument:
    host: str
    raw: bytes
    sha256: str

    @classmethod
    def from_bytes(cls, host: str, raw: bytes) -> "FetchedDocument":
        return cls(host=host, raw=raw, sha256=hashlib.sha256(raw).hexdigest())


class FetchErrorKind(str, Enum):
    AUTH = "auth"
    TRANSPORT = "transport"
    REMOTE_COMMAND = "remote-command"


@dataclass(frozen=True)
class FetchError:
    host: str
    kind: FetchErrorKind
    cause: str

    @property
    def auth_rejected(self) -> bool:
        return self.kind is FetchErrorKind.AUTH

    def __str__(self) -> str:
        return f"[{self.host}] {self.cause}"


FetchResult = Union[FetchedDocument, FetchError]


def _strip_sudo_prompt(stderr: str) -> str:
    lines = [
        ln for ln in stderr.splitlines()
        if ln.strip() and not ln.lstrip().startswith("[sudo] password for")
    ]
    return "\n".join(lines).strip()


class RemoteFetcher:
    """
    Reads the kubeconfig file off a host over SSH.

    Authentication is chosen once (key -> password -> agent). With a
    password the file is read through `sudo -S`, the same password being
    fed to sudo on stdin. Only a non-zero exit status is a remote failure;
    stderr output alone is not.
    """

    def __init__(self, connect_timeout: float = 10.0, cmd_timeout: float = 30.0):
        self.connect_timeout = connect_timeout
        self.cmd_timeout = cmd_timeout

    def fetch(self, host: HostSpec, password: Optional[str] = None) -> FetchResult:
        log.info("[%s] Attempting to connect to %s", host.name, host.address)
        use_sudo = ssh.select_auth(host, password) is ssh.AuthMethod.PASSWORD
        try:
            runner = ssh.open_ssh(
                host,
                password=password,
                connect_timeout=self.connect_timeout,
                op_timeout=self.cmd_timeout,
            )
        except paramiko.AuthenticationException as exc:
            return FetchError(host.name, FetchErrorKind.AUTH, f"Authentication failed: {exc}")
        except paramiko.SSHException as exc:
            if "no authentication methods" in str(exc).lower():
                return FetchError(
                    host.name,
                    FetchErrorKind.AUTH,
                    f"No password or identity file configured and SSH agent authentication failed: {exc}",
                )
            return FetchError(host.name, FetchErrorKind.TRANSPORT, f"SSH error: {exc}")
        except (socket.timeout, OSError) as exc:
            return FetchError(host.name, FetchErrorKind.TRANSPORT, f"Connection to {host.address}:{host.port} failed: {exc}")

        log.info("[%s] Authentication successful", host.name)

        try:
            with runner:
                rc, out, err = runner.read_file(
                    host.remote_path,
                    sudo_password=password if use_sudo else None,
                    timeout=self.cmd_timeout,
                )
        except (paramiko.SSHException, socket.timeout, OSError) as exc:
            return FetchError(host.name, FetchErrorKind.TRANSPORT, f"Reading {host.remote_path} failed: {exc}")

        if rc != 0:
            detail = _strip_sudo_prompt(err)
            kind = (
                FetchErrorKind.AUTH
                if any(m in detail.lower() for m in _SUDO_REJECTED)
                else FetchErrorKind.REMOTE_COMMAND
            )
            return FetchError(
                host.name,
                kind,
                f"Remote command failed with exit code {rc}. Stderr: {detail}",
            )

        log.debug("[%s] Successfully read %d bytes from stdout.", host.name, len(out))
        return FetchedDocument.from_bytes(host.name, out)
