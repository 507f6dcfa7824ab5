# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/credentials/backend.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from pydantic import SecretStr

from ..errors import CredentialStoreError

SERVICE = "kube_config_updater"
DEFAULT_ACCOUNT = "_default"


# ---------------------------------------------------------------------
# Lookup results
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Found:
    """A stored secret. repr/str/asdict only ever show a mask."""
    secret: SecretStr

    def reveal(self) -> str:
        return self.secret.get_secret_value()

    def __repr__(self) -> str:
        return "Found(<redacted>)"


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Unavailable:
    reason: str


CredentialResult = Union[Found, NotFound, Unavailable]


class KeyringBackend(Protocol):
    """
    Capability interface over a secret store, keyed by service + account.
    get() never raises; set()/delete() raise CredentialStoreError.
    """

    def get(self, service: str, account: str) -> CredentialResult: ...

    def set(self, service: str, account: str, secret: str) -> None: ...

    def delete(self, service: str, account: str) -> None: ...


class SystemKeyring:
    """
    Platform secret service through the `keyring` library
    (Secret Service on Linux, Keychain on macOS, Credential Locker on Windows).
    """

    def get(self, service: str, account: str) -> CredentialResult:
        try:
            secret = keyring.get_password(service, account)
        except KeyringError as exc:
            return Unavailable(_describe(exc))
        except Exception as exc:
            # backends can leak D-Bus/jeepney errors unwrapped
            return Unavailable(_describe(exc))
        if secret is None:
            return NotFound()
        return Found(SecretStr(secret))

    def set(self, service: str, account: str, secret: str) -> None:
        try:
            keyring.set_password(service, account, secret)
        except KeyringError as exc:
            raise CredentialStoreError(_describe(exc)) from exc

    def delete(self, service: str, account: str) -> None:
        try:
            keyring.delete_password(service, account)
        except PasswordDeleteError:
            # nothing stored under this account
            return
        except KeyringError as exc:
            raise CredentialStoreError(_describe(exc)) from exc


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def is_store_unavailable_error(err: str) -> bool:
    """
    True when a backend error means the secret service itself is missing or
    locked, rather than a per-entry problem.
    """
    lower = err.lower()
    return any(
        marker in lower
        for marker in (
            "platform secure storage",
            "dbus",
            "org.freedesktop.secrets",
            "no storage access",
            "secret service",
            "no recommended backend",
            "nokeyringerror",
            "keyringlocked",
            "locked",
        )
    )
