# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/credentials/resolver.py

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from ..errors import CredentialStoreError
from .backend import (
    DEFAULT_ACCOUNT,
    SERVICE,
    CredentialResult,
    Found,
    KeyringBackend,
    NotFound,
    SystemKeyring,
    Unavailable,
)

log = logging.getLogger("kube_config_updater")


class CredentialResolver:
    """
    Per-host password lookup with a shared default account.

    resolve() order:
      1. secret stored under the host name
      2. secret stored under DEFAULT_ACCOUNT
      3. NotFound  -> caller uses key/agent authentication

    A store that cannot be reached at either step yields Unavailable, which
    is not the same as NotFound: the operator has to unlock or start the
    secret service before the host can be processed.
    """

    def __init__(self, backend: Optional[KeyringBackend] = None, service: str = SERVICE):
        self.backend = backend or SystemKeyring()
        self.service = service

    def resolve(self, host_name: str) -> CredentialResult:
        result = self.backend.get(self.service, host_name)
        if not isinstance(result, NotFound):
            return result

        fallback = self.backend.get(self.service, DEFAULT_ACCOUNT)
        if isinstance(fallback, Found):
            log.debug("[%s] Using default credential", host_name)
        return fallback

    def set(self, account: str, secret: str) -> None:
        if not secret:
            raise CredentialStoreError("Refusing to store an empty password")
        self.backend.set(self.service, account, secret)
        log.info("Stored credential for '%s'", account)

    def delete(self, account: str) -> None:
        self.backend.delete(self.service, account)
        log.info("Removed credential for '%s'", account)

    def list(self, host_names: Iterable[str]) -> Dict[str, bool]:
        """
        Presence of a dedicated entry for each host, plus DEFAULT_ACCOUNT last.
        Values are never returned.
        """
        presence: Dict[str, bool] = {}
        for account in [*host_names, DEFAULT_ACCOUNT]:
            if account in presence:
                continue
            result = self.backend.get(self.service, account)
            if isinstance(result, Unavailable):
                raise CredentialStoreError(result.reason)
            presence[account] = isinstance(result, Found)
        return presence
