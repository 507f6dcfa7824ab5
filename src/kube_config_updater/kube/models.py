# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/kube/models.py

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

# kubeconfig keys
CLUSTERS = "clusters"
CONTEXTS = "contexts"
USERS = "users"
ENTRY_KINDS = (CLUSTERS, CONTEXTS, USERS)

CURRENT_CONTEXT = "current-context"
PREFERENCES = "preferences"

# per-host metadata, kept in the cached document's preferences only
META_EXPIRES_AT = "certificate-expires-at"
META_SOURCE_HASH = "source-file-sha256"
META_LAST_UPDATED = "script-last-updated"

API_SERVER_PORT = 6443


def empty_kubeconfig() -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Config",
        CURRENT_CONTEXT: "",
        CLUSTERS: [],
        CONTEXTS: [],
        USERS: [],
    }


# ---------------------------------------------------------------------
# Certificate status of a cached document
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Valid:
    expires_at: datetime


@dataclass(frozen=True)
class Expired:
    expires_at: datetime


@dataclass(frozen=True)
class Unknown:
    reason: str = "unknown"


CertStatus = Union[Valid, Expired, Unknown]


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class NormalizedDocument:
    """
    A fetched kubeconfig reduced to one cluster/context/user triple, all
    named after the host's context name, with host-local metadata in
    `preferences`.
    """
    host: str
    name: str
    document: Dict[str, Any]
    expires_at: Optional[datetime] = None
    source_hash: str = ""

    def merge_entries(self) -> Dict[str, List[Dict[str, Any]]]:
        """Only the entry lists; never preferences or current-context."""
        return {kind: copy.deepcopy(self.document.get(kind) or []) for kind in ENTRY_KINDS}


@dataclass
class MergeReport:
    host: str
    added: Dict[str, List[str]] = field(default_factory=dict)
    replaced: Dict[str, List[str]] = field(default_factory=dict)
    written: bool = False

    def summary(self) -> str:
        parts = []
        for kind in ENTRY_KINDS:
            a = len(self.added.get(kind, []))
            r = len(self.replaced.get(kind, []))
            parts.append(f"{kind}: +{a} ~{r}")
        return ", ".join(parts)
