# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/kube/normalize.py

from __future__ import annotations

import copy
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..config.models import HostSpec
from ..errors import KubeconfigError
from ..utils.files import atomic_write, dump_yaml, load_yaml
from .expiry import cert_expiry_from_user
from .models import (
    API_SERVER_PORT,
    CLUSTERS,
    CONTEXTS,
    CURRENT_CONTEXT,
    META_EXPIRES_AT,
    META_LAST_UPDATED,
    META_SOURCE_HASH,
    PREFERENCES,
    USERS,
    NormalizedDocument,
)

log = logging.getLogger("kube_config_updater")


def api_server_url(target_ip: str) -> str:
    host = f"[{target_ip}]" if ":" in target_ip and not target_ip.startswith("[") else target_ip
    return f"https://{host}:{API_SERVER_PORT}"


def _entries(doc: Dict[str, Any], kind: str) -> List[Dict[str, Any]]:
    items = doc.get(kind) or []
    if not isinstance(items, list):
        raise KubeconfigError(f"'{kind}' is not a list")
    return [e for e in items if isinstance(e, dict)]


def _pick(entries: List[Dict[str, Any]], name: Optional[str]) -> Optional[Dict[str, Any]]:
    for e in entries:
        if e.get("name") == name:
            return e
    return entries[0] if entries else None


def parse_kubeconfig(raw: bytes | str) -> Dict[str, Any]:
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    try:
        doc = load_yaml(text)
    except yaml.YAMLError as exc:
        raise KubeconfigError(f"Could not parse kubeconfig: {exc}") from exc
    if not isinstance(doc, dict):
        raise KubeconfigError("Kubeconfig is not a mapping")
    return doc


def normalize_kubeconfig(
    raw: bytes,
    host: HostSpec,
    *,
    source_hash: str,
    now: datetime,
) -> NormalizedDocument:
    """
    Rewrite a freshly fetched kubeconfig for merging.

    The active context (current-context, else the first one), its cluster
    and its user are kept and all renamed to host.context_name, so configs
    from hosts that all call themselves "default" no longer collide. The
    cluster endpoint becomes https://<target_ip>:6443. Metadata goes into
    `preferences`, which the merge never copies.
    """
    try:
        doc = parse_kubeconfig(raw)
    except UnicodeDecodeError as exc:
        raise KubeconfigError(f"Kubeconfig is not UTF-8: {exc}") from exc

    clusters = _entries(doc, CLUSTERS)
    contexts = _entries(doc, CONTEXTS)
    users = _entries(doc, USERS)
    if not clusters:
        raise KubeconfigError("No clusters found in the kubeconfig file.")
    if not contexts:
        raise KubeconfigError("No contexts found in the kubeconfig file.")

    context = _pick(contexts, doc.get(CURRENT_CONTEXT))
    ctx_body = context.get("context") or {}
    cluster = _pick(clusters, ctx_body.get("cluster"))
    user = _pick(users, ctx_body.get("user"))

    dropped = len(clusters) + len(contexts) + len(users) - (3 if user else 2)
    if dropped:
        log.warning(
            "[%s] Kubeconfig has %d entries outside context '%s'; they are not merged",
            host.name,
            dropped,
            context.get("name"),
        )

    name = host.context_name
    server_url = api_server_url(host.target_ip)

    new_cluster = copy.deepcopy(cluster)
    body = new_cluster.setdefault("cluster", {})
    log.info(
        "[%s] Updating cluster '%s' server from '%s' to '%s'",
        host.name, new_cluster.get("name"), body.get("server"), server_url,
    )
    new_cluster["name"] = name
    body["server"] = server_url

    new_context = copy.deepcopy(context)
    log.info("[%s] Updating context name from '%s' to '%s'", host.name, context.get("name"), name)
    new_context["name"] = name
    new_ctx_body = new_context.setdefault("context", {})
    new_ctx_body["cluster"] = name
    new_ctx_body["user"] = name

    new_users: List[Dict[str, Any]] = []
    expires_at = None
    if user is not None:
        new_user = copy.deepcopy(user)
        new_user["name"] = name
        new_users.append(new_user)
        expires_at = cert_expiry_from_user(new_user)
    else:
        log.warning("[%s] Kubeconfig has no user entry", host.name)

    out = copy.deepcopy(doc)
    out[CLUSTERS] = [new_cluster]
    out[CONTEXTS] = [new_context]
    out[USERS] = new_users
    out[CURRENT_CONTEXT] = name

    prefs = out.get(PREFERENCES)
    prefs = dict(prefs) if isinstance(prefs, dict) else {}
    prefs[META_SOURCE_HASH] = source_hash
    prefs[META_LAST_UPDATED] = now.isoformat()
    if expires_at is not None:
        log.info("[%s] Certificate for user '%s' expires on: %s", host.name, name, expires_at)
        prefs[META_EXPIRES_AT] = expires_at.isoformat()
    else:
        prefs.pop(META_EXPIRES_AT, None)
        log.warning("[%s] Could not determine certificate expiry; host will be fetched every run", host.name)
    out[PREFERENCES] = prefs

    return NormalizedDocument(
        host=host.name,
        name=name,
        document=out,
        expires_at=expires_at,
        source_hash=source_hash,
    )


def previous_source_hash(cache_path: Path) -> Optional[str]:
    try:
        doc = load_yaml(Path(cache_path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return None
    if not isinstance(doc, dict) or not isinstance(doc.get(PREFERENCES), dict):
        return None
    value = doc[PREFERENCES].get(META_SOURCE_HASH)
    return value if isinstance(value, str) else None


def write_cache(cache_path: Path, normalized: NormalizedDocument, *, dry_run: bool = False) -> None:
    """Persist the normalized per-host document (mode 0600)."""
    old_hash = previous_source_hash(cache_path)
    if old_hash and old_hash != normalized.source_hash:
        log.warning(
            "[%s] Source file on remote has changed since last run (SHA256: %s -> %s)",
            normalized.host,
            old_hash[:8],
            normalized.source_hash[:8],
        )

    if dry_run:
        log.info("[%s] DRY-RUN: Would write config to %s", normalized.host, cache_path)
        return

    try:
        atomic_write(cache_path, dump_yaml(normalized.document))
    except OSError as exc:
        raise KubeconfigError(f"writing {cache_path}: {exc}") from exc
    log.info("[%s] Config written to %s", normalized.host, cache_path)
