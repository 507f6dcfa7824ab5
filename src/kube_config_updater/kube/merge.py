# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/kube/merge.py

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..errors import KubeconfigError
from ..utils.files import atomic_write, dump_yaml, load_yaml
from .models import ENTRY_KINDS, MergeReport, NormalizedDocument, empty_kubeconfig

log = logging.getLogger("kube_config_updater")


class KubeconfigMerger:
    """
    Upserts per-host cluster/context/user entries into the shared kubeconfig.

    One instance is shared by all host tasks of a run; its lock spans the
    whole read-modify-write of the shared file. `current-context`,
    `preferences` and every entry with a different name are left exactly as
    loaded.
    """

    def __init__(self, path: Path, lock: Optional[threading.Lock] = None):
        self.path = Path(path)
        self._lock = lock or threading.Lock()

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return empty_kubeconfig()
        try:
            doc = load_yaml(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise KubeconfigError(f"Could not read {self.path}: {exc}") from exc
        if doc is None:
            return empty_kubeconfig()
        if not isinstance(doc, dict):
            raise KubeconfigError(f"{self.path} is not a kubeconfig mapping")
        for kind in ENTRY_KINDS:
            if doc.get(kind) is None:
                doc[kind] = []
            elif not isinstance(doc[kind], list):
                raise KubeconfigError(f"'{kind}' in {self.path} is not a list")
        return doc

    def merge(self, normalized: NormalizedDocument, *, dry_run: bool = False) -> MergeReport:
        report = MergeReport(host=normalized.host)
        incoming = normalized.merge_entries()

        with self._lock:
            shared = self.load()

            for kind in ENTRY_KINDS:
                for entry in incoming[kind]:
                    name = entry.get("name")
                    before = len(shared[kind])
                    shared[kind] = [
                        e for e in shared[kind]
                        if not (isinstance(e, dict) and e.get("name") == name)
                    ]
                    bucket = report.replaced if len(shared[kind]) < before else report.added
                    bucket.setdefault(kind, []).append(name)
                    shared[kind].append(entry)

            if dry_run:
                log.info(
                    "[%s] DRY-RUN: Would merge into %s (%s)",
                    normalized.host, self.path, report.summary(),
                )
                return report

            try:
                atomic_write(self.path, dump_yaml(shared))
            except OSError as exc:
                raise KubeconfigError(f"writing {self.path}: {exc}") from exc
            report.written = True

        log.info("[%s] Merged cluster/context/user into %s (%s)", normalized.host, self.path, report.summary())
        return report
