# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/state/run_state.py

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from ..kube.expiry import parse_timestamp
from ..utils.files import atomic_write

log = logging.getLogger("kube_config_updater")


class RunStatus(str, Enum):
    FETCHED = "Fetched"
    SKIPPED = "Skipped"
    NO_CREDENTIAL = "NoCredential"
    AUTH_REJECTED = "AuthRejected"
    FAILED = "Failed"


@dataclass(frozen=True)
class RunStateRecord:
    status: RunStatus
    last_updated: Optional[datetime] = None
    error: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "error": self.error,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RunStateRecord":
        return cls(
            status=RunStatus(data["status"]),
            last_updated=parse_timestamp(data.get("last_updated")),
            error=data.get("error"),
        )


class RunStateStore:
    """
    The per-host run-state JSON file read by external viewers.

    Every write replaces the whole file atomically, so a poller sees either
    the previous snapshot or the new one. Entries for hosts that are not
    part of the current run are kept.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def read(self) -> Dict[str, RunStateRecord]:
        """Returns an empty map if the file is missing; unreadable entries are dropped."""
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Could not read state file %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            return {}

        states: Dict[str, RunStateRecord] = {}
        for name, data in raw.items():
            try:
                states[name] = RunStateRecord.from_json(data)
            except (KeyError, TypeError, ValueError):
                log.debug("Ignoring malformed state entry for %s", name)
        return states

    def write(self, states: Dict[str, RunStateRecord]) -> None:
        with self._lock:
            self._write(states)

    def update(self, name: str, record: RunStateRecord) -> None:
        """Read the current state, replace one entry, write back."""
        with self._lock:
            states = self.read()
            states[name] = record
            self._write(states)

    def update_many(self, records: Dict[str, RunStateRecord]) -> None:
        with self._lock:
            states = self.read()
            states.update(records)
            self._write(states)

    def _write(self, states: Dict[str, RunStateRecord]) -> None:
        payload = json.dumps(
            {name: rec.to_json() for name, rec in sorted(states.items())},
            indent=2,
        )
        atomic_write(self.path, payload + "\n", mode=0o644)
