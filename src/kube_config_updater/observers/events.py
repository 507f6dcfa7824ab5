# src/kube_config_updater/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single updater invocation

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_run_id() -> str:
    return str(uuid.uuid4())


def new_ctx(run_id: str) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "run_id": run_id,
    }


# ---------------------------------------------------------------------
# Host pipeline
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class HostStageChanged(BaseEvent):
    host: str
    stage: str        # Pending | Gating | ResolvingCredential | Fetching | Merging


@dataclass(frozen=True)
class HostFinished(BaseEvent):
    host: str
    status: str       # RunStatus value
    detail: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunFinished(BaseEvent):
    fetched: int
    skipped_cert_valid: int
    skipped_no_cred: int
    failed: int
    dry_run: bool = False
