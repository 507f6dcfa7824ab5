# src/kube_config_updater/observers/state.py
from __future__ import annotations

from datetime import datetime, timezone

from ..state.run_state import RunStateRecord, RunStateStore, RunStatus
from .events import BaseEvent, HostFinished


class RunStateObserver:
    """
    Writes a host's run-state record as soon as its task finishes, so a
    viewer polling the state file follows the run host by host.
    """

    def __init__(self, store: RunStateStore, *, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    def notify(self, event: BaseEvent) -> None:
        if not self.enabled or not isinstance(event, HostFinished):
            return
        self.store.update(
            event.host,
            RunStateRecord(
                status=RunStatus(event.status),
                last_updated=datetime.now(timezone.utc),
                error=event.error,
            ),
        )
