from __future__ import annotations
import logging
from .events import BaseEvent, HostFinished, HostStageChanged, RunFinished


class LoggerObserver:
    """Mirrors run events into the log file; DEBUG so the console stays quiet."""

    def __init__(self, logger: logging.Logger, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, HostStageChanged):
            msg = f"[{event.host}] stage={event.stage}"
        elif isinstance(event, HostFinished):
            msg = f"[{event.host}] status={event.status}"
            if event.detail:
                msg += f" ({event.detail})"
            if event.error:
                msg += f" error={event.error}"
        elif isinstance(event, RunFinished):
            msg = (
                f"fetched={event.fetched} skipped_cert_valid={event.skipped_cert_valid} "
                f"skipped_no_cred={event.skipped_no_cred} failed={event.failed} dry_run={event.dry_run}"
            )
        else:
            d = event.dict()
            msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id"))

        self.logger.log(self.level, f"[EVENT] {event.__class__.__name__}: {msg}")
