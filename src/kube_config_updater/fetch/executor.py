# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/fetch/executor.py

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TimeElapsedColumn

from ..config.loader import shared_kubeconfig_path
from ..config.models import ServerConfig, UpdaterConfig
from ..credentials.backend import Found, Unavailable
from ..credentials.resolver import CredentialResolver
from ..kube.expiry import CertExpiryGate, Clock, utcnow
from ..kube.merge import KubeconfigMerger
from ..kube.models import Expired, MergeReport, Valid
from ..kube.normalize import normalize_kubeconfig, write_cache
from ..observers.dispatcher import EventBus
from ..observers.events import HostFinished, HostStageChanged, RunFinished, new_ctx, new_run_id
from ..state.run_state import RunStateRecord, RunStateStore, RunStatus
from ..utils.execution import ExecutionContext
from .remote import FetchError, RemoteFetcher

log = logging.getLogger("kube_config_updater")


# ---------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class CertStillValid:
    expires_at: datetime


@dataclass(frozen=True)
class CredentialStoreUnavailable:
    reason: str


SkipReason = Union[CertStillValid, CredentialStoreUnavailable]


@dataclass(frozen=True)
class Fetched:
    merge: Optional[MergeReport] = None


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason


@dataclass(frozen=True)
class Failed:
    error: str
    auth_rejected: bool = False


Outcome = Union[Fetched, Skipped, Failed]


def describe_skip(reason: SkipReason) -> str:
    if isinstance(reason, CertStillValid):
        return f"certificate valid until {reason.expires_at.isoformat()}"
    return f"credential store unavailable: {reason.reason}"


class HostStage(str, Enum):
    PENDING = "Pending"
    GATING = "Gating"
    RESOLVING_CREDENTIAL = "ResolvingCredential"
    FETCHING = "Fetching"
    MERGING = "Merging"


def run_status(outcome: Outcome) -> RunStatus:
    if isinstance(outcome, Fetched):
        return RunStatus.FETCHED
    if isinstance(outcome, Skipped):
        if isinstance(outcome.reason, CertStillValid):
            return RunStatus.SKIPPED
        return RunStatus.NO_CREDENTIAL
    if outcome.auth_rejected:
        return RunStatus.AUTH_REJECTED
    return RunStatus.FAILED


# ---------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------
@dataclass
class RunReport:
    outcomes: Dict[str, Outcome] = field(default_factory=dict)
    dry_run: bool = False

    def add(self, name: str, outcome: Outcome) -> None:
        self.outcomes[name] = outcome

    @property
    def fetched(self) -> int:
        return sum(1 for o in self.outcomes.values() if isinstance(o, Fetched))

    @property
    def skipped_cert_valid(self) -> int:
        return sum(
            1 for o in self.outcomes.values()
            if isinstance(o, Skipped) and isinstance(o.reason, CertStillValid)
        )

    @property
    def skipped_no_cred(self) -> int:
        return sum(
            1 for o in self.outcomes.values()
            if isinstance(o, Skipped) and isinstance(o.reason, CredentialStoreUnavailable)
        )

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes.values() if isinstance(o, Failed))

    @property
    def should_report(self) -> bool:
        """False when every host was skipped with a valid certificate (cron-silent)."""
        return bool(self.fetched or self.failed or self.skipped_no_cred)

    def summary(self) -> str:
        return (
            f"Done. fetched={self.fetched} skipped_cert_valid={self.skipped_cert_valid} "
            f"skipped_no_cred={self.skipped_no_cred} failed={self.failed}"
        )

    def state_records(self, now: datetime) -> Dict[str, RunStateRecord]:
        return {
            name: RunStateRecord(
                status=run_status(o),
                last_updated=now,
                error=o.error if isinstance(o, Failed) else None,
            )
            for name, o in self.outcomes.items()
        }


# ---------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------
class Updater:
    """
    Runs gate -> credential -> fetch -> normalize/merge for every selected
    server, one thread per server. Per-host failures end up as Failed
    outcomes; nothing raised inside a host task reaches run().
    """

    def __init__(
        self,
        cfg: UpdaterConfig,
        *,
        resolver: Optional[CredentialResolver] = None,
        fetcher: Optional[RemoteFetcher] = None,
        gate: Optional[CertExpiryGate] = None,
        merger: Optional[KubeconfigMerger] = None,
        state: Optional[RunStateStore] = None,
        bus: Optional[EventBus] = None,
        ctx: Optional[ExecutionContext] = None,
        run_id: Optional[str] = None,
        clock: Optional[Clock] = None,
        show_progress: bool = True,
    ):
        self.cfg = cfg
        self.ctx = ctx or ExecutionContext()
        self.clock = clock or utcnow
        self.resolver = resolver or CredentialResolver()
        self.fetcher = fetcher or RemoteFetcher()
        self.gate = gate or CertExpiryGate(clock=self.clock)
        # resolving the shared document path is a setup step: SetupError propagates
        self.merger = merger or KubeconfigMerger(shared_kubeconfig_path(cfg))
        self.state = state or RunStateStore(cfg.state_file)
        self.bus = bus or EventBus()
        self.run_id = run_id or new_run_id()
        self.show_progress = show_progress

    # ------------------ selection ------------------

    def select(self, names: Optional[Iterable[str]] = None) -> List[ServerConfig]:
        wanted = [n for n in (names or []) if n]
        if not wanted:
            return list(self.cfg.servers)

        known = self.cfg.by_name()
        unknown = [n for n in wanted if n not in known]
        if unknown:
            log.warning("Unknown server(s) ignored: %s", ", ".join(unknown))
        return [s for s in self.cfg.servers if s.name in wanted]

    # ------------------ per host ------------------

    def _stage(self, name: str, stage: HostStage) -> None:
        self.bus.emit(HostStageChanged(**new_ctx(self.run_id), host=name, stage=stage.value))

    def process_host(self, server: ServerConfig) -> Outcome:
        name = server.name
        self._stage(name, HostStage.PENDING)
        try:
            return self._pipeline(server)
        except Exception as exc:
            log.debug("[%s] Host task raised", name, exc_info=True)
            return Failed(str(exc) or exc.__class__.__name__)

    def _pipeline(self, server: ServerConfig) -> Outcome:
        name = server.name
        host = self.cfg.host_spec(server)
        cache_path = self.cfg.cache_path(name)

        # Step 1: cached certificate still valid -> no SSH at all
        if self.ctx.force:
            log.info("[%s] --force given, ignoring cached certificate", name)
        else:
            self._stage(name, HostStage.GATING)
            status = self.gate.evaluate(cache_path)
            if isinstance(status, Valid):
                log.debug("[%s] Cert valid until %s, skipping", name, status.expires_at)
                return Skipped(CertStillValid(status.expires_at))
            if isinstance(status, Expired):
                log.info("[%s] Cert expired at %s, fetching...", name, status.expires_at)
            else:
                log.info("[%s] Cert status unknown (%s), fetching...", name, status.reason)

        # Step 2: password from the secret store
        self._stage(name, HostStage.RESOLVING_CREDENTIAL)
        credential = self.resolver.resolve(name)
        if isinstance(credential, Unavailable):
            log.warning(
                "[%s] Credential store unavailable (%s). Skipping. "
                "Run 'credential set' or log in to unlock the keyring.",
                name,
                credential.reason,
            )
            return Skipped(CredentialStoreUnavailable(credential.reason))
        password = credential.reveal() if isinstance(credential, Found) else None

        # Step 3: fetch
        self._stage(name, HostStage.FETCHING)
        fetched = self.fetcher.fetch(host, password)
        if isinstance(fetched, FetchError):
            return Failed(str(fetched), auth_rejected=fetched.auth_rejected)
        log.debug("[%s] Source file SHA256: %s", name, fetched.sha256)

        # Step 4: normalize, cache, merge
        self._stage(name, HostStage.MERGING)
        normalized = normalize_kubeconfig(
            fetched.raw,
            host,
            source_hash=fetched.sha256,
            now=self.clock(),
        )
        write_cache(cache_path, normalized, dry_run=self.ctx.dry_run)
        report = self.merger.merge(normalized, dry_run=self.ctx.dry_run)
        return Fetched(report)

    def _finish(self, name: str, outcome: Outcome) -> None:
        status = run_status(outcome)
        detail = None
        if isinstance(outcome, Fetched):
            log.info("[%s] Successfully fetched and merged.", name)
            detail = outcome.merge.summary() if outcome.merge else None
        elif isinstance(outcome, Skipped):
            detail = describe_skip(outcome.reason)
        else:
            log.error("[%s] FAILED: %s", name, outcome.error)
        self.bus.emit(
            HostFinished(
                **new_ctx(self.run_id),
                host=name,
                status=status.value,
                detail=detail,
                error=outcome.error if isinstance(outcome, Failed) else None,
            )
        )

    # ------------------ run ------------------

    def _progress(self, total: int) -> Progress:
        console = Console(stderr=True)
        return Progress(
            SpinnerColumn(),
            TimeElapsedColumn(),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            console=console,
            transient=True,
            disable=not (self.show_progress and console.is_terminal),
        )

    def run(self, names: Optional[Iterable[str]] = None) -> RunReport:
        report = RunReport(dry_run=self.ctx.dry_run)

        servers = self.select(names)
        if not servers:
            log.warning("No servers found to process. Check your --servers flag or config file.")
            return report

        output_dir = Path(self.cfg.local_output_dir).expanduser()
        if not self.ctx.dry_run:
            output_dir.mkdir(parents=True, exist_ok=True)
        log.info("Using output directory: %s", output_dir)

        results: Dict[str, Outcome] = {}
        workers = min(self.cfg.max_workers, len(servers))

        with self._progress(len(servers)) as progress:
            task = progress.add_task("servers", total=len(servers))
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="kcu-host"
            ) as pool:
                futures = {pool.submit(self.process_host, s): s for s in servers}
                for fut in concurrent.futures.as_completed(futures):
                    server = futures[fut]
                    outcome = fut.result()
                    results[server.name] = outcome
                    self._finish(server.name, outcome)
                    progress.advance(task)

        # config order, not completion order
        for s in servers:
            report.add(s.name, results[s.name])

        if report.should_report:
            log.debug(report.summary())

        self.bus.emit(
            RunFinished(
                **new_ctx(self.run_id),
                fetched=report.fetched,
                skipped_cert_valid=report.skipped_cert_valid,
                skipped_no_cred=report.skipped_no_cred,
                failed=report.failed,
                dry_run=report.dry_run,
            )
        )

        if not self.ctx.dry_run:
            try:
                self.state.update_many(report.state_records(datetime.now(timezone.utc)))
            except OSError as exc:
                log.warning("Could not write state file: %s", exc)

        return report
