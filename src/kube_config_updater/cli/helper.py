# src/kube_config_updater/cli/helper.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from kube_config_updater.config.models import UpdaterConfig
from kube_config_updater.credentials.backend import DEFAULT_ACCOUNT, SystemKeyring
from kube_config_updater.credentials.resolver import CredentialResolver
from kube_config_updater.fetch.executor import Updater
from kube_config_updater.fetch.remote import RemoteFetcher
from kube_config_updater.observers.dispatcher import EventBus
from kube_config_updater.observers.logger import LoggerObserver
from kube_config_updater.observers.state import RunStateObserver
from kube_config_updater.state.run_state import RunStateStore
from kube_config_updater.utils.execution import ExecutionContext


@dataclass
class CliState:
    """Options shared by every sub-command, set by the root callback."""
    config_path: Optional[Path]
    logger: logging.Logger
    run_id: str


def split_names(values: Optional[Iterable[str]]) -> List[str]:
    """
    --servers may be repeated and each value may be a comma list:
    `-s a -s b,c` -> ["a", "b", "c"]
    """
    names: List[str] = []
    for v in values or []:
        for part in v.split(","):
            part = part.strip()
            if part and part not in names:
                names.append(part)
    return names


def account_label(account: str) -> str:
    return "(default)" if account == DEFAULT_ACCOUNT else account


def make_resolver() -> CredentialResolver:
    return CredentialResolver(SystemKeyring())


def make_fetcher() -> RemoteFetcher:
    return RemoteFetcher()


def build_updater(
    cfg: UpdaterConfig,
    *,
    state: CliState,
    dry_run: bool,
    force: bool,
) -> Updater:
    store = RunStateStore(cfg.state_file)
    bus = EventBus(
        observers=[
            LoggerObserver(state.logger),
            # no state writes in dry-run
            RunStateObserver(store, enabled=not dry_run),
        ]
    )
    return Updater(
        cfg,
        resolver=make_resolver(),
        fetcher=make_fetcher(),
        state=store,
        bus=bus,
        ctx=ExecutionContext(dry_run=dry_run, force=force),
        run_id=state.run_id,
    )
