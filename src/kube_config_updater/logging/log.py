# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/kube_config_updater/logging/log.py

from __future__ import annotations

import logging
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional
import uuid

def init_logging(
    *,
    log_dir: Optional[Path] = None,
    name: str = "kube_config_updater",
    verbose: bool = False,
    debug: bool = False,
) -> tuple[logging.Logger, str, Optional[Path]]:
    """
    Initializes:
      - console logging on stderr, WARNING by default so cron stays quiet
      - optional full-trace log file when log_dir is given
      - returns run_id so observers can reuse it
    """
    run_id = str(uuid.uuid4())

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console = WARNING by default, INFO with --verbose, DEBUG with --debug
    ch = logging.StreamHandler(sys.stderr)
    if debug:
        ch.setLevel(logging.DEBUG)
    elif verbose:
        ch.setLevel(logging.INFO)
    else:
        ch.setLevel(logging.WARNING)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    log_path: Optional[Path] = None
    if log_dir is not None:
        log_dir = Path(log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)

        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        log_path = log_dir / f"{name}-{ts}-{run_id}.log"

        # File = FULL TRACE
        fh = logging.FileHandler(log_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    # quiet paramiko's transport chatter unless debugging
    logging.getLogger("paramiko").setLevel(logging.DEBUG if debug else logging.WARNING)

    logger.debug("=== kube-config-updater run started ===")
    logger.debug(f"run_id={run_id}")
    if log_path:
        logger.debug(f"log_file={log_path}")

    return logger, run_id, log_path
