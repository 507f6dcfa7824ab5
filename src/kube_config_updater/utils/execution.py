# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass

@dataclass(frozen=True)
class ExecutionContext:
    """
    controls how a run behaves
    """

    dry_run: bool = False   # evaluate and log everything, write nothing
    force: bool = False     # ignore the cached certificate expiry
