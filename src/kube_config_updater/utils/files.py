# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/utils/files.py

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import yaml


def atomic_write(path: str | Path, data: str | bytes, *, mode: int = 0o600) -> None:
    """
    Write *data* to *path* so readers only ever see the old or the new file.

    The temp file lives next to the target so os.replace() stays on one
    filesystem. Permissions are applied before any content is written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = data.encode("utf-8") if isinstance(data, str) else data

    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        os.chmod(tmp, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


def _without_timestamps(resolvers: dict) -> dict:
    return {
        first: [(tag, regexp) for tag, regexp in entries if tag != _TIMESTAMP_TAG]
        for first, entries in resolvers.items()
    }


class KubeconfigLoader(yaml.SafeLoader):
    """SafeLoader that leaves RFC 3339 scalars as the strings they were written as."""


class KubeconfigDumper(yaml.SafeDumper):
    """SafeDumper that writes timestamp-like strings back unquoted."""


KubeconfigLoader.yaml_implicit_resolvers = _without_timestamps(yaml.SafeLoader.yaml_implicit_resolvers)
KubeconfigDumper.yaml_implicit_resolvers = _without_timestamps(yaml.SafeDumper.yaml_implicit_resolvers)


def load_yaml(text: str):
    return yaml.load(text, Loader=KubeconfigLoader)


def dump_yaml(data: dict) -> str:
    """Serialize a kubeconfig-like mapping, keeping key order."""
    return yaml.dump(data, Dumper=KubeconfigDumper, sort_keys=False, default_flow_style=False)
