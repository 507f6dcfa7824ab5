# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/config/loader.py

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigError, SetupError
from .models import UpdaterConfig

log = logging.getLogger("kube_config_updater")

CONFIG_ENV = "KUBE_CONFIG_UPDATER_CONFIG"


def home_dir() -> Path:
    """
    The user's home directory. Everything the updater writes by default
    lives under it, so failing to resolve it is fatal.
    """
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as exc:
        raise SetupError(f"Could not determine home directory: {exc}") from exc
    if not str(home) or str(home) == "~":
        raise SetupError("Could not determine home directory")
    return home


def default_config_path() -> Path:
    """
    Locate config.yaml using this priority:

    1. KUBE_CONFIG_UPDATER_CONFIG environment variable
    2. ~/.kube_config_updater/config.yaml
    """
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return home_dir() / ".kube_config_updater" / "config.yaml"


def shared_kubeconfig_path(cfg: UpdaterConfig) -> Path:
    if cfg.kubeconfig_path:
        return Path(cfg.kubeconfig_path).expanduser()
    return home_dir() / ".kube" / "config"


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def load_config(path: Optional[str | Path] = None) -> UpdaterConfig:
    """
    Load and validate the updater YAML config.

    Example::

        default_user: admin
        local_output_dir: ~/.kube_config_updater/clusters
        servers:
          - name: prod-k3s
            address: prod.example.com
            target_cluster_ip: 10.0.0.10
    """
    path = Path(path).expanduser() if path else default_config_path()
    log.debug("Attempting to load configuration from '%s'...", path)

    if not path.is_file():
        raise ConfigError(f"Configuration file not found at '{path}'. Please create it.")

    try:
        data = _load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc

    try:
        cfg = UpdaterConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}:\n{exc}") from exc

    log.debug("Found %d servers in config", len(cfg.servers))
    return cfg
