# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/errors.py


class UpdaterError(RuntimeError):
    """Base class for kube-config-updater failures."""


class ConfigError(UpdaterError):
    """Raised when the host configuration is missing or invalid."""


class SetupError(UpdaterError):
    """Raised when the run cannot start (e.g. no home directory to write to)."""


class CredentialStoreError(UpdaterError):
    """Raised when the secret store rejects a set/delete/list operation."""


class KubeconfigError(UpdaterError):
    """Raised when a fetched or shared kubeconfig cannot be parsed or written."""
