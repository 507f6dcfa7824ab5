# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/config/models.py

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import ConfigError

DEFAULT_FILE_PATH = "/etc/rancher/k3s"
DEFAULT_FILE_NAME = "k3s.yaml"
DEFAULT_STATE_FILE = Path("/tmp/kube_config_updater_state.json")


class ServerConfig(BaseModel):
    name: str                            # unique; names the cache file, keyring account, kube entries
    address: str                         # SSH host
    target_cluster_ip: str               # API server IP written into the kubeconfig
    port: int = 22
    user: Optional[str] = None
    file_path: Optional[str] = None      # remote directory
    file_name: Optional[str] = None      # remote file inside file_path
    context_name: Optional[str] = None   # defaults to name
    identity_file: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_is_path_safe(cls, v: str) -> str:
        if not v or "/" in v or v in (".", ".."):
            raise ValueError(f"invalid server name {v!r}")
        return v


@dataclass(frozen=True)
class HostSpec:
    """
    A fully resolved server, immutable for the duration of a run.
    """
    name: str
    address: str
    user: str
    remote_path: str
    target_ip: str
    context_name: str
    port: int = 22
    identity_file: Optional[Path] = None


class UpdaterConfig(BaseModel):
    """Configuration for a kube-config-updater run."""

    default_user: Optional[str] = None
    default_file_path: Optional[str] = DEFAULT_FILE_PATH
    default_file_name: Optional[str] = DEFAULT_FILE_NAME
    default_identity_file: Optional[str] = None

    local_output_dir: Path
    kubeconfig_path: Optional[Path] = None   # shared document; ~/.kube/config when unset
    state_file: Path = DEFAULT_STATE_FILE
    max_workers: int = Field(default=8, ge=1)

    servers: List[ServerConfig] = Field(default_factory=list)

    @field_validator("servers")
    @classmethod
    def _unique_names(cls, v: List[ServerConfig]) -> List[ServerConfig]:
        seen = set()
        for s in v:
            if s.name in seen:
                raise ValueError(f"duplicate server name {s.name!r}")
            seen.add(s.name)
        return v

    def by_name(self) -> Dict[str, ServerConfig]:
        return {s.name: s for s in self.servers}

    def cache_path(self, name: str) -> Path:
        return Path(self.local_output_dir).expanduser() / name

    def host_spec(self, server: ServerConfig) -> HostSpec:
        """
        Resolve per-server overrides against the global defaults.
        Raises ConfigError when a required value has no default either.
        """
        user = server.user or self.default_user
        if not user:
            raise ConfigError(f"[{server.name}] user not specified in config")

        file_path = server.file_path or self.default_file_path
        if not file_path:
            raise ConfigError(f"[{server.name}] file_path not specified in config")

        file_name = server.file_name or self.default_file_name
        if not file_name:
            raise ConfigError(f"[{server.name}] file_name not specified in config")

        identity = server.identity_file or self.default_identity_file

        return HostSpec(
            name=server.name,
            address=server.address,
            port=server.port,
            user=user,
            remote_path=posixpath.join(file_path, file_name),
            target_ip=server.target_cluster_ip,
            context_name=server.context_name or server.name,
            identity_file=Path(identity).expanduser() if identity else None,
        )
