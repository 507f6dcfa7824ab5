# tests/conftest.py
from __future__ import annotations

import base64
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from pydantic import SecretStr

from kube_config_updater.config.models import HostSpec, UpdaterConfig
from kube_config_updater.credentials.backend import Found, NotFound, Unavailable
from kube_config_updater.errors import CredentialStoreError
from kube_config_updater.fetch.remote import FetchedDocument

FIXED_NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---- Keyring test doubles ----

class InMemoryKeyring:
    """dict-backed KeyringBackend; counts get() calls."""

    def __init__(self, entries=None):
        self.store = dict(entries or {})
        self.gets = []
        self._lock = threading.Lock()

    def get(self, service, account):
        with self._lock:
            self.gets.append((service, account))
            if (service, account) in self.store:
                return Found(SecretStr(self.store[(service, account)]))
            return NotFound()

    def set(self, service, account, secret):
        with self._lock:
            self.store[(service, account)] = secret

    def delete(self, service, account):
        with self._lock:
            self.store.pop((service, account), None)


class LockedKeyring:
    """A secret service that is present but locked (cron before login)."""

    def __init__(self, reason="Keyring is locked"):
        self.reason = reason
        self.gets = []

    def get(self, service, account):
        self.gets.append((service, account))
        return Unavailable(self.reason)

    def set(self, service, account, secret):
        raise CredentialStoreError(self.reason)

    def delete(self, service, account):
        raise CredentialStoreError(self.reason)


# ---- Certificates / kubeconfigs ----

def make_cert_pem(not_after: datetime) -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "system:admin")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=365))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


def k3s_kubeconfig(not_after: datetime = FIXED_NOW + timedelta(days=365), *, name: str = "default") -> bytes:
    """What /etc/rancher/k3s/k3s.yaml looks like on a fresh k3s server."""
    cert_b64 = base64.b64encode(make_cert_pem(not_after)).decode()
    doc = {
        "apiVersion": "v1",
        "clusters": [
            {
                "cluster": {
                    "certificate-authority-data": "RkFLRUNB",
                    "server": "https://127.0.0.1:6443",
                },
                "name": name,
            }
        ],
        "contexts": [{"context": {"cluster": name, "user": name}, "name": name}],
        "current-context": name,
        "kind": "Config",
        "preferences": {},
        "users": [
            {
                "name": name,
                "user": {"client-certificate-data": cert_b64, "client-key-data": "RkFLRUtFWQ=="},
            }
        ],
    }
    return yaml.safe_dump(doc, sort_keys=False).encode()


def write_cached(path: Path, expires_at: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(
            {
                "apiVersion": "v1",
                "kind": "Config",
                "current-context": path.name,
                "clusters": [],
                "contexts": [],
                "users": [],
                "preferences": {"certificate-expires-at": expires_at},
            },
            sort_keys=False,
        )
    )
    return path


# ---- Fake fetcher ----

class FakeFetcher:
    """Returns canned FetchedDocument/FetchError per host and records calls."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, host, password=None):
        with self._lock:
            self.calls.append((host.name, password))
        resp = self.responses.get(host.name)
        if resp is None:
            return FetchedDocument.from_bytes(host.name, k3s_kubeconfig())
        if isinstance(resp, bytes):
            return FetchedDocument.from_bytes(host.name, resp)
        return resp


# ---- Fixtures ----

@pytest.fixture(autouse=True)
def _reset_app_logger():
    """init_logging() detaches the app logger from the root; undo that between tests."""
    yield
    logger = logging.getLogger("kube_config_updater")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def make_config(tmp_path):
    def _make(servers, **overrides) -> UpdaterConfig:
        data = {
            "default_user": "admin",
            "local_output_dir": str(tmp_path / "clusters"),
            "kubeconfig_path": str(tmp_path / "kube" / "config"),
            "state_file": str(tmp_path / "state.json"),
            "servers": servers,
        }
        data.update(overrides)
        return UpdaterConfig.model_validate(data)
    return _make


@pytest.fixture
def host_spec():
    def _make(name="prod-k3s", **kw) -> HostSpec:
        defaults = dict(
            name=name,
            address=f"{name}.example.com",
            user="admin",
            remote_path="/etc/rancher/k3s/k3s.yaml",
            target_ip="10.0.0.10",
            context_name=name,
        )
        defaults.update(kw)
        return HostSpec(**defaults)
    return _make
