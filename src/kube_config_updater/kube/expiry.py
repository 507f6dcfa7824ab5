# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kube_config_updater/kube/expiry.py

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from cryptography import x509

from ..utils.files import load_yaml
from .models import (
    META_EXPIRES_AT,
    PREFERENCES,
    CertStatus,
    Expired,
    Unknown,
    Valid,
)

log = logging.getLogger("kube_config_updater")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    RFC 3339 string (or an already parsed datetime) -> aware UTC
    datetime. None when the value is not a timestamp.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class CertExpiryGate:
    """
    Decides from the cached per-host kubeconfig alone whether a host needs
    to be contacted. Anything that prevents a definite answer is Unknown,
    which callers treat exactly like Expired.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utcnow

    def evaluate(self, cache_path: Path) -> CertStatus:
        path = Path(cache_path)
        if not path.is_file():
            return Unknown("no cached file")

        try:
            doc = load_yaml(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            return Unknown("cached file unreadable")
        if not isinstance(doc, dict):
            return Unknown("cached file is not a kubeconfig")

        prefs = doc.get(PREFERENCES)
        if not isinstance(prefs, dict) or META_EXPIRES_AT not in prefs:
            return Unknown("no expiry recorded")

        expiry = parse_timestamp(prefs[META_EXPIRES_AT])
        if expiry is None:
            return Unknown("malformed expiry")

        if expiry <= self.clock():
            return Expired(expiry)
        return Valid(expiry)


# ---------------------------------------------------------------------
# Client certificate expiry
# ---------------------------------------------------------------------
def cert_expiry_from_user(user_entry: Dict[str, Any]) -> Optional[datetime]:
    """
    notAfter of the base64 PEM in client-certificate-data.
    None if there is no certificate or it does not parse.
    """
    data = (user_entry.get("user") or {}).get("client-certificate-data")
    if not data:
        return None
    try:
        pem = base64.b64decode(data, validate=False)
        cert = x509.load_pem_x509_certificate(pem)
    except (binascii.Error, ValueError, TypeError) as exc:
        log.warning(
            "Failed to parse PEM certificate for user '%s': %s. Skipping...",
            user_entry.get("name"),
            exc,
        )
        return None
    return cert.not_valid_after_utc

