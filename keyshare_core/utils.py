"""
keyshare_core.utils
-------------------
Lightweight helpers for base64, canonical JSON serialization and content addressing.
Content addresses are derived from canonical JSON so a url can be computed
before the object is actually stored.
"""

from __future__ import annotations
import base64, json, time, hashlib
from typing import Any, Dict
from .constants import URL_PREFIX

def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")

def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"), validate=True)

def now_ts() -> str:
    # RFC3339 / ISO 8601 in UTC, second precision
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

def canonical_json(obj: Dict[str, Any]) -> bytes:
    # Deterministic, minimal JSON for signing and addressing
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")

def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def content_url(obj: Dict[str, Any]) -> str:
    return URL_PREFIX + sha256(canonical_json(obj))

def to_bytes(data: bytes | str) -> bytes:
    if isinstance(data, bytes):
        return data
    return data.encode("utf-8")
