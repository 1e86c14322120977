"""
keyshare_core.envelope
----------------------
Defines the Envelope class, the wire wrapper for content protected by an ACL.

Wire shape: {"acl": <url of the ACL public copy>, "encrypted": <ciphertext>}.
A value without an "encrypted" field is plaintext and passes through untouched.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping
from .errors import InvalidRecordError
import json


@dataclass
class Envelope:
    acl: str
    encrypted: str

    @staticmethod
    def is_encrypted(value: Any) -> bool:
        return isinstance(value, Mapping) and bool(value.get("encrypted"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Envelope":
        """Rebuild an encrypted envelope from its wire dict."""
        if not cls.is_encrypted(data):
            raise InvalidRecordError("not an encrypted envelope")
        acl = data.get("acl")
        if not isinstance(acl, str) or not acl:
            raise InvalidRecordError("encrypted envelope without an acl url")
        return cls(acl=acl, encrypted=data["encrypted"])
