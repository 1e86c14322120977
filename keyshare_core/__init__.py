"""
Keyshare Core Package
=====================
Envelope-based access control for shared encrypted content.

Provides:
- AccessControlList: master / public copies, viewer grants, payload encryption
- Resolver: turns {acl, encrypted} envelopes back into plaintext
- Identity and KeyChain: the caller's keys, passed in explicitly
- Pluggable content-addressed storage (SQLite default, memory, HTTP)
"""

from .acl import AccessControlList, AccessEntry
from .crypto import CryptoProvider
from .envelope import Envelope
from .errors import (
    AuthenticationError,
    CryptoFailure,
    DecryptionFailure,
    InvalidRecordError,
    KeyshareError,
    MisuseError,
    PermissionDenied,
)
from .identity import Identity
from .keychain import KeyChain, KeychainLookup
from .resolver import Resolver

__all__ = [
    "AccessControlList",
    "AccessEntry",
    "AuthenticationError",
    "CryptoFailure",
    "CryptoProvider",
    "DecryptionFailure",
    "Envelope",
    "Identity",
    "InvalidRecordError",
    "KeyChain",
    "KeychainLookup",
    "KeyshareError",
    "MisuseError",
    "PermissionDenied",
    "Resolver",
]
