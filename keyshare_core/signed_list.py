"""
keyshare_core.signed_list
-------------------------
Generic append-only list of independently signed records.

The persisted log for a list lives under the owner identity's url, so a
stale snapshot of the list (e.g. a published ACL) can still pick up entries
appended later by calling materialize().
"""

from __future__ import annotations
import binascii
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, TYPE_CHECKING
from .crypto import CryptoProvider, default_provider
from .errors import CryptoFailure, InvalidRecordError, MisuseError
from .logger import get_logger
from .utils import b64e, b64d, canonical_json

if TYPE_CHECKING:
    from .identity import Identity
    from .storage.provider import StorageProvider

log = get_logger("signed_list")


@dataclass(frozen=True)
class SignedEntry:
    data: Dict[str, Any]
    signature: str
    signedby: str  # url of the signing identity

    @staticmethod
    def signing_bytes(data: Dict[str, Any], signedby: str) -> bytes:
        return canonical_json({"data": data, "signedby": signedby})

    @classmethod
    def create(cls, data: Dict[str, Any], signer: "Identity", crypto: Optional[CryptoProvider] = None) -> "SignedEntry":
        sig = signer.sign(cls.signing_bytes(data, signer.url), crypto=crypto)
        return cls(data=dict(data), signature=b64e(sig), signedby=signer.url)

    def verify(self, signer: "Identity", crypto: Optional[CryptoProvider] = None) -> bool:
        if self.signedby != signer.url:
            return False
        try:
            sig = b64d(self.signature)
        except (binascii.Error, ValueError, AttributeError):
            return False
        return signer.verify(sig, self.signing_bytes(self.data, self.signedby), crypto=crypto)

    def to_dict(self) -> Dict[str, Any]:
        return {"signature": self.signature, "signedby": self.signedby, "data": dict(self.data)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SignedEntry":
        if not isinstance(d, dict) or not isinstance(d.get("data"), dict):
            raise InvalidRecordError("signed entry is not a {signature, signedby, data} record")
        signature, signedby = d.get("signature"), d.get("signedby")
        if not isinstance(signature, str) or not isinstance(signedby, str):
            raise InvalidRecordError("signed entry without signature or signer")
        return cls(data=dict(d["data"]), signature=signature, signedby=signedby)


class SignedEntryList:
    """
    Ordered, append-only sequence of SignedEntry owned by one identity.

    Single writer (the owner, holding the private signing key), any number of
    readers. Entries are only locally visible once persisted.
    """

    def __init__(self, owner: "Identity", persistence: "StorageProvider",
                 crypto: Optional[CryptoProvider] = None, materialized: bool = False):
        self.owner = owner
        self.persistence = persistence
        self.crypto = crypto or default_provider
        self._entries: List[SignedEntry] = []
        self._signatures: set[str] = set()
        self._materialized = materialized

    @property
    def list_url(self) -> str:
        return self.owner.url

    @property
    def materialized(self) -> bool:
        return self._materialized

    def entries(self) -> List[SignedEntry]:
        if not self._materialized:
            raise MisuseError("signed list read before materialize()")
        return list(self._entries)

    def snapshot(self) -> List[SignedEntry]:
        """Entries known locally, without the materialization check (for projections)."""
        return list(self._entries)

    def __iter__(self) -> Iterator[SignedEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self._entries)

    def _accept(self, entry: SignedEntry) -> bool:
        if entry.signature in self._signatures:
            return False
        if not entry.verify(self.owner, crypto=self.crypto):
            log.warning(f"[LIST] dropping entry with invalid signature list={self.list_url}")
            return False
        self._signatures.add(entry.signature)
        self._entries.append(entry)
        return True

    def _parse(self, d: Any) -> Optional[SignedEntry]:
        try:
            return SignedEntry.from_dict(d)
        except InvalidRecordError as e:
            log.warning(f"[LIST] dropping malformed entry list={self.list_url}: {e}")
            return None

    def load(self, inline: Iterable[Dict[str, Any]]) -> None:
        """Adopt entries carried inline in a stored snapshot (verified, deduplicated)."""
        for d in inline:
            entry = self._parse(d)
            if entry is not None:
                self._accept(entry)

    async def append(self, data: Dict[str, Any]) -> SignedEntry:
        entry = SignedEntry.create(data, self.owner, crypto=self.crypto)
        if not entry.verify(self.owner, crypto=self.crypto):
            raise CryptoFailure("freshly signed entry failed verification")
        await self.persistence.append(self.list_url, entry.to_dict())
        self._accept(entry)
        log.debug(f"[LIST] appended entry list={self.list_url} size={len(self._entries)}")
        return entry

    async def materialize(self) -> "SignedEntryList":
        """Merge the persisted log into the local entries."""
        for d in await self.persistence.list_entries(self.list_url):
            entry = self._parse(d)
            if entry is not None:
                self._accept(entry)
        self._materialized = True
        return self
