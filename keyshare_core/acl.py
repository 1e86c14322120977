"""
keyshare_core.acl
-----------------
AccessControlList: a named list of viewers, each holding a copy of the
list's accesskey wrapped for their own public key.

Two kinds of copy exist:

- master: held privately, carries the accesskey and the full identity;
  only a master can add viewers or encrypt.
- public: what publish() stores. Name, public identity and signed entries,
  nothing secret. Anyone can fetch one and, if they were granted access,
  recover the accesskey from their entry.

Entries are appended to a signed log under the ACL identity's url, so a
public copy fetched before a grant still sees it after materialize().
"""

from __future__ import annotations
import asyncio, json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union, TYPE_CHECKING
from .constants import ACCESSKEY_BYTES, KIND_ACL, KIND_IDENTITY, SCHEMA_VERSION
from .crypto import CryptoProvider, default_provider
from .envelope import Envelope
from .errors import AuthenticationError, CryptoFailure, DecryptionFailure, InvalidRecordError, MisuseError, PermissionDenied
from .identity import Identity
from .logger import get_logger
from .records import fetch_object, register
from .signed_list import SignedEntry, SignedEntryList
from .utils import b64e, b64d

if TYPE_CHECKING:
    from .keychain import KeychainLookup
    from .storage.provider import StorageProvider

log = get_logger("acl")

Identities = Union[Identity, Sequence[Identity]]


@dataclass(frozen=True)
class AccessEntry:
    """One grant: the accesskey wrapped for the identity at `viewer`."""
    viewer: str  # url of the viewer's public identity
    token: str

    def to_dict(self) -> Dict[str, str]:
        return {"viewer": self.viewer, "token": self.token}

    @classmethod
    def from_signed(cls, entry: SignedEntry) -> "AccessEntry":
        return cls(viewer=entry.data.get("viewer", ""), token=entry.data.get("token", ""))


class AccessControlList:

    def __init__(
        self,
        name: str,
        identity: Identity,
        persistence: "StorageProvider",
        accesskey: Optional[bytes] = None,
        master: bool = False,
        crypto: Optional[CryptoProvider] = None,
        keychain: Optional["KeychainLookup"] = None,
        entries: Iterable[Dict[str, Any]] = (),
    ):
        """
        :param accesskey: master only; a fresh random key is generated when absent
        :param entries: signed entries carried inline by a stored copy
        """
        self.name = name
        self.persistence = persistence
        self.crypto = crypto or default_provider
        self.keychain = keychain
        self._master = master

        if master:
            if not identity.has_private:
                raise PermissionDenied("a master ACL needs an identity with private keys")
            if accesskey is None:
                accesskey = self.crypto.random_key()
            if len(accesskey) != ACCESSKEY_BYTES:
                raise CryptoFailure(f"accesskey must be {ACCESSKEY_BYTES} bytes, got {len(accesskey)}")
            self.identity = identity
        else:
            if accesskey is not None:
                raise MisuseError("a public ACL copy cannot carry an accesskey")
            self.identity = identity.public_part()
        self._accesskey = accesskey

        # The master is the only writer of its log, so its local view is complete
        self._list = SignedEntryList(self.identity, persistence, crypto=self.crypto, materialized=master)
        self._list.load(entries)

        self.public_url: Optional[str] = None
        self.published_urls: set[str] = set()
        self._publish_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        kind = "master" if self._master else "public"
        return f"<AccessControlList {self.name!r} {kind} entries={len(self._list)} public_url={self.public_url}>"

    @classmethod
    async def create(
        cls,
        name: str,
        identity: Identity,
        persistence: "StorageProvider",
        accesskey: Optional[bytes] = None,
        crypto: Optional[CryptoProvider] = None,
        keychain: Optional["KeychainLookup"] = None,
    ) -> "AccessControlList":
        """New master ACL, published and registered on the keychain if one is given."""
        acl = cls(name, identity, persistence, accesskey=accesskey, master=True, crypto=crypto, keychain=keychain)
        acl.publish()
        await acl.wait_published()
        if keychain is not None:
            keychain.add_acl(acl)
        log.info(f"[ACL NEW] name={name} public_url={acl.public_url}")
        return acl

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_master(self) -> bool:
        return self._master

    @property
    def accesskey(self) -> bytes:
        if not self._master:
            raise PermissionDenied("public ACL copies do not hold the accesskey")
        return self._accesskey

    @property
    def list_url(self) -> str:
        return self._list.list_url

    @property
    def materialized(self) -> bool:
        return self._list.materialized

    @property
    def entries(self) -> List[AccessEntry]:
        """All grants in list order. Raises MisuseError before materialize()."""
        return [AccessEntry.from_signed(e) for e in self._list.entries()]

    async def materialize(self) -> "AccessControlList":
        """Pull every persisted entry; required before tokens()/decrypt() on a fetched copy."""
        await self._list.materialize()
        return self

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------
    async def add_viewer(self, viewer_url: str) -> "AccessControlList":
        """
        Give the identity at viewer_url the ability to recover the accesskey.

        Adding the same viewer twice appends a second entry; both stay valid.

        :param viewer_url: url of the viewer's public Identity record
        :raises PermissionDenied: called on a public copy
        """
        if not self._master:
            raise PermissionDenied("Cant add viewers to a public copy of an ACL")
        log.info(f"[ACL ADD] acl={self.name} viewer={viewer_url}")

        viewer = await fetch_object(self.persistence, viewer_url, expect=KIND_IDENTITY)
        if viewer.url != viewer_url:
            raise InvalidRecordError(f"identity fetched from {viewer_url} addresses as {viewer.url}")

        token = viewer.encrypt_for(self._accesskey, crypto=self.crypto)
        await self._list.append(AccessEntry(viewer=viewer_url, token=token).to_dict())
        return self

    def tokens(self, viewer: Identity, decrypt: bool = False) -> List[Union[str, bytes]]:
        """
        Tokens addressed to viewer, in list order. There may be several if the
        viewer was added more than once.

        :param decrypt: unwrap each token with the viewer's private key
        :returns: list of token strings, or of accesskey bytes when decrypt
        :raises MisuseError: entries not materialized yet
        """
        toks: List[Union[str, bytes]] = [e.token for e in self.entries if e.viewer == viewer.url]
        if decrypt:
            toks = [viewer.decrypt(t, context=self, crypto=self.crypto) for t in toks]
        return toks

    # ------------------------------------------------------------------
    # Payload crypto
    # ------------------------------------------------------------------
    def encrypt(self, data: Union[bytes, str]) -> str:
        if not self._master:
            raise PermissionDenied("Cant encrypt with a public copy of an ACL, it has no accesskey")
        return self.crypto.sym_encrypt(data, self._accesskey)

    def decrypt(self, ciphertext: str, identities: Optional[Identities] = None) -> bytes:
        """
        Decrypt ciphertext with the first accesskey any candidate identity can recover.

        Identities are tried in the order given, each identity's tokens in list
        order. Only DecryptionFailure moves the search on; every other error
        propagates.

        :param identities: one Identity or a sequence; defaults to the keychain's identities
        :raises AuthenticationError: no candidate holds a usable grant
        """
        for viewer in self._candidates(identities):
            for accesskey in self._accesskeys_for(viewer):
                try:
                    return self.crypto.sym_decrypt(ciphertext, accesskey)
                except DecryptionFailure:
                    continue
        raise AuthenticationError(f"ACL.decrypt: No valid keys found for {self.name!r}")

    def _candidates(self, identities: Optional[Identities]) -> List[Identity]:
        if identities is None:
            if self.keychain is None:
                raise MisuseError("decrypt() needs identities when the ACL has no keychain")
            identities = self.keychain.local_identities()
        if isinstance(identities, Identity):
            return [identities]
        return list(identities)

    def _accesskeys_for(self, viewer: Identity) -> Iterator[bytes]:
        # The owner of a master holds the accesskey without needing an entry
        if self._master and viewer.url == self.identity.url:
            yield self._accesskey
        for token in self.tokens(viewer):
            try:
                accesskey = viewer.decrypt(token, context=self, crypto=self.crypto)
            except DecryptionFailure:
                log.debug(f"[ACL] token for {viewer.name} does not unwrap, skipping")
                continue
            yield accesskey

    def seal(self, data: Union[bytes, str, dict, list]) -> Envelope:
        """Encrypt data into an envelope that points at this ACL's public copy."""
        if self.public_url is None:
            self.publish()
        if isinstance(data, (dict, list)):
            data = json.dumps(data)
        return Envelope(acl=self.public_url, encrypted=self.encrypt(data))

    # ------------------------------------------------------------------
    # Serialization and publication
    # ------------------------------------------------------------------
    def public_dict(self) -> Dict[str, Any]:
        return {
            "kind": KIND_ACL,
            "schema_ver": SCHEMA_VERSION,
            "name": self.name,
            "identity": self.identity.public_dict(),
            "entries": [e.to_dict() for e in self._list.snapshot()],
        }

    def to_dict(self) -> Dict[str, Any]:
        """Master shape for a master (secrets included, keep it private), public shape otherwise."""
        d = self.public_dict()
        if self._master:
            d["accesskey"] = b64e(self._accesskey)
            d["identity"] = self.identity.to_dict(include_private=True)
        return d

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        persistence: "StorageProvider",
        crypto: Optional[CryptoProvider] = None,
        keychain: Optional["KeychainLookup"] = None,
    ) -> "AccessControlList":
        if not isinstance(data, dict) or data.get("kind") != KIND_ACL:
            kind = data.get("kind") if isinstance(data, dict) else type(data).__name__
            raise InvalidRecordError(f"expected an acl record, got kind={kind!r}")
        identity = Identity.from_dict(data.get("identity"))
        accesskey = data.get("accesskey")
        master = accesskey is not None
        if master and not identity.has_private:
            raise InvalidRecordError("master ACL record is missing its private identity")
        entries = data.get("entries", [])
        if not isinstance(entries, list):
            raise InvalidRecordError(f"acl record {data.get('name')!r} has non-list entries")
        try:
            accesskey = b64d(accesskey) if master else None
        except (ValueError, AttributeError) as e:
            raise InvalidRecordError(f"acl record {data.get('name')!r} has a malformed accesskey") from e
        return cls(
            data.get("name", ""),
            identity,
            persistence,
            accesskey=accesskey,
            master=master,
            crypto=crypto,
            keychain=keychain,
            entries=entries,
        )

    def public_copy(self) -> "AccessControlList":
        return AccessControlList(
            self.name,
            self.identity.public_part(),
            self.persistence,
            crypto=self.crypto,
            keychain=self.keychain,
            entries=[e.to_dict() for e in self._list.snapshot()],
        )

    def publish(self) -> str:
        """
        Store a public copy of this ACL in the background.

        The url is computed from the projection and assigned to public_url
        before the store completes; await wait_published() to know it landed.
        Must be called from a running event loop.
        """
        record = self.public_copy().public_dict()
        url = self.persistence.url_for(record)
        self.public_url = url
        self.published_urls.add(url)
        self._publish_task = asyncio.get_running_loop().create_task(self.persistence.store(record))
        self._publish_task.add_done_callback(self._on_published)
        log.debug(f"[ACL PUBLISH] name={self.name} url={url}")
        return url

    def _on_published(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            log.error(f"[ACL PUBLISH] store failed name={self.name}: {err!r}")

    async def wait_published(self) -> Optional[str]:
        if self._publish_task is None:
            return self.public_url
        await self._publish_task
        return self.public_url


@register(KIND_ACL)
def _load_acl(obj: Dict[str, Any], persistence: "StorageProvider", crypto: Optional[CryptoProvider] = None,
              keychain: Optional["KeychainLookup"] = None, **context) -> AccessControlList:
    return AccessControlList.from_dict(obj, persistence, crypto=crypto, keychain=keychain)
