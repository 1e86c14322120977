from __future__ import annotations
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence
from .errors import PermissionDenied
from .identity import Identity

if TYPE_CHECKING:
    from .acl import AccessControlList


class KeychainLookup(Protocol):
    """What the ACL and the resolver need to know about the caller's own keys."""

    def local_identities(self) -> Sequence[Identity]:
        ...

    def find_by_public_url(self, url: str) -> Optional["AccessControlList"]:
        ...

    def masters_for(self, url: str) -> Sequence["AccessControlList"]:
        ...


class KeyChain:
    """
    The caller's private material: identities it can decrypt with and the
    master ACLs it owns. Passed explicitly to ACLs and resolvers.
    """

    def __init__(self, name: str = "default", identities: Sequence[Identity] = ()):
        self.name = name
        self._identities: List[Identity] = []
        self._acls: List["AccessControlList"] = []
        for identity in identities:
            self.add_identity(identity)

    def add_identity(self, identity: Identity) -> Identity:
        if not identity.has_private:
            raise PermissionDenied(f"keychain {self.name!r} only holds identities with private keys")
        if all(i.url != identity.url for i in self._identities):
            self._identities.append(identity)
        return identity

    def add_acl(self, acl: "AccessControlList") -> "AccessControlList":
        if not acl.is_master:
            raise PermissionDenied("only master ACLs belong on a keychain")
        if acl not in self._acls:
            self._acls.append(acl)
        return acl

    def local_identities(self) -> List[Identity]:
        return list(self._identities)

    def masters_for(self, url: str) -> List["AccessControlList"]:
        """Every master that has ever published under url, in the order they were added."""
        return [acl for acl in self._acls if url in acl.published_urls]

    def find_by_public_url(self, url: str) -> Optional["AccessControlList"]:
        return next(iter(self.masters_for(url)), None)
