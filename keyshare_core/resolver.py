from __future__ import annotations
import json
from typing import Any, Optional, TYPE_CHECKING
from .acl import AccessControlList
from .constants import KIND_ACL
from .crypto import CryptoProvider, default_provider
from .envelope import Envelope
from .errors import AuthenticationError, KeyshareError
from .logger import get_logger
from .records import fetch_object

if TYPE_CHECKING:
    from .keychain import KeychainLookup
    from .storage.provider import StorageProvider

log = get_logger("resolver")


class Resolver:
    """
    Turns a value that may be an encrypted envelope into plaintext.

    Masters held on the keychain are used directly; otherwise the ACL's
    public copy is fetched, its entries materialized, and the caller's
    identities searched for a grant.
    """

    def __init__(self, persistence: "StorageProvider", keychain: "KeychainLookup",
                 crypto: Optional[CryptoProvider] = None):
        self.persistence = persistence
        self.keychain = keychain
        self.crypto = crypto or default_provider

    async def resolve(self, value: Any) -> Any:
        """
        :param value: parsed wire value, possibly {acl, encrypted}
        :returns: value unchanged if not encrypted, otherwise the decrypted bytes
        :raises AuthenticationError: none of our identities can decrypt it
        :raises StorageError: the ACL could not be fetched
        """
        if not Envelope.is_encrypted(value):
            return value

        env = Envelope.from_dict(value)
        identities = list(self.keychain.local_identities())
        try:
            masters = list(self.keychain.masters_for(env.acl))
            if masters:
                # Masters sharing a name and identity publish under the same url
                log.debug(f"[RESOLVE] local masters={len(masters)} acl={env.acl}")
                for master in masters[:-1]:
                    try:
                        return master.decrypt(env.encrypted, [master.identity, *identities])
                    except AuthenticationError:
                        continue
                last = masters[-1]
                return last.decrypt(env.encrypted, [last.identity, *identities])

            log.debug(f"[RESOLVE] fetching acl={env.acl}")
            acl: AccessControlList = await fetch_object(
                self.persistence, env.acl, expect=KIND_ACL, crypto=self.crypto, keychain=self.keychain
            )
            await acl.materialize()
            return acl.decrypt(env.encrypted, identities)
        except KeyshareError as e:
            log.warning(f"Unable to decrypt envelope acl={env.acl}: {e.__class__.__name__}")
            raise

    async def resolve_json(self, value: Any) -> Any:
        """resolve(), then parse the decrypted payload as JSON."""
        data = await self.resolve(value)
        if data is value:
            return value
        return json.loads(data)
