"""
keyshare_core.identity
----------------------
An addressable actor: an Ed25519 signing keypair plus an X25519 encryption
keypair, referenced by the content address of its public record.

A full identity (private halves present) can sign and unwrap tokens; a
public identity fetched from storage can only verify and wrap.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING
from .constants import SCHEMA_VERSION, KIND_IDENTITY
from .crypto import CryptoProvider, default_provider, ed25519_generate, x25519_generate
from .errors import CryptoFailure, InvalidRecordError, PermissionDenied
from .records import register
from .utils import b64e, b64d, content_url

if TYPE_CHECKING:
    from .storage.provider import StorageProvider


@dataclass
class Identity:
    name: str
    sign_public: bytes
    enc_public: bytes
    sign_private: Optional[bytes] = field(default=None, repr=False)
    enc_private: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def generate(cls, name: str, seed: Optional[bytes] = None) -> "Identity":
        """Create a fresh identity, or a reproducible one from a 32-byte seed."""
        if seed is not None and len(seed) != 32:
            raise CryptoFailure("identity seed must be 32 bytes")
        sign_priv, sign_pub = ed25519_generate(seed)
        enc_priv, enc_pub = x25519_generate(seed)
        return cls(name=name, sign_public=sign_pub, enc_public=enc_pub,
                   sign_private=sign_priv, enc_private=enc_priv)

    @property
    def has_private(self) -> bool:
        return self.sign_private is not None and self.enc_private is not None

    @property
    def url(self) -> str:
        return content_url(self.public_dict())

    def public_part(self) -> "Identity":
        return Identity(name=self.name, sign_public=self.sign_public, enc_public=self.enc_public)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def public_dict(self) -> Dict[str, Any]:
        return {
            "kind": KIND_IDENTITY,
            "schema_ver": SCHEMA_VERSION,
            "name": self.name,
            "sign_public": b64e(self.sign_public),
            "enc_public": b64e(self.enc_public),
        }

    def to_dict(self, include_private: bool = False) -> Dict[str, Any]:
        d = self.public_dict()
        if include_private:
            if not self.has_private:
                raise PermissionDenied(f"identity {self.name!r} has no private key material")
            d["sign_private"] = b64e(self.sign_private)
            d["enc_private"] = b64e(self.enc_private)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        if not isinstance(data, dict) or data.get("kind") != KIND_IDENTITY:
            kind = data.get("kind") if isinstance(data, dict) else type(data).__name__
            raise InvalidRecordError(f"expected an identity record, got kind={kind!r}")
        sign_private = data.get("sign_private")
        enc_private = data.get("enc_private")
        try:
            return cls(
                name=data.get("name", ""),
                sign_public=b64d(data["sign_public"]),
                enc_public=b64d(data["enc_public"]),
                sign_private=b64d(sign_private) if sign_private else None,
                enc_private=b64d(enc_private) if enc_private else None,
            )
        except (KeyError, ValueError, AttributeError) as e:
            raise InvalidRecordError(f"malformed identity record {data.get('name')!r}: {e!r}") from e

    async def store(self, persistence: "StorageProvider") -> str:
        """Publish the public record; returns its url (same as self.url)."""
        return await persistence.store(self.public_dict())

    # ------------------------------------------------------------------
    # Crypto
    # ------------------------------------------------------------------
    def encrypt_for(self, data: bytes, crypto: Optional[CryptoProvider] = None) -> str:
        """Wrap data so only the holder of this identity's private key can read it."""
        return (crypto or default_provider).encrypt_for(self.enc_public, data)

    def decrypt(self, token: str, context: Any = None, crypto: Optional[CryptoProvider] = None) -> bytes:
        """
        Unwrap a token addressed to this identity.

        :param context: object the token belongs to, only used in error messages
        :raises PermissionDenied: public identity, nothing to decrypt with
        :raises DecryptionFailure: token was not wrapped for this identity
        """
        if self.enc_private is None:
            raise PermissionDenied(f"cannot decrypt with public identity {self.name!r} (context={context!r})")
        return (crypto or default_provider).decrypt_token(self.enc_private, token)

    def sign(self, data: bytes, crypto: Optional[CryptoProvider] = None) -> bytes:
        if self.sign_private is None:
            raise PermissionDenied(f"cannot sign with public identity {self.name!r}")
        return (crypto or default_provider).sign(self.sign_private, data)

    def verify(self, signature: bytes, data: bytes, crypto: Optional[CryptoProvider] = None) -> bool:
        return (crypto or default_provider).verify(self.sign_public, signature, data)


@register(KIND_IDENTITY)
def _load_identity(obj: Dict[str, Any], **context) -> Identity:
    return Identity.from_dict(obj)
