from __future__ import annotations
from typing import Tuple, Optional
from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
import os, binascii
from .constants import ACCESSKEY_BYTES, NONCE_BYTES, X25519_KEY_BYTES, TOKEN_HKDF_INFO
from .errors import CryptoFailure, DecryptionFailure
from .utils import b64e, b64d, to_bytes

"""
keyshare_core.crypto
--------------------
Cryptographic primitives for keyshare:

- Ed25519: signatures over access entries
- AES-256-GCM: payload encryption under an ACL accesskey
- X25519 + HKDF + AES-GCM: wrapping an accesskey for one viewer

Failures are split in two: a well-formed ciphertext that does not open
under the given key raises DecryptionFailure, anything malformed raises
CryptoFailure. Callers searching over candidate keys rely on that split.
"""

_TAG_BYTES = 16

# --------- Ed25519 (sign/verify) ----------
def ed25519_generate(seed: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    if seed is None:
        sk = ed25519.Ed25519PrivateKey.generate()
    else:
        sk = ed25519.Ed25519PrivateKey.from_private_bytes(seed)
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()

def ed25519_sign(priv_raw: bytes, data: bytes) -> bytes:
    sk = ed25519.Ed25519PrivateKey.from_private_bytes(priv_raw)
    return sk.sign(data)

def ed25519_verify(pub_raw: bytes, sig: bytes, data: bytes) -> bool:
    try:
        ed25519.Ed25519PublicKey.from_public_bytes(pub_raw).verify(sig, data)
        return True
    except (InvalidSignature, ValueError):
        return False

# --------- X25519 ----------
def x25519_generate(seed: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    if seed is None:
        sk = x25519.X25519PrivateKey.generate()
    else:
        # Separate the encryption key from the signing key derived from the same seed
        raw = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=b"keyshare-x25519-seed").derive(seed)
        sk = x25519.X25519PrivateKey.from_private_bytes(raw)
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()

def derive_key(private_raw: bytes, peer_pub: bytes, info: bytes = TOKEN_HKDF_INFO) -> bytes:
    sk = x25519.X25519PrivateKey.from_private_bytes(private_raw)
    shared = sk.exchange(x25519.X25519PublicKey.from_public_bytes(peer_pub))
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=info)
    return hkdf.derive(shared)  # 256-bit AEAD key

# --------- AES-GCM ----------
def random_key() -> bytes:
    return os.urandom(ACCESSKEY_BYTES)

def aead_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    aes = AESGCM(key)
    nonce = os.urandom(NONCE_BYTES)
    ct = aes.encrypt(nonce, plaintext, aad)
    return nonce, ct

def aead_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    try:
        aes = AESGCM(key)
    except (TypeError, ValueError) as e:
        raise CryptoFailure(f"unusable symmetric key: {e}") from e
    try:
        return aes.decrypt(nonce, ciphertext, aad)
    except InvalidTag as e:
        raise DecryptionFailure("ciphertext does not open under this key") from e

def _decode(blob: str, minimum: int, what: str) -> bytes:
    try:
        raw = b64d(blob)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise CryptoFailure(f"{what} is not valid base64") from e
    if len(raw) < minimum:
        raise CryptoFailure(f"{what} is truncated ({len(raw)} bytes)")
    return raw

def sym_encrypt(data: bytes | str, key: bytes) -> str:
    """Encrypt data under a symmetric key, returns base64(nonce || ciphertext)."""
    if len(key) != ACCESSKEY_BYTES:
        raise CryptoFailure(f"accesskey must be {ACCESSKEY_BYTES} bytes")
    nonce, ct = aead_encrypt(key, to_bytes(data))
    return b64e(nonce + ct)

def sym_decrypt(ciphertext: str, key: bytes) -> bytes:
    raw = _decode(ciphertext, NONCE_BYTES + _TAG_BYTES, "ciphertext")
    return aead_decrypt(key, raw[:NONCE_BYTES], raw[NONCE_BYTES:])

# --------- Token wrapping (ephemeral X25519 -> HKDF -> AES-GCM) ----------
def encrypt_for(recipient_pub: bytes, data: bytes) -> str:
    """Wrap bytes for the holder of recipient_pub, returns base64(ephemeral_pub || nonce || ct)."""
    try:
        eph_priv, eph_pub = x25519_generate()
        key = derive_key(eph_priv, recipient_pub)
    except ValueError as e:
        raise CryptoFailure(f"invalid recipient public key: {e}") from e
    nonce, ct = aead_encrypt(key, data)
    return b64e(eph_pub + nonce + ct)

def decrypt_token(private_raw: bytes, token: str) -> bytes:
    raw = _decode(token, X25519_KEY_BYTES + NONCE_BYTES + _TAG_BYTES, "token")
    eph_pub = raw[:X25519_KEY_BYTES]
    nonce = raw[X25519_KEY_BYTES:X25519_KEY_BYTES + NONCE_BYTES]
    try:
        key = derive_key(private_raw, eph_pub)
    except ValueError as e:
        raise CryptoFailure(f"invalid token key material: {e}") from e
    return aead_decrypt(key, nonce, raw[X25519_KEY_BYTES + NONCE_BYTES:])


class CryptoProvider:
    """
    Narrow interface the ACL and the resolver consume.

    The default implementation delegates to the module functions; tests
    substitute their own to inject failures.
    """

    def random_key(self) -> bytes:
        return random_key()

    def sym_encrypt(self, data: bytes | str, key: bytes) -> str:
        return sym_encrypt(data, key)

    def sym_decrypt(self, ciphertext: str, key: bytes) -> bytes:
        return sym_decrypt(ciphertext, key)

    def encrypt_for(self, recipient_pub: bytes, data: bytes) -> str:
        return encrypt_for(recipient_pub, data)

    def decrypt_token(self, private_raw: bytes, token: str) -> bytes:
        return decrypt_token(private_raw, token)

    def sign(self, priv_raw: bytes, data: bytes) -> bytes:
        return ed25519_sign(priv_raw, data)

    def verify(self, pub_raw: bytes, sig: bytes, data: bytes) -> bool:
        return ed25519_verify(pub_raw, sig, data)


default_provider = CryptoProvider()
