import logging
import pytest
from keyshare_core import CryptoFailure, DecryptionFailure, Identity, InvalidRecordError, PermissionDenied
from keyshare_core.logger import configure, get_logger
from keyshare_core.crypto import (
    ed25519_generate, ed25519_sign, ed25519_verify,
    random_key, sym_encrypt, sym_decrypt, x25519_generate, encrypt_for, decrypt_token,
)
from keyshare_core.signed_list import SignedEntry
from keyshare_core.utils import content_url


def test_sign_verify():
    priv, pub = ed25519_generate()
    sig = ed25519_sign(priv, b"entry")
    assert ed25519_verify(pub, sig, b"entry")
    assert not ed25519_verify(pub, sig, b"entrY")


def test_sym_encrypt_decrypt():
    key = random_key()
    assert len(key) == 32
    ct = sym_encrypt("hello", key)
    assert sym_decrypt(ct, key) == b"hello"


def test_sym_decrypt_wrong_key_is_decryption_failure():
    ct = sym_encrypt(b"payload", random_key())
    with pytest.raises(DecryptionFailure):
        sym_decrypt(ct, random_key())


@pytest.mark.parametrize("ciphertext", ["not base64!!", "AAAA", ""])
def test_sym_decrypt_malformed_is_crypto_failure(ciphertext):
    with pytest.raises(CryptoFailure):
        sym_decrypt(ciphertext, random_key())


def test_sym_encrypt_rejects_short_key():
    with pytest.raises(CryptoFailure):
        sym_encrypt(b"x", b"short")


def test_token_wrap_unwrap():
    r_priv, r_pub = x25519_generate()
    other_priv, _ = x25519_generate()
    key = random_key()
    token = encrypt_for(r_pub, key)
    assert decrypt_token(r_priv, token) == key
    with pytest.raises(DecryptionFailure):
        decrypt_token(other_priv, token)


def test_identity_seed_is_deterministic():
    seed = b"\x07" * 32
    a = Identity.generate("a", seed=seed)
    b = Identity.generate("a", seed=seed)
    assert a.url == b.url
    assert a.sign_public != a.enc_public


def test_identity_public_part():
    ident = Identity.generate("viewer")
    pub = ident.public_part()
    assert pub.url == ident.url
    assert not pub.has_private
    assert "sign_private" not in pub.to_dict()
    assert ident.url == content_url(ident.public_dict())

    token = pub.encrypt_for(b"k" * 32)
    assert ident.decrypt(token) == b"k" * 32
    with pytest.raises(PermissionDenied):
        pub.decrypt(token)
    with pytest.raises(PermissionDenied):
        pub.to_dict(include_private=True)


def test_identity_private_export_roundtrip():
    ident = Identity.generate("owner")
    restored = Identity.from_dict(ident.to_dict(include_private=True))
    assert restored.has_private
    assert restored.url == ident.url
    assert restored.decrypt(ident.encrypt_for(b"secret")) == b"secret"


def test_signed_entry_verify():
    signer = Identity.generate("acl")
    other = Identity.generate("other")
    entry = SignedEntry.create({"viewer": "ks:/sha256/00", "token": "abc"}, signer)
    assert entry.verify(signer)
    assert not entry.verify(other)

    tampered = SignedEntry(data={"viewer": "ks:/sha256/01", "token": "abc"},
                           signature=entry.signature, signedby=entry.signedby)
    assert not tampered.verify(signer)
    assert not SignedEntry.from_dict({"data": entry.data, "signature": "@@", "signedby": signer.url}).verify(signer)


@pytest.mark.parametrize("record", [
    {"kind": "identity"},
    {"kind": "identity", "sign_public": "@@", "enc_public": "AA=="},
    {"kind": "identity", "sign_public": 5, "enc_public": 5},
    {"kind": "acl"},
    "identity",
    None,
])
def test_identity_from_malformed_record(record):
    with pytest.raises(InvalidRecordError):
        Identity.from_dict(record)


def test_signed_entry_from_malformed_record():
    for d in ({"data": "x", "signature": "s", "signedby": "u"}, {"data": {}}, ["data"]):
        with pytest.raises(InvalidRecordError):
            SignedEntry.from_dict(d)


def test_component_loggers_share_one_handler(monkeypatch, caplog):
    acl_log, list_log = get_logger("acl"), get_logger("signed_list")
    root = logging.getLogger("keyshare")
    assert acl_log.name == "keyshare.acl"
    assert list_log.parent is root
    assert len(root.handlers) == 1
    assert not acl_log.handlers

    monkeypatch.setenv("KEYSHARE_LOG_LEVEL", "debug")
    get_logger("resolver")
    assert root.level == logging.DEBUG
    configure(level="INFO")

    acl_log.warning("component message")
    assert "component message" in caplog.text
