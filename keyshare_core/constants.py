# keyshare_core/constants.py

SCHEMA_VERSION = "1.0"

# Content addresses are "<URL_PREFIX><sha256 hex of canonical json>"
URL_PREFIX = "ks:/sha256/"

ACCESSKEY_BYTES = 32
NONCE_BYTES = 12
X25519_KEY_BYTES = 32

TOKEN_HKDF_INFO = b"keyshare-token-v1"

KIND_IDENTITY = "identity"
KIND_ACL = "acl"
