"""
keyshare_core.errors
--------------------
Error taxonomy shared by the ACL, the resolver and the crypto helpers.

Persistence failures are defined next to the providers in
keyshare_core.storage.provider and are never reinterpreted here.
"""


class KeyshareError(Exception):
    pass


class PermissionDenied(KeyshareError):
    """Secret-using or mutating operation attempted on a public (secret-less) copy."""


class MisuseError(KeyshareError):
    """Operation invoked out of protocol, e.g. reading entries before they were materialized."""


class AuthenticationError(KeyshareError):
    """None of the presented identities holds a grant that decrypts the payload."""


class CryptoFailure(KeyshareError):
    """Malformed ciphertext, token or key material."""


class DecryptionFailure(KeyshareError):
    """Well-formed ciphertext that does not open under the supplied key."""


class InvalidRecordError(KeyshareError):
    """Stored object has an unexpected or unknown kind."""
