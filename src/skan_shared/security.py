"""
Security helpers for hashing and verifying staff passwords.

Passwords are stored as a scrypt digest (hex) plus a per-user hex salt. The
salt string itself is the scrypt salt, so existing provisioning data keeps
verifying.
"""

from __future__ import annotations

import hmac
import secrets

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_LENGTH = 64
SALT_BYTES = 16

# Fixed input used to burn the same CPU time when the account does not exist.
_DUMMY_SALT = "0" * (SALT_BYTES * 2)
_DUMMY_HASH = "0" * (SCRYPT_LENGTH * 2)


def normalize_identifier(value: str | None) -> str:
    """Normalize identifiers such as emails before lookups and lockout keys."""
    if not value:
        return ""
    return value.strip().lower()


def generate_salt() -> str:
    return secrets.token_hex(SALT_BYTES)


def _derive(password: str, salt: str) -> str:
    # A Scrypt instance can only derive once.
    kdf = Scrypt(salt=salt.encode("utf-8"), length=SCRYPT_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(password.encode("utf-8")).hex()


def hash_password(password: str, salt: str | None = None) -> tuple[str, str]:
    """
    Hash a password for storage.

    Returns:
        (password_hash, password_salt), both hex strings.
    """
    salt = salt or generate_salt()
    return _derive(password, salt), salt


def verify_password(password: str | None, stored_hash: str | None, salt: str | None) -> bool:
    """Compare a candidate password against the stored digest in constant time."""
    if not stored_hash or not salt or password is None:
        return False
    candidate = _derive(password, salt)
    return hmac.compare_digest(candidate, stored_hash.lower())


def burn_password_check(password: str | None) -> None:
    """Run a full scrypt derivation whose result is discarded."""
    verify_password(password or "", _DUMMY_HASH, _DUMMY_SALT)
