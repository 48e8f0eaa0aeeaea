# luukahead/app/security/hashing.py
"""
Password hashing for username/password accounts.

Format stored in user.password_hash:

    base64(salt) + ":" + base64(digest)

- PBKDF2-HMAC-SHA256, 100,000 iterations
- 16-byte random salt per password
- 32-byte derived digest

OAuth-only accounts have no stored hash; verifying against them raises
PasswordNotSetError instead of returning False, so the login handler can
tell the user to sign in with their provider.
"""
import base64
import binascii
import hmac
import secrets
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

PBKDF2_ITERATIONS = 100_000
PBKDF2_KEYLEN = 32
SALT_LENGTH = 16


class PasswordNotSetError(Exception):
    """The account exists but has no password (OAuth-only)."""
    pass


def generate_salt() -> bytes:
    return secrets.token_bytes(SALT_LENGTH)


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """
    Derive the storable hash for a password.

    Args:
        password: Plaintext password
        salt: Salt bytes; a fresh random salt is generated when omitted

    Returns:
        "base64(salt):base64(digest)"
    """
    if salt is None:
        salt = generate_salt()

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=PBKDF2_KEYLEN,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    digest = kdf.derive(password.encode("utf-8"))
    return f"{base64.b64encode(salt).decode('ascii')}:{base64.b64encode(digest).decode('ascii')}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    """
    Check a password against a stored hash.

    Args:
        password: Plaintext password supplied at login
        stored: Value of user.password_hash

    Returns:
        True if the password matches, False otherwise (including a
        malformed stored value)

    Raises:
        PasswordNotSetError: if the account has no stored hash
    """
    if not stored:
        raise PasswordNotSetError("This account has no password set.")

    salt_b64, sep, digest_b64 = stored.partition(":")
    if not sep or not salt_b64 or not digest_b64:
        return False

    try:
        salt = base64.b64decode(salt_b64, validate=True)
    except (binascii.Error, ValueError):
        return False

    _, candidate_b64 = hash_password(password, salt).split(":", 1)
    return hmac.compare_digest(candidate_b64.encode("ascii"), digest_b64.encode("ascii", "replace"))
