# luukahead/client/crypto.py
"""
Client-side encryption of sensitive work-item fields.

The passphrase never leaves the client; the server stores and returns the
encoded string as opaque text.

Encoded field layout (base64 of the concatenation):

    salt (16 bytes) | nonce (12 bytes) | AES-256-GCM ciphertext + tag

- Key: PBKDF2-HMAC-SHA256, 100,000 iterations, fresh salt per call
- Empty strings are stored as-is (unset fields)

Decryption is fail-soft: with the wrong passphrase, or on malformed input,
``decrypt_string`` returns its input unchanged instead of raising, so a
page renders ciphertext rather than crashing. ``validate_passkey`` is the
one place that reports whether a passphrase is actually right.
"""
import asyncio
import base64
import binascii
import logging
import os
from typing import Any, Dict, Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32
SALT_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16

SENSITIVE_FIELDS = ("title", "description", "remarks")

DECRYPTION_FAILED_PREFIX = "⚠️ DECRYPTION FAILED: "
WRONG_PASSKEY_MARKER = "⚠️ Wrong passkey - cannot decrypt"


class DecryptionError(Exception):
    """Raised by the strict decryption path only."""
    pass


def derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt_string(plaintext: str, passphrase: str) -> str:
    """
    Encrypt one field value.

    Args:
        plaintext: Field value; "" is returned unchanged
        passphrase: The project's passkey

    Returns:
        base64(salt | nonce | ciphertext+tag)
    """
    if not plaintext:
        return plaintext

    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    key = derive_key(passphrase, salt)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)

    return base64.b64encode(salt + nonce + ciphertext).decode("ascii")


def _decrypt_strict(encoded: str, passphrase: str) -> str:
    try:
        combined = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("Input is not valid base64") from e

    if len(combined) < SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH:
        raise DecryptionError("Input is too short to be an encrypted field")

    salt = combined[:SALT_LENGTH]
    nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
    ciphertext = combined[SALT_LENGTH + NONCE_LENGTH:]

    key = derive_key(passphrase, salt)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError("Authentication failed; wrong passkey?") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted bytes are not UTF-8") from e


def decrypt_string(encoded: str, passphrase: str) -> str:
    """
    Decrypt one field value, returning ``encoded`` unchanged on any failure.
    """
    if not encoded:
        return encoded

    try:
        return _decrypt_strict(encoded, passphrase)
    except DecryptionError as e:
        logger.warning("Decryption failed: %s", e)
        return encoded


def validate_passkey(encrypted_sample: str, passphrase: str) -> bool:
    """
    True only if ``passphrase`` really decrypts ``encrypted_sample``.

    An empty sample proves nothing and is reported as False.
    """
    if not encrypted_sample:
        return False
    try:
        _decrypt_strict(encrypted_sample, passphrase)
    except DecryptionError:
        return False
    return True


# ─────────────────────────────────────────────────────────────────────────────
# Work-item helpers
# PBKDF2 is CPU-bound, so each field runs in a worker thread.
# ─────────────────────────────────────────────────────────────────────────────
async def encrypt_work_item(item: Mapping[str, Any], passphrase: Optional[str]) -> Dict[str, Any]:
    """Copy of ``item`` with its non-empty sensitive fields encrypted."""
    result = dict(item)
    if not passphrase:
        return result

    for field in SENSITIVE_FIELDS:
        value = result.get(field)
        if value:
            result[field] = await asyncio.to_thread(encrypt_string, value, passphrase)
    return result


async def decrypt_work_item(item: Mapping[str, Any], passphrase: Optional[str]) -> Dict[str, Any]:
    """
    Copy of ``item`` with its non-empty sensitive fields decrypted.

    decrypt_string does not raise, but if anything else in the pipeline
    does, the fields are replaced with visible failure markers.
    """
    result = dict(item)
    if not passphrase:
        return result

    try:
        for field in SENSITIVE_FIELDS:
            value = result.get(field)
            if value:
                result[field] = await asyncio.to_thread(decrypt_string, value, passphrase)
    except Exception:
        logger.exception("Failed to decrypt work item %s", item.get("id"))
        title = item.get("title") or ""
        failed = dict(item)
        failed["title"] = f"{DECRYPTION_FAILED_PREFIX}{title[:20]}..."
        failed["description"] = WRONG_PASSKEY_MARKER
        failed["remarks"] = WRONG_PASSKEY_MARKER
        return failed

    return result
