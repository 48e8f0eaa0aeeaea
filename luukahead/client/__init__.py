"""Client-side helpers: field encryption and the passkey cache."""
from luukahead.client.crypto import (
    decrypt_string,
    decrypt_work_item,
    encrypt_string,
    encrypt_work_item,
    validate_passkey,
)
from luukahead.client.passkeys import PasskeyCache

__all__ = [
    "PasskeyCache",
    "decrypt_string",
    "decrypt_work_item",
    "encrypt_string",
    "encrypt_work_item",
    "validate_passkey",
]
