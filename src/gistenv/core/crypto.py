"""
Per-value authenticated encryption for env values.

Encrypted values are self-describing tokens:
    ENC:base64(salt || nonce || tag || ciphertext)

The key is derived from a passphrase with PBKDF2-HMAC-SHA512 and a fresh
salt on every call, and the value is sealed with AES-256-GCM. Values that
don't carry the prefix are treated as plaintext and pass through untouched.
"""

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


ENCRYPTION_PREFIX = "ENC:"

SALT_LENGTH = 64
NONCE_LENGTH = 12  # 96-bit nonce for AES-GCM
TAG_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 100_000

MIN_KEY_LENGTH = 16


class DecryptionError(ValueError):
    """Raised when an encrypted value can't be decoded or authenticated."""


def is_available(key: Optional[str]) -> bool:
    """
    Check whether a key is usable for encryption.

    Args:
        key: Passphrase from configuration, or None

    Returns:
        True if the key is at least MIN_KEY_LENGTH characters long
    """
    return isinstance(key, str) and len(key) >= MIN_KEY_LENGTH


def is_encrypted(value: str) -> bool:
    """Check whether a value carries the encrypted-value prefix."""
    return value.startswith(ENCRYPTION_PREFIX)


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """Derive a 256-bit AES key from a passphrase and salt."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt_value(value: str, key: str) -> str:
    """
    Encrypt a single value.

    Empty values are returned as-is. Every call uses a fresh salt and nonce,
    so encrypting the same value twice gives different tokens.

    Args:
        value: Plaintext value
        key: Passphrase

    Returns:
        Token in the form "ENC:<base64>"
    """
    if not value:
        return value

    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    aesgcm = AESGCM(derive_key(key, salt))

    # AESGCM appends the tag to the ciphertext; the token stores it up front
    sealed = aesgcm.encrypt(nonce, value.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    payload = salt + nonce + tag + ciphertext
    return ENCRYPTION_PREFIX + base64.b64encode(payload).decode("ascii")


def decrypt_value(value: str, key: str) -> str:
    """
    Decrypt a token produced by encrypt_value.

    Values without the "ENC:" prefix are returned unchanged.

    Args:
        value: Token or plaintext value
        key: Passphrase

    Returns:
        Decrypted plaintext

    Raises:
        DecryptionError: If the token is malformed, truncated, or fails
            authentication (wrong key or tampered data)
    """
    if not is_encrypted(value):
        return value

    encoded = value[len(ENCRYPTION_PREFIX):]
    try:
        payload = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Failed to decrypt value: invalid base64 ({e})") from e

    header_length = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH
    if len(payload) < header_length:
        raise DecryptionError(
            f"Failed to decrypt value: payload is {len(payload)} bytes, "
            f"expected at least {header_length}"
        )

    salt = payload[:SALT_LENGTH]
    nonce = payload[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
    tag = payload[SALT_LENGTH + NONCE_LENGTH:header_length]
    ciphertext = payload[header_length:]

    aesgcm = AESGCM(derive_key(key, salt))
    try:
        plaintext = aesgcm.decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise DecryptionError(
            "Failed to decrypt value: authentication failed (wrong key or corrupted data)"
        ) from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(f"Failed to decrypt value: {e}") from e
