"""AES-256-GCM cipher primitive for token protection.

Wire format:
    [nonce (12 bytes)] [ciphertext + auth tag (16 bytes)]

Failures surface as CryptoError so they are never confused with
content store failures.
"""

from __future__ import annotations

import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from khipu.errors import CryptoError

KEY_SIZE = 32  # 256 bits
NONCE_SIZE = 12  # 96 bits (standard for GCM)
AUTH_TAG_SIZE = 16


def _cipher(key: bytes) -> AESGCM:
    if len(key) != KEY_SIZE:
        raise CryptoError(f"Key must be {KEY_SIZE} bytes, got {len(key)} bytes")
    return AESGCM(key)


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt plaintext, returning nonce || ciphertext."""
    aesgcm = _cipher(key)
    nonce = os.urandom(NONCE_SIZE)
    return nonce + aesgcm.encrypt(nonce, plaintext, None)


def decrypt(blob: bytes, key: bytes) -> bytes:
    """Decrypt a blob produced by encrypt().

    Raises:
        CryptoError: If the blob is malformed, the key is wrong, or the
            data was tampered with.
    """
    aesgcm = _cipher(key)
    if len(blob) < NONCE_SIZE + AUTH_TAG_SIZE:
        raise CryptoError(
            f"Ciphertext too small: {len(blob)} bytes, "
            f"minimum {NONCE_SIZE + AUTH_TAG_SIZE} bytes required"
        )
    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return aesgcm.decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise CryptoError("Decryption failed: authentication tag mismatch") from exc


def generate_key() -> bytes:
    """Generate a new 256-bit key."""
    return secrets.token_bytes(KEY_SIZE)
