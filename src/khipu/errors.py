"""Exception taxonomy for the payload codec.

Every failure aborts the batch it occurred in. Callers distinguish
key and ciphertext problems (CryptoError, MissingKeyIDError,
UnknownKeyIDError) from store problems (StoreError, NotFoundError).
"""

from __future__ import annotations


class KhipuError(Exception):
    """Base class for all codec errors."""


class DecodeError(KhipuError):
    """Payload bytes are not structured, re-serializable data."""


class StoreError(KhipuError):
    """Content store rejected or failed an insert/retrieve."""


class NotFoundError(StoreError):
    """No stored record exists for the requested token."""


class CryptoError(KhipuError):
    """Encryption or decryption failed (bad key, tampering, bad format)."""


class MissingKeyIDError(KhipuError):
    """A protected payload carries no encryption key id."""


class UnknownKeyIDError(KhipuError):
    """The key resolver has no material for the requested key id."""


class PipelineOrderError(KhipuError):
    """The codec chain violates the stage placement rule."""


class ConfigError(KhipuError):
    """Configuration values are missing or malformed."""
