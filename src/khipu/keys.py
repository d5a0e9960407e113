"""Key resolution: key id -> raw symmetric key material.

Production deployments put a secrets service behind KeyResolver; its
latency and retry policy are its own concern. StaticKeyResolver serves
keys loaded from configuration.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from khipu.cipher import KEY_SIZE
from khipu.errors import ConfigError, UnknownKeyIDError


@runtime_checkable
class KeyResolver(Protocol):
    def resolve(self, key_id: str) -> bytes:
        """Return key material for key_id or raise UnknownKeyIDError."""
        ...


class StaticKeyResolver:
    """Fixed key table. Read-only after construction, safe to share."""

    def __init__(self, keys: Mapping[str, bytes]) -> None:
        self._keys = MappingProxyType(dict(keys))

    def resolve(self, key_id: str) -> bytes:
        try:
            return self._keys[key_id]
        except KeyError:
            raise UnknownKeyIDError(f"No key material for key id {key_id!r}") from None

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._keys


def parse_key(text: str) -> bytes:
    """Decode base64 or hex key text into exactly KEY_SIZE bytes."""
    text = text.strip()
    try:
        decoded = bytes.fromhex(text)
        if len(decoded) == KEY_SIZE:
            return decoded
    except ValueError:
        pass
    try:
        decoded = base64.b64decode(text, validate=True)
        if len(decoded) == KEY_SIZE:
            return decoded
    except (binascii.Error, ValueError):
        pass
    raise ConfigError(f"Key must encode {KEY_SIZE} bytes as base64 or hex")


def resolver_from_config(config) -> StaticKeyResolver:
    """Build a resolver from KhipuConfig.keys (id -> encoded key)."""
    return StaticKeyResolver({key_id: parse_key(text) for key_id, text in config.keys.items()})
