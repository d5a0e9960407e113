"""Payload value type and the metadata contract on the wire.

A payload is an opaque byte buffer plus string-keyed byte metadata.
Two metadata keys are reserved: the encoding marker and the encryption
key id.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from khipu.errors import DecodeError

METADATA_ENCODING = "encoding"
METADATA_ENCRYPTION_KEY_ID = "encryption-key-id"

ENCODING_ENCRYPTED = "binary/encrypted"
ENCODING_JSON = "json/plain"
ENCODING_ZLIB = "binary/zlib"


@dataclass(frozen=True)
class Payload:
    data: bytes = b""
    metadata: dict[str, bytes] = field(default_factory=dict)

    @classmethod
    def json(cls, value: Any) -> Payload:
        """Build a plain structured payload from a JSON-compatible value."""
        return cls(
            data=json.dumps(value, separators=(",", ":")).encode("utf-8"),
            metadata={METADATA_ENCODING: ENCODING_JSON.encode()},
        )

    @property
    def encoding(self) -> str | None:
        raw = self.metadata.get(METADATA_ENCODING)
        return raw.decode("utf-8", errors="replace") if raw is not None else None

    def to_json(self) -> dict[str, Any]:
        """Wire form: base64 metadata values and base64 data."""
        return {
            "metadata": {
                k: base64.b64encode(v).decode("ascii")
                for k, v in self.metadata.items()
            },
            "data": base64.b64encode(self.data).decode("ascii"),
        }

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> Payload:
        try:
            metadata = {
                str(k): base64.b64decode(v, validate=True)
                for k, v in (obj.get("metadata") or {}).items()
            }
            data = base64.b64decode(obj.get("data") or "", validate=True)
        except (binascii.Error, TypeError, ValueError, AttributeError) as exc:
            raise DecodeError(f"Malformed payload wire form: {exc}") from exc
        return cls(data=data, metadata=metadata)
