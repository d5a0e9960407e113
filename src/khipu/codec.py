"""Payload codecs: the tokenizing codec and the zlib stage.

TokenizingCodec never encrypts payload content. It stores the content
under a fresh random token, encrypts only the token, and emits the
ciphertext. Decoding reverses this through the content store.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import uuid
import zlib
from typing import TYPE_CHECKING

from khipu import cipher
from khipu.errors import CryptoError, DecodeError, MissingKeyIDError
from khipu.keys import KeyResolver
from khipu.payload import (
    ENCODING_ENCRYPTED,
    ENCODING_JSON,
    ENCODING_ZLIB,
    METADATA_ENCODING,
    METADATA_ENCRYPTION_KEY_ID,
    Payload,
)
from khipu.store.base import COLLECTION, ID_FIELD, ContentStore

if TYPE_CHECKING:
    from khipu.pipeline import CodecContext

logger = logging.getLogger("khipu.codec")


@dataclasses.dataclass(frozen=True)
class TokenizingCodec:
    """Replaces JSON object payloads with encrypted tokens.

    The top-level "_id" field is reserved for the token; content that
    already carries one is rejected rather than overwritten.
    """

    key_id: str
    resolver: KeyResolver
    store: ContentStore
    collection: str = COLLECTION

    def with_context(self, context: CodecContext) -> TokenizingCodec:
        """Copy with the context's key id and store where it sets them."""
        return dataclasses.replace(
            self,
            key_id=context.key_id or self.key_id,
            store=context.store or self.store,
        )

    def encode(self, payloads: list[Payload]) -> list[Payload]:
        logger.debug("Tokenizing %d payload(s) with key %s", len(payloads), self.key_id)
        return [self._encode_one(p) for p in payloads]

    def decode(self, payloads: list[Payload]) -> list[Payload]:
        logger.debug("Detokenizing %d payload(s)", len(payloads))
        return [self._decode_one(p) for p in payloads]

    def _encode_one(self, payload: Payload) -> Payload:
        try:
            record = json.loads(payload.data)
        except (UnicodeDecodeError, ValueError) as exc:
            raise DecodeError(f"Payload is not valid JSON: {exc}") from exc
        if not isinstance(record, dict):
            raise DecodeError(
                f"Payload must be a JSON object, got {type(record).__name__}"
            )
        if ID_FIELD in record:
            raise DecodeError(f"Payload content may not contain reserved field {ID_FIELD!r}")

        token = str(uuid.uuid4())
        record[ID_FIELD] = token
        self.store.insert(self.collection, record)

        key = self.resolver.resolve(self.key_id)
        return Payload(
            data=cipher.encrypt(token.encode("utf-8"), key),
            metadata={
                METADATA_ENCODING: ENCODING_ENCRYPTED.encode(),
                METADATA_ENCRYPTION_KEY_ID: self.key_id.encode("utf-8"),
            },
        )

    def _decode_one(self, payload: Payload) -> Payload:
        if payload.encoding != ENCODING_ENCRYPTED:
            return payload

        raw_key_id = payload.metadata.get(METADATA_ENCRYPTION_KEY_ID)
        if raw_key_id is None:
            raise MissingKeyIDError("Protected payload has no encryption key id")
        key = self.resolver.resolve(raw_key_id.decode("utf-8", errors="replace"))

        try:
            token = cipher.decrypt(payload.data, key).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CryptoError("Decrypted token is not valid UTF-8") from exc

        record = self.store.retrieve(self.collection, token)
        record.pop(ID_FIELD, None)
        return Payload(
            data=json.dumps(record, separators=(",", ":")).encode("utf-8"),
            metadata={METADATA_ENCODING: ENCODING_JSON.encode()},
        )


@dataclasses.dataclass(frozen=True)
class ZlibCodec:
    """Compresses whole payloads, metadata included.

    With always_encode=False a payload is left as-is when compression
    does not shrink it.
    """

    always_encode: bool = True
    level: int = zlib.Z_DEFAULT_COMPRESSION

    def encode(self, payloads: list[Payload]) -> list[Payload]:
        result = []
        for p in payloads:
            inner = json.dumps(p.to_json(), separators=(",", ":")).encode("utf-8")
            compressed = zlib.compress(inner, self.level)
            if not self.always_encode and len(compressed) >= len(inner):
                result.append(p)
                continue
            result.append(
                Payload(data=compressed, metadata={METADATA_ENCODING: ENCODING_ZLIB.encode()})
            )
        return result

    def decode(self, payloads: list[Payload]) -> list[Payload]:
        result = []
        for p in payloads:
            if p.encoding != ENCODING_ZLIB:
                result.append(p)
                continue
            try:
                inner = json.loads(zlib.decompress(p.data))
            except (zlib.error, ValueError) as exc:
                raise DecodeError(f"Corrupt compressed payload: {exc}") from exc
            result.append(Payload.from_json(inner))
        return result
