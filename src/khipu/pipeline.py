"""Pipeline assembly: an ordered, validated chain of payload codecs.

Encode runs stages first to last, decode runs them last to first. The
tokenizing codec must be the first stage, so later stages (compression)
only ever see small token ciphertexts and never the original content.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from khipu.codec import TokenizingCodec, ZlibCodec
from khipu.errors import KhipuError, PipelineOrderError
from khipu.keys import KeyResolver
from khipu.payload import Payload
from khipu.store.base import COLLECTION, ContentStore


class PayloadCodec(Protocol):
    def encode(self, payloads: list[Payload]) -> list[Payload]: ...

    def decode(self, payloads: list[Payload]) -> list[Payload]: ...


@dataclass(frozen=True)
class CodecContext:
    """Per-call override of the active key id and store binding.

    Fields left as None fall back to the chain's configured defaults.
    """

    key_id: str | None = None
    store: ContentStore | None = None


@dataclass(frozen=True)
class PipelineOptions:
    key_id: str
    compress: bool = False
    collection: str = COLLECTION


class CodecChain:
    """Ordered list of codec stages, validated at construction."""

    def __init__(self, stages: Sequence[PayloadCodec]) -> None:
        stages = tuple(stages)
        if not stages:
            raise PipelineOrderError("Codec chain needs at least one stage")
        if not isinstance(stages[0], TokenizingCodec):
            raise PipelineOrderError(
                f"First stage must be TokenizingCodec, got {type(stages[0]).__name__}"
            )
        for index, stage in enumerate(stages[1:], start=1):
            if isinstance(stage, TokenizingCodec):
                raise PipelineOrderError(
                    f"TokenizingCodec may only be the first stage (found at {index})"
                )
        self._stages = stages

    @property
    def stages(self) -> tuple[PayloadCodec, ...]:
        return self._stages

    @property
    def tokenizer(self) -> TokenizingCodec:
        return self._stages[0]

    def with_context(self, context: CodecContext | None) -> CodecChain:
        if context is None or (context.key_id is None and context.store is None):
            return self
        return CodecChain((self.tokenizer.with_context(context), *self._stages[1:]))

    def encode(
        self, payloads: list[Payload], context: CodecContext | None = None
    ) -> list[Payload]:
        chain = self.with_context(context)
        for stage in chain._stages:
            payloads = _checked(stage, stage.encode(payloads), len(payloads))
        return payloads

    def decode(
        self, payloads: list[Payload], context: CodecContext | None = None
    ) -> list[Payload]:
        chain = self.with_context(context)
        for stage in reversed(chain._stages):
            payloads = _checked(stage, stage.decode(payloads), len(payloads))
        return payloads


def _checked(stage: PayloadCodec, result: list[Payload], expected: int) -> list[Payload]:
    if len(result) != expected:
        raise KhipuError(
            f"{type(stage).__name__} returned {len(result)} payloads for {expected}"
        )
    return result


def build_pipeline(
    options: PipelineOptions, resolver: KeyResolver, store: ContentStore
) -> CodecChain:
    """Assemble the tokenizing codec, plus zlib compression if enabled."""
    stages: list[PayloadCodec] = [
        TokenizingCodec(
            key_id=options.key_id,
            resolver=resolver,
            store=store,
            collection=options.collection,
        )
    ]
    if options.compress:
        stages.append(ZlibCodec(always_encode=True))
    return CodecChain(stages)
