"""Codec endpoints: encode and decode payload batches.

Request and response bodies share one shape:
    {"payloads": [{"metadata": {key: base64}, "data": base64}, ...]}
A failing item fails the whole request; no partial lists are returned.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from khipu.deps import get_context, get_pipeline
from khipu.payload import Payload
from khipu.pipeline import CodecChain, CodecContext

router = APIRouter(prefix="/api/v1", tags=["codec"])


class WirePayload(BaseModel):
    metadata: dict[str, str] = Field(default_factory=dict)
    data: str = ""


class PayloadBatch(BaseModel):
    payloads: list[WirePayload] = Field(default_factory=list)


def _to_payloads(batch: PayloadBatch) -> list[Payload]:
    return [Payload.from_json(p.model_dump()) for p in batch.payloads]


def _to_body(payloads: list[Payload]) -> dict[str, Any]:
    return {"payloads": [p.to_json() for p in payloads]}


@router.post("/encode")
def encode(
    batch: PayloadBatch,
    pipeline: CodecChain = Depends(get_pipeline),
    context: CodecContext | None = Depends(get_context),
):
    return _to_body(pipeline.encode(_to_payloads(batch), context=context))


@router.post("/decode")
def decode(
    batch: PayloadBatch,
    pipeline: CodecChain = Depends(get_pipeline),
    context: CodecContext | None = Depends(get_context),
):
    return _to_body(pipeline.decode(_to_payloads(batch), context=context))
