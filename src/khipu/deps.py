"""FastAPI dependencies for khipu routes."""

from __future__ import annotations

from fastapi import Header, Request

from khipu.pipeline import CodecChain, CodecContext


def get_pipeline(request: Request) -> CodecChain:
    """Get the assembled codec chain from app state."""
    return request.app.state.pipeline


def get_context(
    x_encryption_key_id: str | None = Header(default=None),
) -> CodecContext | None:
    """Per-request key selection from the X-Encryption-Key-Id header."""
    if not x_encryption_key_id:
        return None
    return CodecContext(key_id=x_encryption_key_id)
