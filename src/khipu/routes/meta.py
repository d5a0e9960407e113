"""Meta endpoints: health and version."""

from __future__ import annotations

from fastapi import APIRouter

from khipu import __version__
from khipu.payload import ENCODING_ENCRYPTED, ENCODING_JSON, ENCODING_ZLIB

router = APIRouter(prefix="/api/v1", tags=["meta"])


@router.get("/health")
def health():
    return {"status": "ok", "service": "khipu"}


@router.get("/version")
def version():
    return {
        "server": __version__,
        "encodings": [ENCODING_ENCRYPTED, ENCODING_ZLIB, ENCODING_JSON],
    }
