"""khipu: FastAPI codec server.

Exposes the payload codec chain over HTTP so tools outside the worker
process can protect payloads and view protected ones.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from khipu import __version__
from khipu.auth import make_api_key_checker
from khipu.config import KhipuConfig, load_config
from khipu.errors import (
    CryptoError,
    DecodeError,
    KhipuError,
    MissingKeyIDError,
    NotFoundError,
    StoreError,
    UnknownKeyIDError,
)
from khipu.keys import resolver_from_config
from khipu.pipeline import PipelineOptions, build_pipeline
from khipu.routes import codec, meta
from khipu.store import store_from_config

logger = logging.getLogger("khipu")
audit_logger = logging.getLogger("khipu.audit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: open the content store and assemble the pipeline. Shutdown: close the store."""
    config: KhipuConfig = app.state.config
    logger.info(
        "Opening content store %s (collection: %s)",
        config.store_url.split("@")[-1],
        config.collection,
    )
    resolver = resolver_from_config(config)
    store = store_from_config(config)
    app.state.store = store
    app.state.pipeline = build_pipeline(
        PipelineOptions(
            key_id=config.key_id,
            compress=config.compress,
            collection=config.collection,
        ),
        resolver,
        store,
    )
    logger.info(
        "khipu codec server ready (key id: %s, compress: %s)",
        config.key_id,
        config.compress,
    )
    yield
    store.close()
    logger.info("khipu codec server shut down")


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(config: KhipuConfig | None = None) -> FastAPI:
    """Application factory."""
    if config is None:
        config = load_config()

    app = FastAPI(
        title="khipu",
        description="Codec server: tokenizing payload protection",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    check_key = make_api_key_checker(config.api_key)

    # ── Exception handlers ────────────────────────────────────

    @app.exception_handler(DecodeError)
    async def decode_handler(request: Request, exc: DecodeError):
        return _error(400, exc)

    @app.exception_handler(MissingKeyIDError)
    async def missing_key_handler(request: Request, exc: MissingKeyIDError):
        return _error(400, exc)

    @app.exception_handler(UnknownKeyIDError)
    async def unknown_key_handler(request: Request, exc: UnknownKeyIDError):
        return _error(400, exc)

    @app.exception_handler(CryptoError)
    async def crypto_handler(request: Request, exc: CryptoError):
        return _error(422, exc)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(404, exc)

    @app.exception_handler(StoreError)
    async def store_handler(request: Request, exc: StoreError):
        logger.warning("Content store failure: %s", exc)
        return _error(503, exc)

    @app.exception_handler(KhipuError)
    async def khipu_handler(request: Request, exc: KhipuError):
        logger.error("Codec failure: %s", exc)
        return _error(500, exc)

    # ── Audit middleware ──────────────────────────────────────

    @app.middleware("http")
    async def audit_log(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start
        audit_logger.info(
            "%s %s %d %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
        )
        return response

    # ── Routers ───────────────────────────────────────────────

    app.include_router(meta.router, dependencies=[Depends(check_key)])
    app.include_router(codec.router, dependencies=[Depends(check_key)])

    return app
