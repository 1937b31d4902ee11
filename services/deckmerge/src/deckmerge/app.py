"""FastAPI application for the deck merge service."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from PIL import Image
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.config import Settings, get_settings
from common.http import create_http_client
from common.logging import configure_logging, get_logger

from .composer import encode_image
from .dependencies import build_content_store, build_merge_service, get_content_store
from .errors import REQUEST_INVALID_CODE, ImageProvisionError, MergeRequestValidationError
from .metrics import router as metrics_router
from .middleware import RequestLoggingMiddleware
from .routes.merge import router as merge_router
from .service import MergeService
from .storage.content_store import ContentStore

LOGGER = get_logger(__name__)


async def _check_store(store: ContentStore) -> Dict[str, Any]:
    try:
        await store.ping()
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("health.s3_failed", bucket=store.bucket, error=str(exc))
        return {"ok": False, "bucket": store.bucket, "error": str(exc)}
    return {"ok": True, "bucket": store.bucket}


async def _check_imaging() -> Dict[str, Any]:
    try:
        await asyncio.to_thread(encode_image, Image.new("RGBA", (1, 1), (0, 0, 0, 0)), "png")
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("health.imaging_failed", error=str(exc))
        return {"ok": False, "error": str(exc)}
    return {"ok": True}


def create_app(
    settings: Optional[Settings] = None,
    merge_service: Optional[MergeService] = None,
    s3_client: Any = None,
) -> FastAPI:
    """Build the application with its collaborators attached to ``app.state``.

    When no ``merge_service`` is supplied one is wired from ``settings`` and the
    app owns (and closes on shutdown) the shared outbound HTTP client.
    """

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    store = build_content_store(settings, s3_client)
    http_client: Optional[httpx.AsyncClient] = None
    if merge_service is None:
        http_client = create_http_client(timeout=settings.fetch_timeout_seconds)
        merge_service = build_merge_service(settings, http_client=http_client, store=store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        LOGGER.info(
            "service.starting",
            service=settings.service_name,
            bucket=settings.aws_s3_bucket_name,
            output_format=settings.merge_output_format,
            fetch_concurrency=settings.fetch_concurrency,
        )
        yield
        if http_client is not None:
            await http_client.aclose()
        LOGGER.info("service.stopped", service=settings.service_name)

    app = FastAPI(title="Deck Merge Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.merge_service = merge_service
    app.state.content_store = store

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(merge_router)
    app.include_router(metrics_router)

    @app.exception_handler(MergeRequestValidationError)
    async def validation_error_handler(request: Request, exc: MergeRequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "message": "Request validation failed",
                "code": REQUEST_INVALID_CODE,
                "detail": exc.issues,
            },
        )

    @app.exception_handler(ImageProvisionError)
    async def provision_error_handler(request: Request, exc: ImageProvisionError):
        return JSONResponse(
            status_code=exc.http_status,
            content={"message": str(exc), "source": exc.source, "code": exc.code.value},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        LOGGER.error(
            "request.unhandled_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"message": "Internal Server Error"})

    @app.get("/healthz")
    async def healthz(store: ContentStore = Depends(get_content_store)) -> JSONResponse:
        s3_status, imaging_status = await asyncio.gather(
            _check_store(store),
            _check_imaging(),
        )
        if s3_status["ok"] and imaging_status["ok"]:
            return JSONResponse(status_code=200, content={"status": "ok"})
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "diagnostics": {"s3": s3_status, "imaging": imaging_status},
            },
        )

    return app


__all__ = ["create_app"]
