"""
FastAPI Application — GovGuide chat API

  POST /api/v1/chat   conversation in, grounded answer out
  GET  /health        chunk store reachability (load balancer check)

Request path (outermost first):
  request context  X-Request-ID assigned/echoed, one access log line
  gzip             responses > 1 KB
  CORS             any origin in development, CORS_ORIGINS elsewhere
  router           /api/v1/chat → ChatOrchestrator

Identity is the opaque X-User-ID header of the surrounding chat app; it only
ever reaches the logs.

Every 4xx/5xx body is an ErrorResponse envelope:
  ChatServiceError, rate limit exhausted  → 503 PROVIDER_BUSY  (+ Retry-After)
  ChatServiceError, anything else         → 502 PROVIDER_ERROR
  RequestValidationError                  → 422 VALIDATION_ERROR
  unhandled                               → 500 INTERNAL_ERROR, no trace leaked
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from govguide import __version__
from govguide.api.v1.chat import router as chat_router
from govguide.core.config import get_settings
from govguide.core.errors import ChatServiceError
from govguide.schemas.chat import ErrorDetail, ErrorResponse
from govguide.store.factory import get_chunk_store

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

_BUSY_RETRY_AFTER_SECONDS = 5


def _error_response(
    http_status: int,
    error_code:  str,
    message:     str,
    request_id:  str | None,
    details:     list[ErrorDetail] | None = None,
    headers:     dict[str, str] | None = None,
) -> JSONResponse:
    envelope = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details or [],
        request_id=request_id,
    )
    return JSONResponse(status_code=http_status, content=envelope.model_dump(mode="json"), headers=headers)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Refuse to start without a reachable chunk store; release the DB pool on exit."""
    logger.info(
        "GovGuide | starting env=%s store=%s llm=%s embedding=%s",
        settings.app_env, settings.store_backend, settings.llm_model, settings.embedding_model,
    )

    store_health = await get_chunk_store().health()
    if store_health["status"] != "ok":
        logger.critical("GovGuide | store unavailable at startup: %s", store_health)
        raise RuntimeError(f"Store unavailable: {store_health}")
    logger.info("GovGuide | store ready backend=%s", store_health["backend"])

    yield

    logger.info("GovGuide | shutting down")
    if settings.store_backend.lower() == "postgres":
        from govguide.db.session import dispose_engine
        await dispose_engine()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    expose_docs = not settings.is_production
    app = FastAPI(
        title="GovGuide API",
        description=(
            "Citizen-facing assistant for Indian government schemes. "
            "Retrieval-augmented answers over scheme documents and the scheme table."
        ),
        version=__version__,
        docs_url="/api/docs" if expose_docs else None,
        redoc_url="/api/redoc" if expose_docs else None,
        openapi_url="/api/openapi.json" if expose_docs else None,
        lifespan=lifespan,
    )

    # last added = outermost
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app_env == "development" else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID", "X-User-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        t0 = time.perf_counter()

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP | %s %s status=%d user=%s latency_ms=%.1f",
            request.method, request.url.path, response.status_code,
            request.headers.get("X-User-ID", "-"), (time.perf_counter() - t0) * 1000,
        )
        return response

    # ----------------------------------------------------------------
    # Error envelopes
    # ----------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError):
        details = [
            ErrorDetail(
                field=".".join(str(part) for part in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed.",
            request.headers.get("X-Request-ID"),
            details=details,
        )

    @app.exception_handler(ChatServiceError)
    async def on_chat_service_error(request: Request, exc: ChatServiceError):
        request_id = request.headers.get("X-Request-ID")
        if exc.is_busy:
            return _error_response(
                status.HTTP_503_SERVICE_UNAVAILABLE, "PROVIDER_BUSY", exc.user_message, request_id,
                headers={"Retry-After": str(_BUSY_RETRY_AFTER_SECONDS)},
            )
        return _error_response(
            status.HTTP_502_BAD_GATEWAY, "PROVIDER_ERROR", exc.user_message, request_id,
        )

    @app.exception_handler(Exception)
    async def on_unhandled_error(request: Request, exc: Exception):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        logger.exception("HTTP | unhandled error path=%s request_id=%s", request.url.path, request_id)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An unexpected error occurred.",
            request_id,
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routes
    # ----------------------------------------------------------------

    app.include_router(chat_router, prefix="/api/v1")

    @app.get("/health", tags=["Operations"], summary="Chunk store reachability")
    async def health() -> JSONResponse:
        store_status = await get_chunk_store().health()
        healthy = store_status["status"] == "ok"
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status":  "ok" if healthy else "degraded",
                "service": "govguide-api",
                "store":   store_status,
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "govguide.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
    )
