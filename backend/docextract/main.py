"""
Document Extraction Gateway — ASGI application

  POST /upload   upload → convert → provider upload → poll → extract
  GET  /health   liveness

The Gemini client is built once in the lifespan (startup fails without
GEMINI_API_KEY) and stored on app.state for every request. Each request
then works in its own directory under UPLOADS_ROOT.

Every response carries X-Request-ID; unhandled errors are returned in the
same envelope as pipeline failures.

Run locally with `python -m docextract.main` or the doc-extraction-gateway
console script.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docextract.api.upload import router as upload_router
from docextract.core.config import settings
from docextract.llm.gemini import GeminiFileProvider
from docextract.schemas.extraction import UploadErrors

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run on startup: validate the API key, create the uploads root, build the
    shared provider client.
    """
    logger.info(
        "Starting extraction gateway | env=%s model=%s uploads=%s",
        settings.app_env, settings.gemini_model, settings.uploads_root,
    )

    if getattr(app.state, "provider", None) is None:
        if not settings.gemini_api_key:
            logger.critical("GEMINI_API_KEY is not set")
            raise RuntimeError("GEMINI_API_KEY is required")
        app.state.provider = GeminiFileProvider.from_api_key(
            settings.gemini_api_key, settings.gemini_model,
        )

    settings.uploads_root.mkdir(parents=True, exist_ok=True)
    logger.info(
        "Polling | interval=%.1fs backoff=%.2f max_wait=%.0fs",
        settings.poll_interval_seconds,
        settings.poll_backoff_multiplier,
        settings.poll_max_wait_seconds,
    )

    yield

    logger.info("Shutting down extraction gateway")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Document Extraction Gateway",
        description=(
            "Uploads spreadsheets, CSVs, images and PDFs to Gemini and returns a "
            "structured JSON extraction of invoices, products and customers."
        ),
        version="1.0.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers.setdefault("X-Request-ID", request_id)

        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        body = UploadErrors.internal_error(request_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json", exclude_none=True),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(upload_router)

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness check",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "doc-extraction-gateway"}

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

def run() -> None:
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
