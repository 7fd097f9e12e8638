"""
Composed FastAPI Dependencies

Wires settings + the shared provider into a per-request ExtractionPipeline.
Route handlers import from here; tests override get_provider / get_app_settings
through app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from docextract.core.config import Settings, get_settings
from docextract.llm.base import FileInferenceProvider
from docextract.services.extraction import ExtractionRequester
from docextract.services.pipeline import ExtractionPipeline
from docextract.services.readiness import PollingPolicy, ReadinessPoller


# ---------------------------------------------------------------------------
# 1. Settings
# ---------------------------------------------------------------------------

def get_app_settings() -> Settings:
    return get_settings()


# ---------------------------------------------------------------------------
# 2. Shared provider — built once in the application lifespan
# ---------------------------------------------------------------------------

def get_provider(request: Request) -> FileInferenceProvider:
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        raise RuntimeError("Provider client is not initialised (lifespan did not run)")
    return provider


# ---------------------------------------------------------------------------
# 3. Per-request pipeline
# ---------------------------------------------------------------------------

def get_pipeline(
    provider: Annotated[FileInferenceProvider, Depends(get_provider)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ExtractionPipeline:
    policy = PollingPolicy(
        interval_seconds=settings.poll_interval_seconds,
        backoff_multiplier=settings.poll_backoff_multiplier,
        max_interval_seconds=settings.poll_max_interval_seconds,
        max_wait_seconds=settings.poll_max_wait_seconds,
    )
    return ExtractionPipeline(
        provider=provider,
        poller=ReadinessPoller(provider, policy),
        requester=ExtractionRequester(provider, validate=settings.validate_extraction),
        upload_concurrency=settings.upload_concurrency,
        cleanup_on_failure=settings.cleanup_on_failure,
    )


# ---------------------------------------------------------------------------
# Type aliases for cleaner route signatures
# ---------------------------------------------------------------------------

AppSettings = Annotated[Settings,           Depends(get_app_settings)]
Pipeline    = Annotated[ExtractionPipeline, Depends(get_pipeline)]
