"""
Upload & Extraction API Router
POST /upload

Implements:
  - Multipart upload of one or more files (field name: files)
  - Per-request isolated storage directory
  - Spreadsheet → CSV normalization, provider upload, readiness polling,
    structured extraction (delegated to ExtractionPipeline)
  - Structured error responses for all 4xx/5xx cases

Request lifecycle:
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Reject requests without files (400, nothing on disk) │
  │ 2. Open request scope → uploads/<request_id>/           │
  │ 3. ExtractionPipeline.run()                             │
  │ 4. 200 {message, geminiResponse[, extraction]}          │
  │    or 500 {message, error, error_code, stage}           │
  │ 5. After the response is sent: finalize (cleanup)       │
  └─────────────────────────────────────────────────────────┘

The pipeline is not cancelled when the client disconnects.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, UploadFile, status
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from docextract.api.dependencies import AppSettings, Pipeline
from docextract.core.errors import PipelineError
from docextract.schemas.extraction import (
    ErrorResponse,
    UploadErrors,
    UploadSuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Extraction"])


@router.post(
    "/upload",
    response_model=UploadSuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload documents and extract invoices, products and customers",
    description=(
        "Accepts spreadsheets, CSVs, images and PDFs. Spreadsheets are converted "
        "to CSV (first sheet only). Returns the provider's JSON text verbatim in "
        "geminiResponse."
    ),
    responses={
        200: {"model": UploadSuccessResponse, "description": "Extraction completed"},
        400: {"model": ErrorResponse, "description": "No files in the request"},
        500: {"model": ErrorResponse, "description": "Any pipeline failure"},
    },
)
async def upload_files(
    pipeline: Pipeline,
    settings: AppSettings,
    files:    Optional[list[UploadFile]] = File(None, description="One or more documents"),
) -> JSONResponse:
    uploads = [f for f in (files or []) if f.filename]
    if not uploads:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=UploadErrors.no_files().model_dump(mode="json", exclude_none=True),
        )

    try:
        scope = pipeline.open_scope(settings.uploads_root)
    except PipelineError as exc:
        return _failure_response(exc)

    try:
        result = await pipeline.run(scope, uploads)
    except PipelineError as exc:
        return _failure_response(
            exc,
            request_id=scope.request_id,
            background=BackgroundTask(pipeline.finalize, scope, False),
        )

    body = UploadSuccessResponse(
        gemini_response=result.raw_text,
        extraction=result.payload,
    )
    # Extraction fields are nullable by contract, so only the optional
    # top-level key is dropped, never nested nulls.
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=body.model_dump(
            mode="json",
            by_alias=True,
            exclude={"extraction"} if result.payload is None else None,
        ),
        headers={"X-Request-ID": scope.request_id},
        background=BackgroundTask(pipeline.finalize, scope, True),
    )


def _failure_response(
    exc:        PipelineError,
    request_id: Optional[str] = None,
    background: Optional[BackgroundTask] = None,
) -> JSONResponse:
    """500 envelope for any pipeline failure, including request-directory setup."""
    logger.exception(
        "Upload failed | request=%s stage=%s code=%s",
        request_id, exc.stage, exc.code.value,
    )
    body = UploadErrors.processing_failed(
        error=str(exc),
        error_code=exc.code,
        stage=exc.stage,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(mode="json", exclude_none=True),
        headers={"X-Request-ID": request_id} if request_id else None,
        background=background,
    )
