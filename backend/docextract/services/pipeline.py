"""
Extraction Pipeline Service

Orchestrates one upload request end to end:
  1. Persist the multipart files into the request directory
  2. Convert spreadsheets to CSV (first sheet only); other files pass through
  3. Upload every file to the provider, keeping upload order
  4. Poll until every provider file is ready
  5. Issue the single extraction request
  6. Return the ExtractionResult; the caller responds, then finalizes

State machine:
  received → files_stored → normalized → uploaded → files_ready → extracted
           → responded → cleaned_up
  Any non-terminal stage can move to failed.

Failure policy:
  - Nothing is retried and nothing partial is returned.
  - Every failure is re-raised as PipelineError(stage, error_code, cause),
    including a request directory that cannot be created (STORAGE_ERROR).
  - With concurrent uploads, the first failure cancels the remaining ones.
  - finalize() removes the request directory on success, and on failure when
    cleanup_on_failure is enabled (otherwise the files are kept for debugging).
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

from fastapi import UploadFile

from docextract.core.errors import DocExtractError, ErrorCode, PipelineError
from docextract.llm.base import FileInferenceProvider
from docextract.models.upload import ExtractionResult, LocalFileEntry, RemoteFileHandle
from docextract.processing.normalizer import SpreadsheetNormalizer, is_spreadsheet
from docextract.services.extraction import ExtractionRequester
from docextract.services.readiness import ReadinessPoller
from docextract.services.request_scope import RequestScope

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    RECEIVED     = "received"
    FILES_STORED = "files_stored"
    NORMALIZED   = "normalized"
    UPLOADED     = "uploaded"
    FILES_READY  = "files_ready"
    EXTRACTED    = "extracted"
    RESPONDED    = "responded"
    CLEANED_UP   = "cleaned_up"
    FAILED       = "failed"


# Error code used when a stage fails with an exception outside our taxonomy
_STAGE_DEFAULT_CODES: dict[PipelineStage, ErrorCode] = {
    PipelineStage.RECEIVED:     ErrorCode.STORAGE_ERROR,
    PipelineStage.FILES_STORED: ErrorCode.CONVERSION_ERROR,
    PipelineStage.NORMALIZED:   ErrorCode.PROVIDER_UPLOAD_ERROR,
    PipelineStage.UPLOADED:     ErrorCode.PROVIDER_STATUS_ERROR,
    PipelineStage.FILES_READY:  ErrorCode.PROVIDER_INFERENCE_ERROR,
}


class ExtractionPipeline:
    """
    One instance per request; collaborators are shared and injected.

    Constructor args:
        provider           : shared FileInferenceProvider
        poller             : ReadinessPoller bound to the same provider
        requester          : ExtractionRequester bound to the same provider
        normalizer         : SpreadsheetNormalizer
        upload_concurrency : max concurrent provider uploads (1 = sequential)
        cleanup_on_failure : remove the request directory on the failed path
    """

    def __init__(
        self,
        provider:           FileInferenceProvider,
        poller:             ReadinessPoller,
        requester:          ExtractionRequester,
        normalizer:         SpreadsheetNormalizer | None = None,
        upload_concurrency: int  = 1,
        cleanup_on_failure: bool = True,
    ) -> None:
        self._provider           = provider
        self._poller             = poller
        self._requester          = requester
        self._normalizer         = normalizer or SpreadsheetNormalizer()
        self._upload_concurrency = max(1, upload_concurrency)
        self._cleanup_on_failure = cleanup_on_failure
        self.stage               = PipelineStage.RECEIVED

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def open_scope(self, uploads_root: Path) -> RequestScope:
        """Create the request directory; failure is a STORAGE_ERROR like any other stage."""
        try:
            return RequestScope.open(uploads_root)
        except OSError as exc:
            failed_stage = self._next_stage_name()
            self.stage   = PipelineStage.FAILED
            logger.error(
                "Pipeline | cannot create request directory root=%s error=%s",
                uploads_root, exc,
            )
            raise PipelineError(failed_stage, ErrorCode.STORAGE_ERROR, exc) from exc

    async def run(self, scope: RequestScope, uploads: list[UploadFile]) -> ExtractionResult:
        """
        Drive the request from received to extracted.
        Raises PipelineError on any failure; self.stage is then FAILED.
        """
        request_id = scope.request_id
        try:
            # ---- Step 1: Persist multipart files ------------------------
            for upload in uploads:
                await scope.persist(upload)
            self.stage = PipelineStage.FILES_STORED
            logger.info(
                "Pipeline | request=%s stored %d file(s) at %s",
                request_id, len(scope.request.files), scope.directory,
            )

            # ---- Step 2: Spreadsheet → CSV ------------------------------
            await self._normalize(scope)
            self.stage = PipelineStage.NORMALIZED

            # ---- Step 3: Provider upload --------------------------------
            handles = await self._upload_all(scope.request.files)
            self.stage = PipelineStage.UPLOADED

            # ---- Step 4: Wait for provider ingestion --------------------
            ready = await self._poller.wait_until_ready(handles)
            self.stage = PipelineStage.FILES_READY

            # ---- Step 5: Extraction -------------------------------------
            result = await self._requester.request(ready)
            self.stage = PipelineStage.EXTRACTED

        except Exception as exc:
            failed_stage = self._next_stage_name()
            code = exc.code if isinstance(exc, DocExtractError) else _STAGE_DEFAULT_CODES.get(
                self.stage, ErrorCode.INTERNAL_ERROR
            )
            self.stage = PipelineStage.FAILED
            logger.error(
                "Pipeline | request=%s failed stage=%s code=%s error=%s",
                request_id, failed_stage, code.value, exc,
            )
            raise PipelineError(failed_stage, code, exc) from exc

        logger.info("Pipeline | request=%s extracted chars=%d", request_id, len(result.raw_text))
        return result

    def finalize(self, scope: RequestScope, succeeded: bool) -> None:
        """Terminal step, run after the HTTP response has been sent."""
        if succeeded:
            self.stage = PipelineStage.RESPONDED
        elif not self._cleanup_on_failure:
            logger.warning(
                "Pipeline | request=%s keeping files at %s (cleanup_on_failure=false)",
                scope.request_id, scope.directory,
            )
            return

        scope.cleanup()
        if succeeded:
            self.stage = PipelineStage.CLEANED_UP

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _normalize(self, scope: RequestScope) -> None:
        files = scope.request.files
        for index, entry in enumerate(files):
            if not is_spreadsheet(entry.content_type, entry.original_name):
                continue
            logger.info("Pipeline | request=%s converting %s", scope.request_id, entry.original_name)
            scope.request.replace_file(index, await self._normalizer.normalize(entry))

    async def _upload_all(self, files: list[LocalFileEntry]) -> list[RemoteFileHandle]:
        """Upload every file; concurrency-bounded, results in input order."""
        semaphore = asyncio.Semaphore(self._upload_concurrency)

        async def _upload(entry: LocalFileEntry) -> RemoteFileHandle:
            async with semaphore:
                logger.info("Pipeline | uploading file=%s", entry.path.name)
                return await self._provider.upload_file(
                    entry.path,
                    entry.content_type,
                    entry.path.name,
                )

        if self._upload_concurrency == 1:
            return [await _upload(entry) for entry in files]

        # First failure cancels the siblings before the directory can be removed
        tasks = [asyncio.create_task(_upload(entry)) for entry in files]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _next_stage_name(self) -> str:
        """Name of the transition that was in progress when a failure occurred."""
        order = list(PipelineStage)
        index = order.index(self.stage)
        return order[index + 1].value
