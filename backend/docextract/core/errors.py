"""
Pipeline error taxonomy.

Every failure the upload pipeline can surface is one of these exception types.
Each carries a stable machine-readable ErrorCode so API consumers can tell the
cases apart without parsing the human-readable message.

  DocExtractError
    ├── SpreadsheetConversionError     CONVERSION_ERROR
    ├── ProviderError                  PROVIDER_*_ERROR
    │     ├── ExtractionTruncatedError EXTRACTION_TRUNCATED
    ├── FileProcessingFailedError      FILE_PROCESSING_FAILED
    ├── FileReadinessTimeoutError      FILE_READINESS_TIMEOUT
    ├── InvalidExtractionError         INVALID_EXTRACTION
    └── PipelineError                  wraps any of the above with the stage
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    NO_FILES                 = "NO_FILES"
    STORAGE_ERROR            = "STORAGE_ERROR"
    CONVERSION_ERROR         = "CONVERSION_ERROR"
    PROVIDER_UPLOAD_ERROR    = "PROVIDER_UPLOAD_ERROR"
    PROVIDER_STATUS_ERROR    = "PROVIDER_STATUS_ERROR"
    FILE_PROCESSING_FAILED   = "FILE_PROCESSING_FAILED"
    FILE_READINESS_TIMEOUT   = "FILE_READINESS_TIMEOUT"
    PROVIDER_INFERENCE_ERROR = "PROVIDER_INFERENCE_ERROR"
    EXTRACTION_TRUNCATED     = "EXTRACTION_TRUNCATED"
    INVALID_EXTRACTION       = "INVALID_EXTRACTION"
    INTERNAL_ERROR           = "INTERNAL_ERROR"


class DocExtractError(Exception):
    """Base class for all expected pipeline failures."""
    code: ErrorCode = ErrorCode.INTERNAL_ERROR


class SpreadsheetConversionError(DocExtractError):
    code = ErrorCode.CONVERSION_ERROR

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Could not convert spreadsheet {filename}: {reason}")
        self.filename = filename


class ProviderError(DocExtractError):
    """A call to the AI provider failed (transport, availability, or API error)."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.PROVIDER_INFERENCE_ERROR) -> None:
        super().__init__(message)
        self.code = code


class ExtractionTruncatedError(ProviderError):
    def __init__(self, max_output_tokens: int) -> None:
        super().__init__(
            f"Extraction response was truncated at {max_output_tokens} output tokens",
            code=ErrorCode.EXTRACTION_TRUNCATED,
        )


class FileProcessingFailedError(DocExtractError):
    code = ErrorCode.FILE_PROCESSING_FAILED

    def __init__(self, file_name: str, state: str) -> None:
        super().__init__(f"File {file_name} failed to process (state={state})")
        self.file_name = file_name
        self.state     = state


class FileReadinessTimeoutError(DocExtractError):
    code = ErrorCode.FILE_READINESS_TIMEOUT

    def __init__(self, file_name: str, waited_seconds: float) -> None:
        super().__init__(
            f"File {file_name} was still processing after {waited_seconds:.0f}s"
        )
        self.file_name      = file_name
        self.waited_seconds = waited_seconds


class InvalidExtractionError(DocExtractError):
    code = ErrorCode.INVALID_EXTRACTION

    def __init__(self, reason: str) -> None:
        super().__init__(f"Provider returned an invalid extraction document: {reason}")


class PipelineError(DocExtractError):
    """Raised by the orchestrator; records which stage failed."""

    def __init__(self, stage: str, code: ErrorCode, cause: BaseException) -> None:
        super().__init__(str(cause) or type(cause).__name__)
        self.stage = stage
        self.code  = code
        self.cause = cause
