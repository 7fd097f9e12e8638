"""
Gemini File + Inference Provider

Wraps the google-genai async client behind FileInferenceProvider:

  ┌─────────────────────────────────────────────────────┐
  │  upload_file()  → client.aio.files.upload           │
  │  get_file()     → client.aio.files.get              │
  │  generate()     → client.aio.chats.create           │
  │                     history = [user: file parts]    │
  │                   chat.send_message(prompt)         │
  └─────────────────────────────────────────────────────┘

Gemini file states map onto RemoteFileState:
  PROCESSING → processing
  ACTIVE     → ready
  anything else (FAILED, STATE_UNSPECIFIED, missing) → failed

A single genai.Client is built at application startup and shared; the SDK's
async client is safe for concurrent use. No call is retried here.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from docextract.core.errors import ErrorCode, ExtractionTruncatedError, ProviderError
from docextract.llm.base import FileInferenceProvider, GenerationSettings
from docextract.models.upload import RemoteFileHandle, RemoteFileState

logger = logging.getLogger(__name__)

_PROVIDER_ERRORS = (genai_errors.APIError, httpx.HTTPError, OSError)

_STATE_MAP: dict[str, RemoteFileState] = {
    "PROCESSING": RemoteFileState.PROCESSING,
    "ACTIVE":     RemoteFileState.READY,
}


def _to_handle(file: types.File) -> RemoteFileHandle:
    """Convert an SDK File object into our provider-neutral handle."""
    raw_state = getattr(file.state, "value", file.state) or ""
    raw_state = str(raw_state).upper()
    return RemoteFileHandle(
        name=file.name or "",
        uri=file.uri or "",
        mime_type=file.mime_type or "application/octet-stream",
        state=_STATE_MAP.get(raw_state, RemoteFileState.FAILED),
        display_name=file.display_name or "",
        raw_state=raw_state,
    )


class GeminiFileProvider(FileInferenceProvider):
    """
    Gemini Files API + chat inference.

    Usage::

        provider = GeminiFileProvider.from_api_key(settings.gemini_api_key, "gemini-1.5-flash")
        handle   = await provider.upload_file(path, "application/pdf", path.name)
    """

    def __init__(self, client: genai.Client, model: str) -> None:
        self._client = client
        self._model  = model

    @classmethod
    def from_api_key(cls, api_key: str, model: str) -> "GeminiFileProvider":
        return cls(genai.Client(api_key=api_key), model)

    @property
    def model(self) -> str:
        return self._model

    # -----------------------------------------------------------------------
    # Files API
    # -----------------------------------------------------------------------

    async def upload_file(
        self,
        path:         Path,
        mime_type:    str,
        display_name: str,
    ) -> RemoteFileHandle:
        try:
            file = await self._client.aio.files.upload(
                file=str(path),
                config=types.UploadFileConfig(
                    mime_type=mime_type,
                    display_name=display_name,
                ),
            )
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(
                f"Upload of {display_name} failed: {exc}",
                code=ErrorCode.PROVIDER_UPLOAD_ERROR,
            ) from exc

        handle = _to_handle(file)
        logger.info(
            "Gemini | uploaded file=%s as=%s state=%s",
            display_name, handle.name, handle.raw_state,
        )
        return handle

    async def get_file(self, name: str) -> RemoteFileHandle:
        try:
            file = await self._client.aio.files.get(name=name)
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(
                f"Status lookup for {name} failed: {exc}",
                code=ErrorCode.PROVIDER_STATUS_ERROR,
            ) from exc
        return _to_handle(file)

    # -----------------------------------------------------------------------
    # Inference
    # -----------------------------------------------------------------------

    async def generate(
        self,
        files:              list[RemoteFileHandle],
        prompt:             str,
        system_instruction: str,
        generation:         GenerationSettings,
    ) -> str:
        file_parts = [
            types.Part.from_uri(file_uri=f.uri, mime_type=f.mime_type)
            for f in files
        ]
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=generation.temperature,
            top_p=generation.top_p,
            top_k=generation.top_k,
            max_output_tokens=generation.max_output_tokens,
            response_mime_type=generation.response_mime_type,
        )

        t0 = time.perf_counter()
        try:
            chat = self._client.aio.chats.create(
                model=self._model,
                config=config,
                history=[types.Content(role="user", parts=file_parts)],
            )
            response = await chat.send_message(prompt)
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(
                f"Inference request failed: {exc}",
                code=ErrorCode.PROVIDER_INFERENCE_ERROR,
            ) from exc
        latency_ms = (time.perf_counter() - t0) * 1000

        candidates = response.candidates or []
        if candidates and candidates[0].finish_reason == types.FinishReason.MAX_TOKENS:
            raise ExtractionTruncatedError(generation.max_output_tokens)

        text = response.text
        if not text:
            raise ProviderError("Inference response contained no text")

        logger.info(
            "Gemini | model=%s files=%d chars_out=%d latency_ms=%.1f",
            self._model, len(files), len(text), latency_ms,
        )
        return text
