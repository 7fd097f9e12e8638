"""
Abstract interface for the external file + inference provider.

The pipeline only ever talks to this interface. The production implementation
is GeminiFileProvider; tests inject an in-memory fake.

Implementations must be safe for concurrent use: one instance is created at
application startup and shared by every request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from docextract.models.upload import RemoteFileHandle


@dataclass(frozen=True)
class GenerationSettings:
    """Sampling/length configuration passed verbatim to the provider."""
    temperature:        float
    top_p:              float
    top_k:              int
    max_output_tokens:  int
    response_mime_type: str = "application/json"


class FileInferenceProvider(ABC):
    """Provider-side file storage plus a chat-style inference call."""

    @abstractmethod
    async def upload_file(
        self,
        path:         Path,
        mime_type:    str,
        display_name: str,
    ) -> RemoteFileHandle:
        """Transfer a local file once and return the provider's handle."""

    @abstractmethod
    async def get_file(self, name: str) -> RemoteFileHandle:
        """Look up the current state of an uploaded file by provider name."""

    @abstractmethod
    async def generate(
        self,
        files:              list[RemoteFileHandle],
        prompt:             str,
        system_instruction: str,
        generation:         GenerationSettings,
    ) -> str:
        """
        Run one inference turn over the given files and return the raw text.

        The files are sent as a single user turn (in list order) followed by
        the prompt as the next message.
        """
