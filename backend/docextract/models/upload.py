"""
In-process data model for one upload request.

Nothing here is persisted: an UploadRequest lives exactly as long as the HTTP
request that created it, and its directory is removed on the terminal path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


CSV_CONTENT_TYPE = "text/csv"


@dataclass(frozen=True)
class LocalFileEntry:
    """A file materialized inside the request directory."""
    original_name: str
    path:          Path
    content_type:  str
    size_bytes:    int


@dataclass
class UploadRequest:
    """
    request_id : uuid4 hex token, also the directory name
    directory  : <uploads_root>/<request_id>
    files      : one entry per logical input file, in upload order
    """
    request_id: str
    directory:  Path
    files:      list[LocalFileEntry] = field(default_factory=list)

    def replace_file(self, index: int, entry: LocalFileEntry) -> None:
        """Swap an entry in place (used after spreadsheet conversion)."""
        self.files[index] = entry


class RemoteFileState(str, Enum):
    """
    Provider file lifecycle.
    Transitions: processing → ready | failed
    """
    PROCESSING = "processing"
    READY      = "ready"
    FAILED     = "failed"


@dataclass(frozen=True)
class RemoteFileHandle:
    """Provider-side reference to an uploaded file."""
    name:         str
    uri:          str
    mime_type:    str
    state:        RemoteFileState
    display_name: str = ""
    raw_state:    str = ""    # provider's own state string, kept for error messages


@dataclass(frozen=True)
class ExtractionResult:
    """
    raw_text : provider text, returned to the caller verbatim
    payload  : parsed ExtractionPayload, or None when validation is disabled
    """
    raw_text: str
    payload:  Any = None
