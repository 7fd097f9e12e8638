"""
Request Scoping — per-request temporary storage

Each inbound upload gets a uuid4 token and its own directory:

    <uploads_root>/<request_id>/<original file names>

The directory is created before any write and removed exactly once on the
terminal path. Requests never share a directory, so no locking is needed on
the uploads root.

Multipart files are streamed to disk in CHUNK_SIZE pieces; the whole upload is
never buffered in memory.
"""

from __future__ import annotations

import logging
import mimetypes
import shutil
import uuid
from pathlib import Path

from fastapi import UploadFile

from docextract.models.upload import LocalFileEntry, UploadRequest

logger = logging.getLogger(__name__)

CHUNK_SIZE: int = 1024 * 1024   # 1 MB

_FALLBACK_NAME = "upload"


def _safe_basename(filename: str | None) -> str:
    """Strip any directory component a client may have sent."""
    basename = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if basename in ("", ".", ".."):
        return _FALLBACK_NAME
    return basename


def _content_type_for(upload: UploadFile, filename: str) -> str:
    if upload.content_type and upload.content_type != "application/octet-stream":
        return upload.content_type
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or upload.content_type or "application/octet-stream"


class RequestScope:
    """
    Owns one UploadRequest and its directory.

    Usage:
        scope = RequestScope.open(settings.uploads_root)
        await scope.persist(upload_file)
        ...
        scope.cleanup()
    """

    def __init__(self, request: UploadRequest) -> None:
        self.request  = request
        self._removed = False

    @classmethod
    def open(cls, uploads_root: Path) -> "RequestScope":
        """Generate a request id and create its directory (recursive, idempotent)."""
        request_id = uuid.uuid4().hex
        directory  = Path(uploads_root) / request_id
        directory.mkdir(parents=True, exist_ok=True)
        logger.debug("Scope | request=%s dir=%s", request_id, directory)
        return cls(UploadRequest(request_id=request_id, directory=directory))

    @property
    def request_id(self) -> str:
        return self.request.request_id

    @property
    def directory(self) -> Path:
        return self.request.directory

    @property
    def removed(self) -> bool:
        return self._removed

    def _unique_path(self, basename: str) -> Path:
        """Same-named uploads in one request get a numeric suffix instead of overwriting."""
        candidate = self.directory / basename
        stem, suffix = candidate.stem, candidate.suffix
        n = 1
        while candidate.exists():
            candidate = self.directory / f"{stem}-{n}{suffix}"
            n += 1
        return candidate

    async def persist(self, upload: UploadFile) -> LocalFileEntry:
        """Stream one multipart file into the request directory."""
        basename = _safe_basename(upload.filename)
        target   = self._unique_path(basename)

        size = 0
        with target.open("wb") as fh:
            while chunk := await upload.read(CHUNK_SIZE):
                fh.write(chunk)
                size += len(chunk)

        entry = LocalFileEntry(
            original_name=basename,
            path=target,
            content_type=_content_type_for(upload, basename),
            size_bytes=size,
        )
        self.request.files.append(entry)
        logger.info(
            "Scope | stored request=%s file=%s type=%s size=%d",
            self.request_id, target.name, entry.content_type, size,
        )
        return entry

    def cleanup(self) -> None:
        """Remove the request directory. Subsequent calls are no-ops."""
        if self._removed:
            return
        self._removed = True
        try:
            shutil.rmtree(self.directory)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Scope | cleanup failed request=%s error=%s", self.request_id, exc)
            return
        logger.info("Scope | deleted dir=%s", self.directory)
