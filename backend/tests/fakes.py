"""
Test doubles shared by unit and integration tests.

  VALID_EXTRACTION       : a complete extraction document (camelCase keys)
  VALID_EXTRACTION_TEXT  : the same document as provider text
  FakeProvider           : in-memory FileInferenceProvider recording every call

Import from here, not from conftest.py (pytest loads conftest itself).
"""

from __future__ import annotations

import json
from pathlib import Path

from docextract.llm.base import FileInferenceProvider, GenerationSettings
from docextract.models.upload import RemoteFileHandle, RemoteFileState



# ─────────────────────────────────────────────────────────────────────────────
# Canned provider output
# ─────────────────────────────────────────────────────────────────────────────

VALID_EXTRACTION: dict = {
    "invoices": [
        {
            "serialNumber": "INV-001",
            "customerName": "Acme Ltd",
            "productName":  "Widget",
            "quantity":     3,
            "tax":          1.8,
            "totalAmount":  31.8,
            "date":         "2024-01-15",
        }
    ],
    "products": [
        {
            "name":         "Widget",
            "quantity":     3,
            "unitPrice":    10,
            "tax":          1.8,
            "priceWithTax": 31.8,
            "discount":     None,
        }
    ],
    "customers": [
        {
            "customerName":        "Acme Ltd",
            "phoneNumber":         None,
            "totalPurchaseAmount": 31.8,
        }
    ],
}

VALID_EXTRACTION_TEXT = json.dumps(VALID_EXTRACTION)


# ─────────────────────────────────────────────────────────────────────────────
# Fake provider
# ─────────────────────────────────────────────────────────────────────────────

class FakeProvider(FileInferenceProvider):
    """
    In-memory FileInferenceProvider.

    states      : display_name → sequence of states returned by successive
                  get_file() calls (the last one repeats). Default: [READY].
    response    : text returned by generate()
    fail_upload : display names whose upload raises the given exception
    """

    def __init__(self, response: str = VALID_EXTRACTION_TEXT) -> None:
        self.response:       str = response
        self.states:         dict[str, list[RemoteFileState]] = {}
        self.fail_upload:    dict[str, Exception] = {}
        self.generate_error: Exception | None = None

        self.uploads:        list[dict] = []
        self.status_queries: list[str] = []
        self.generate_calls: list[dict] = []
        self.uploaded_bytes: dict[str, bytes] = {}

        self._display_by_name: dict[str, str] = {}
        self._mime_by_name:    dict[str, str] = {}
        self._poll_counts:     dict[str, int] = {}

    async def upload_file(self, path: Path, mime_type: str, display_name: str) -> RemoteFileHandle:
        if display_name in self.fail_upload:
            raise self.fail_upload[display_name]
        name = f"files/{len(self.uploads) + 1}"
        self.uploads.append({"path": Path(path), "mime_type": mime_type, "display_name": display_name})
        self.uploaded_bytes[display_name] = Path(path).read_bytes()
        self._display_by_name[name] = display_name
        self._mime_by_name[name]    = mime_type
        return self._handle(name, RemoteFileState.PROCESSING)

    async def get_file(self, name: str) -> RemoteFileHandle:
        self.status_queries.append(name)
        sequence = self.states.get(self._display_by_name[name], [RemoteFileState.READY])
        count = self._poll_counts.get(name, 0)
        self._poll_counts[name] = count + 1
        return self._handle(name, sequence[min(count, len(sequence) - 1)])

    async def generate(
        self,
        files:              list[RemoteFileHandle],
        prompt:             str,
        system_instruction: str,
        generation:         GenerationSettings,
    ) -> str:
        self.generate_calls.append({
            "files":              list(files),
            "prompt":             prompt,
            "system_instruction": system_instruction,
            "generation":         generation,
        })
        if self.generate_error is not None:
            raise self.generate_error
        return self.response

    def _handle(self, name: str, state: RemoteFileState) -> RemoteFileHandle:
        raw = {
            RemoteFileState.PROCESSING: "PROCESSING",
            RemoteFileState.READY:      "ACTIVE",
            RemoteFileState.FAILED:     "FAILED",
        }[state]
        return RemoteFileHandle(
            name=name,
            uri=f"https://provider.test/{name}",
            mime_type=self._mime_by_name[name],
            state=state,
            display_name=self._display_by_name[name],
            raw_state=raw,
        )
