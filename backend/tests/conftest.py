"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : test_settings, fake_provider, uploads_root, sample workbooks,
                    app_with_overrides, async_client

Environment strategy:
  - No test talks to Gemini: FakeProvider (tests/fakes.py) implements
    FileInferenceProvider in memory and records every call.
  - Every test gets its own uploads root under pytest's tmp_path.
  - Polling intervals are shrunk to milliseconds so readiness tests finish fast.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O beyond tmp_path)
  pytest -m integration           # API tests through the ASGI stack
  pytest tests/unit/test_normalizer.py
"""

from __future__ import annotations

import io
import os
from pathlib import Path
from typing import AsyncGenerator

import openpyxl
import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("APP_ENV",        "development")
os.environ.setdefault("DEBUG",          "true")

from docextract.core.config import Settings  # noqa: E402
from tests.fakes import FakeProvider          # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Settings / storage fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def uploads_root(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def test_settings(uploads_root) -> Settings:
    """Settings tuned for tests: tiny poll interval, tmp uploads root."""
    return Settings(
        gemini_api_key="test-gemini-key",
        uploads_root=uploads_root,
        poll_interval_seconds=0.001,
        poll_max_interval_seconds=0.001,
        poll_max_wait_seconds=0.5,
        cleanup_on_failure=True,
        validate_extraction=True,
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Minimal PDF (%PDF header)."""
    return (
        b"%PDF-1.4\n"
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
        b"trailer\n<< /Root 1 0 R >>\n%%EOF"
    )


@pytest.fixture
def sample_csv_bytes() -> bytes:
    """One invoice row with a header."""
    return (
        b"serialNumber,customerName,productName,quantity,tax,totalAmount,date\n"
        b"INV-001,Acme Ltd,Widget,3,1.8,31.8,2024-01-15\n"
    )


@pytest.fixture
def sample_xlsx_bytes() -> bytes:
    """
    Two-sheet workbook. The first sheet has a header and three data rows,
    including cells with an embedded comma, newline and quote. The second
    sheet must never reach the CSV.
    """
    wb = openpyxl.Workbook()
    first = wb.active
    first.title = "Invoices"
    first.append(["serialNumber", "customerName", "totalAmount"])
    first.append(["INV-001", "Acme, Ltd", 31.8])
    first.append(["INV-002", "Line one\nLine two", 12])
    first.append(["INV-003", 'The "Best" Shop', None])

    second = wb.create_sheet("Hidden")
    second.append(["SECOND-SHEET-ONLY"])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with dependency overrides
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(fake_provider, test_settings):
    """
    FastAPI app with ALL external dependencies overridden:
      - get_provider     → fake_provider (no Gemini)
      - get_app_settings → test_settings (tmp uploads root, fast polling)
    """
    from docextract.main import app
    from docextract.api.dependencies import get_app_settings, get_provider

    app.dependency_overrides[get_provider]     = lambda: fake_provider
    app.dependency_overrides[get_app_settings] = lambda: test_settings

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the overridden app (lifespan not run)."""
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
