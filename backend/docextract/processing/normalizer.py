"""
Spreadsheet Normalizer
══════════════════════

Converts spreadsheet uploads to CSV before they are handed to the provider.

  .xlsx / spreadsheet content type → openpyxl (read-only, cached values)
  .xls                              → xlrd (legacy BIFF workbooks)

Only the FIRST sheet is converted; any other sheets are ignored. Rows are
padded to the widest row so every line has the same number of fields. The CSV
is written next to the original with the same stem (sales.xlsx → sales.csv, or
sales-1.csv when another upload already owns that name). The original is
deleted and the returned entry carries the text/csv content type.

Workbook parsing is CPU/disk bound, so it runs in the default thread pool to
keep the event loop free for other requests.
"""

from __future__ import annotations

import asyncio
import csv
import datetime as dt
import logging
import zipfile
from pathlib import Path
from typing import Any, Iterable

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from docextract.core.errors import SpreadsheetConversionError
from docextract.models.upload import CSV_CONTENT_TYPE, LocalFileEntry

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS: frozenset[str] = frozenset({".xlsx", ".xls"})

_OPENPYXL_ERRORS = (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError)
_XLRD_ERRORS     = (xlrd.XLRDError, ValueError, OSError)


def is_spreadsheet(content_type: str | None, filename: str) -> bool:
    """True for a spreadsheet content type or an .xlsx/.xls extension."""
    if content_type and "spreadsheet" in content_type.lower():
        return True
    return Path(filename).suffix.lower() in SPREADSHEET_EXTENSIONS


# ---------------------------------------------------------------------------
# Workbook readers — first sheet only
# ---------------------------------------------------------------------------

def _read_xlsx_rows(path: Path) -> list[list[Any]]:
    # Opened by handle: openpyxl rejects paths without an .xlsx-family extension
    with path.open("rb") as fh:
        wb = openpyxl.load_workbook(fh, read_only=True, data_only=True)
        try:
            sheet = wb.worksheets[0]
            return [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            wb.close()


def _xls_cell_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return int(cell.value)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    return cell.value


def _read_xls_rows(path: Path) -> list[list[Any]]:
    book = xlrd.open_workbook(str(path), on_demand=True)
    try:
        sheet = book.sheet_by_index(0)
        return [
            [_xls_cell_value(cell, book.datemode) for cell in sheet.row(i)]
            for i in range(sheet.nrows)
        ]
    finally:
        book.release_resources()


def _format_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, dt.datetime) and value.time() == dt.time(0, 0):
        return value.date().isoformat()
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    return value


def _csv_target(source: Path) -> Path:
    """Same-stem .csv next to source; a numeric suffix avoids clobbering another upload."""
    target = source.with_suffix(".csv")
    n = 1
    while target != source and target.exists():
        target = source.with_name(f"{source.stem}-{n}.csv")
        n += 1
    return target


def write_csv(rows: Iterable[list[Any]], target: Path) -> int:
    """Write rows as CSV (default delimiter and quoting). Returns the row count."""
    rows  = list(rows)
    width = max((len(r) for r in rows), default=0)
    with target.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh, lineterminator="\n")
        for row in rows:
            padded = list(row) + [None] * (width - len(row))
            writer.writerow([_format_cell(v) for v in padded])
    return len(rows)


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

class SpreadsheetNormalizer:
    """
    Stateless — one instance may be shared across requests.

    Usage:
        normalizer = SpreadsheetNormalizer()
        if is_spreadsheet(entry.content_type, entry.original_name):
            entry = await normalizer.normalize(entry)
    """

    async def normalize(self, entry: LocalFileEntry) -> LocalFileEntry:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.convert, entry)

    def convert(self, entry: LocalFileEntry) -> LocalFileEntry:
        """Synchronous conversion; raises SpreadsheetConversionError on bad input."""
        source = entry.path
        target = _csv_target(source)

        if source.suffix.lower() == ".xls":
            try:
                rows = _read_xls_rows(source)
            except _XLRD_ERRORS as exc:
                raise SpreadsheetConversionError(entry.original_name, str(exc)) from exc
        else:
            try:
                rows = _read_xlsx_rows(source)
            except _OPENPYXL_ERRORS as exc:
                raise SpreadsheetConversionError(entry.original_name, str(exc)) from exc

        row_count = write_csv(rows, target)
        if target != source:
            source.unlink()

        logger.info(
            "Normalizer | converted file=%s rows=%d → %s",
            entry.original_name, row_count, target.name,
        )
        return LocalFileEntry(
            original_name=entry.original_name,
            path=target,
            content_type=CSV_CONTENT_TYPE,
            size_bytes=target.stat().st_size,
        )
