"""
Document Processing Package
════════════════════════════

Local preparation of uploaded files before they reach the provider.

Modules
───────
  normalizer.py  Spreadsheet (.xlsx / .xls) → CSV conversion, first sheet only
"""

from docextract.processing.normalizer import SpreadsheetNormalizer, is_spreadsheet

__all__ = [
    "SpreadsheetNormalizer",
    "is_spreadsheet",
]
