"""
Provider Package

Provider-neutral interface over the external file + inference service:
  - FileInferenceProvider  (abstract, base.py)
  - GeminiFileProvider     (Google Gemini via google-genai, gemini.py)

Public API::

    from docextract.llm import GeminiFileProvider

    provider = GeminiFileProvider.from_api_key(api_key, model="gemini-1.5-flash")
    handle   = await provider.upload_file(path, "text/csv", path.name)
"""

from docextract.llm.base import FileInferenceProvider, GenerationSettings
from docextract.llm.gemini import GeminiFileProvider

__all__ = [
    "FileInferenceProvider",
    "GenerationSettings",
    "GeminiFileProvider",
]
