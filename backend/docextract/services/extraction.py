"""
Extraction Requester

Issues the single inference call that turns the uploaded files into a JSON
document with three collections: invoices, products and customers.

The instruction text, system instruction and generation parameters are fixed;
only the model name comes from configuration. The provider text is always
kept verbatim; when validation is enabled it is additionally parsed into an
ExtractionPayload and a malformed document fails the request.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from docextract.core.errors import InvalidExtractionError
from docextract.llm.base import FileInferenceProvider, GenerationSettings
from docextract.models.upload import ExtractionResult, RemoteFileHandle
from docextract.schemas.extraction import ExtractionPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Fixed request parameters
# ---------------------------------------------------------------------------

SYSTEM_INSTRUCTION = "give response in the expected json format"

EXTRACTION_INSTRUCTION = (
    "Give the response in the expected format. "
    "invoices with following fields serialNumber, customerName, productName, "
    "quantity, tax, totalAmount, date all these fields in the response are "
    "mandatory if there is no data for a field put null. "
    "products with following fields name, quantity, unitPrice, tax, "
    "priceWithTax, discount all these fields are mandatory if there is no data "
    "for a field put null. "
    "customers with customerName, phoneNumber, totalPurchaseAmount all fields "
    "are mandatory if there is no data for a field put null. "
    "When several files describe the same invoice, product or customer, merge "
    "them into a single entry. "
    "Keep the response within the output limit. "
    "It is MANDATORY that you give for all three the invoices, products and "
    "the customers for every response"
)

GENERATION_SETTINGS = GenerationSettings(
    temperature=1.0,
    top_p=0.95,
    top_k=40,
    max_output_tokens=8192,
    response_mime_type="application/json",
)


def parse_extraction(raw_text: str) -> ExtractionPayload:
    """Parse and schema-check the provider text."""
    try:
        document = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise InvalidExtractionError(f"not valid JSON ({exc.msg} at char {exc.pos})") from exc
    try:
        return ExtractionPayload.model_validate(document)
    except ValidationError as exc:
        raise InvalidExtractionError(f"{exc.error_count()} schema error(s): {exc.errors()[0]['msg']}") from exc


class ExtractionRequester:
    """
    Usage:
        requester = ExtractionRequester(provider, validate=True)
        result    = await requester.request(ready_handles)
        result.raw_text   # provider text, untouched
        result.payload    # ExtractionPayload | None
    """

    def __init__(self, provider: FileInferenceProvider, validate: bool = True) -> None:
        self._provider = provider
        self._validate = validate

    async def request(self, handles: list[RemoteFileHandle]) -> ExtractionResult:
        raw_text = await self._provider.generate(
            files=handles,
            prompt=EXTRACTION_INSTRUCTION,
            system_instruction=SYSTEM_INSTRUCTION,
            generation=GENERATION_SETTINGS,
        )
        logger.debug("Extraction | response chars=%d", len(raw_text))

        payload = parse_extraction(raw_text) if self._validate else None
        if payload is not None:
            logger.info(
                "Extraction | invoices=%d products=%d customers=%d",
                len(payload.invoices), len(payload.products), len(payload.customers),
            )
        return ExtractionResult(raw_text=raw_text, payload=payload)
