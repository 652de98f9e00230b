"""Identification field extraction and shipment-mode inference."""
import logging
import re
from typing import Optional

from ..config import Settings
from ..core.exceptions import MalformedModelOutputError
from ..core.models import IdentificationFields, ShipmentMode, SourceDocument
from .prompts import FIELD_EXTRACTION_PROMPT, FIELD_EXTRACTION_REQUEST
from .schemas import FieldExtractionOutput
from .structured import ExtractionRequest, StructuredExtractor

logger = logging.getLogger(__name__)

AIR_JOB_TOKENS = {"AIR"}
OCEAN_JOB_TOKENS = {"SEA", "OCEAN"}
AIR_WAYBILL_TERMS = {"HAWB", "MAWB", "AWB"}
OCEAN_WAYBILL_TERMS = {"HBL", "MBL", "BL", "BOL"}


def _tokens(text: str) -> set[str]:
    return {token for token in re.split(r"[^A-Z0-9]+", (text or "").upper()) if token}


def _mode_from_evidence(is_air: bool, is_ocean: bool) -> Optional[ShipmentMode]:
    if is_air and not is_ocean:
        return ShipmentMode.AIR
    if is_ocean and not is_air:
        return ShipmentMode.OCEAN
    return None


def infer_shipment_mode(job_number: str, waybill_terminology: str = "", model_hint: str = "") -> ShipmentMode:
    """Infer air/ocean from the job number, then waybill wording, then the model's hint.

    The job number wins because forwarders encode the mode in it
    ("IMP/AIR/12771/04/25-26", "EXP-SEA-0042"). Conflicting evidence at a
    level (both AIR and SEA tokens) falls through to the next one.
    """
    job_tokens = _tokens(job_number)
    mode = _mode_from_evidence(bool(job_tokens & AIR_JOB_TOKENS), bool(job_tokens & OCEAN_JOB_TOKENS))
    if mode:
        return mode

    # "B/L" tokenizes to {"B", "L"}
    waybill = (waybill_terminology or "").upper().replace("B/L", "BL")
    waybill_tokens = _tokens(waybill)
    mode = _mode_from_evidence(
        bool(waybill_tokens & AIR_WAYBILL_TERMS), bool(waybill_tokens & OCEAN_WAYBILL_TERMS)
    )
    if mode:
        return mode

    hint = (model_hint or "").strip().lower()
    if hint == "air":
        return ShipmentMode.AIR
    if hint in ("ocean", "sea"):
        return ShipmentMode.OCEAN
    return ShipmentMode.UNKNOWN


def _first_reference(value: str) -> str:
    return re.split(r"[,;]", value or "", maxsplit=1)[0].strip()


def resolve_shipment_reference(house: str, master: str) -> str:
    """House waybill if present, otherwise master waybill, otherwise empty.

    Only the first of several listed references is kept.
    """
    return _first_reference(house) or _first_reference(master)


def fields_from_output(output: FieldExtractionOutput) -> IdentificationFields:
    return IdentificationFields(
        invoice_number=output.invoice_number,
        invoice_date=output.invoice_date,
        shipment_reference=resolve_shipment_reference(output.house_waybill_number, output.master_waybill_number),
        terms_of_invoice=output.terms_of_invoice,
        job_number=output.job_number,
        shipment_mode=infer_shipment_mode(output.job_number, output.waybill_terminology, output.shipment_mode),
    )


def field_extraction_request(settings: Settings) -> ExtractionRequest:
    return ExtractionRequest(
        stage="fields",
        instruction=FIELD_EXTRACTION_PROMPT,
        prompt=FIELD_EXTRACTION_REQUEST,
        output_model=FieldExtractionOutput,
        max_pages=settings.invoice_max_pages,
    )


class FieldExtractor:
    """Recovers invoice identification fields from the first page."""

    def __init__(self, extractor: StructuredExtractor, settings: Settings) -> None:
        self._extractor = extractor
        self._request = field_extraction_request(settings)

    async def extract_fields(self, document: SourceDocument) -> IdentificationFields:
        """Extract identification fields.

        Raises:
            MalformedModelOutputError: If the model returns nothing usable
            ModelServiceError: If the model call fails after retries
        """
        output = await self._extractor.extract(document, self._request)
        fields = fields_from_output(output)

        if not any((fields.invoice_number, fields.invoice_date, fields.shipment_reference, fields.job_number)):
            raise MalformedModelOutputError(
                self._request.stage, document.filename, "no identification fields were returned"
            )

        logger.info(
            f"[FIELDS] {document.filename} - Invoice {fields.invoice_number or '?'} "
            f"({fields.shipment_mode.value}, ref {fields.shipment_reference or 'none'})"
        )
        return fields
