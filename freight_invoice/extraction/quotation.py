"""Rate schedule extraction from quotation documents."""
import logging

from ..config import Settings
from ..core.exceptions import (
    DocumentReadError,
    MalformedModelOutputError,
    ModelServiceError,
    QuotationExtractionError,
)
from ..core.models import ChargeRate, ModeRates, RateSchedule, SourceDocument
from ..core.numeric import coerce_optional_rate
from .prompts import QUOTATION_RATES_PROMPT, QUOTATION_RATES_REQUEST
from .schemas import QuotationRatesOutput
from .structured import ExtractionRequest, StructuredExtractor

logger = logging.getLogger(__name__)

CHARGE_TYPES = ("service", "loading", "transportation")


def _mode_rates(output: QuotationRatesOutput, mode: str) -> ModeRates:
    rates = {}
    for charge_type in CHARGE_TYPES:
        prefix = f"{mode}_{charge_type}_charge"
        rates[charge_type] = ChargeRate(
            rate=coerce_optional_rate(getattr(output, f"{prefix}_rate")),
            description=getattr(output, f"{prefix}_description"),
        )
    return ModeRates(**rates)


def schedule_from_output(output: QuotationRatesOutput, source_filename: str | None = None) -> RateSchedule:
    return RateSchedule(
        air=_mode_rates(output, "air"),
        ocean=_mode_rates(output, "ocean"),
        source_filename=source_filename,
    )


def quotation_rates_request(settings: Settings) -> ExtractionRequest:
    return ExtractionRequest(
        stage="quotation",
        instruction=QUOTATION_RATES_PROMPT,
        prompt=QUOTATION_RATES_REQUEST,
        output_model=QuotationRatesOutput,
        max_pages=settings.quotation_max_pages,
    )


class QuotationRateExtractor:
    """Recovers a :class:`RateSchedule` from the first pages of a quotation."""

    def __init__(self, extractor: StructuredExtractor, settings: Settings) -> None:
        self._extractor = extractor
        self._request = quotation_rates_request(settings)

    async def extract_rates(self, document: SourceDocument) -> RateSchedule:
        """Extract the rate schedule; no partial schedule is ever returned.

        Raises:
            QuotationExtractionError: If the document or the model output is unusable
        """
        try:
            output = await self._extractor.extract(document, self._request)
        except (MalformedModelOutputError, ModelServiceError, DocumentReadError) as exc:
            logger.error(f"[QUOTATION] {document.filename} - {exc}")
            raise QuotationExtractionError(document.filename, exc) from exc

        schedule = schedule_from_output(output, document.filename)
        logger.info(
            f"[QUOTATION] {document.filename} - Air service/loading: "
            f"{schedule.air.service.rate}/{schedule.air.loading.rate}, "
            f"Ocean service/loading: {schedule.ocean.service.rate}/{schedule.ocean.loading.rate}"
        )
        return schedule
