"""Charge classification: own charges vs. reimbursements.

The taxonomy is closed. A line item counts as an own charge only when its
whole description, normalized, equals one of the phrases below; everything
else is a reimbursement, however charge-like it reads. Because matching is on
the whole phrase, a description can match at most one category, so
"Transportation & Handling" is a reimbursement rather than a tie.
"""
import logging
import re
from typing import Iterable

from ..config import Settings
from ..core.exceptions import MalformedModelOutputError
from ..core.models import ChargeBreakdown, ChargeCategory, SourceDocument
from ..core.numeric import coerce_amount
from .prompts import CHARGE_CLASSIFICATION_PROMPT, CHARGE_CLASSIFICATION_REQUEST
from .schemas import ChargeClassificationOutput, ChargeLineItem
from .structured import ExtractionRequest, StructuredExtractor

logger = logging.getLogger(__name__)

OWN_CHARGE_PHRASES: dict[str, ChargeCategory] = {
    "service charge": ChargeCategory.SERVICE,
    "agency service charge": ChargeCategory.SERVICE,
    "loading & unloading charge": ChargeCategory.LOADING,
    "transportation": ChargeCategory.TRANSPORTATION,
    "cartage charge": ChargeCategory.TRANSPORTATION,
}

# Amounts within half a paisa are treated as equal
RECONCILIATION_TOLERANCE = 0.005


def normalize_description(description: str) -> str:
    """Lower-case, collapse whitespace and singularize a charge description."""
    text = (description or "").lower()
    text = re.sub(r"\band\b", "&", text)
    text = re.sub(r"\s*&\s*", " & ", text)
    text = re.sub(r"\s+", " ", text).strip(" .:-*")
    text = re.sub(r"\bcharges\b", "charge", text)
    text = re.sub(r"\btransportations\b", "transportation", text)
    return text


def categorize_charge(description: str) -> ChargeCategory:
    """Map one line-item description onto the taxonomy."""
    return OWN_CHARGE_PHRASES.get(normalize_description(description), ChargeCategory.REIMBURSEMENT)


def breakdown_from_line_items(line_items: Iterable[ChargeLineItem]) -> ChargeBreakdown:
    """Sum tax-inclusive line-item totals into the taxonomy buckets."""
    totals = {category: 0.0 for category in ChargeCategory}
    for item in line_items:
        totals[categorize_charge(item.description)] += coerce_amount(item.total)

    own = (
        totals[ChargeCategory.SERVICE]
        + totals[ChargeCategory.LOADING]
        + totals[ChargeCategory.TRANSPORTATION]
    )
    return ChargeBreakdown(
        service_charge_actual=totals[ChargeCategory.SERVICE],
        loading_unloading_charge_actual=totals[ChargeCategory.LOADING],
        transportation_charge_actual=totals[ChargeCategory.TRANSPORTATION],
        own_charges=own,
        reimbursement_charges=totals[ChargeCategory.REIMBURSEMENT],
    )


def breakdown_from_output(output: ChargeClassificationOutput) -> ChargeBreakdown:
    """Build a breakdown, preferring itemized rows over the model's own totals."""
    reported = ChargeBreakdown(
        service_charge_actual=output.service_charge_actual,
        loading_unloading_charge_actual=output.loading_unloading_charge_actual,
        transportation_charge_actual=output.transportation_charge_actual,
        own_charges=output.own_charges,
        reimbursement_charges=output.reimbursement_charges,
    )
    # Rows with neither a description nor an amount are placeholders
    line_items = [item for item in output.line_items if item.description or coerce_amount(item.total) > 0]
    if not line_items:
        return reported

    itemized = breakdown_from_line_items(line_items)
    if (
        abs(itemized.own_charges - reported.own_charges) > RECONCILIATION_TOLERANCE
        or abs(itemized.reimbursement_charges - reported.reimbursement_charges) > RECONCILIATION_TOLERANCE
    ):
        logger.debug(
            f"[CHARGES] Model totals (own={reported.own_charges}, reimb={reported.reimbursement_charges}) "
            f"differ from itemized rows (own={itemized.own_charges}, reimb={itemized.reimbursement_charges})"
        )
    return itemized


def reconcile(breakdown: ChargeBreakdown) -> ChargeBreakdown:
    """Make own charges equal the sum of the three actuals when that sum is positive."""
    actuals_sum = breakdown.actuals_sum
    if actuals_sum > 0 and abs(actuals_sum - breakdown.own_charges) > RECONCILIATION_TOLERANCE:
        logger.info(
            f"[CHARGES] Reconciled own charges {breakdown.own_charges:.2f} -> {actuals_sum:.2f} "
            f"(sum of itemized actuals)"
        )
        return breakdown.model_copy(update={"own_charges": actuals_sum})
    return breakdown


def charge_classification_request(settings: Settings) -> ExtractionRequest:
    return ExtractionRequest(
        stage="charges",
        instruction=CHARGE_CLASSIFICATION_PROMPT,
        prompt=CHARGE_CLASSIFICATION_REQUEST,
        output_model=ChargeClassificationOutput,
        max_pages=settings.invoice_max_pages,
    )


class ChargeClassifier:
    """Itemizes and classifies the first-page charges of an invoice."""

    def __init__(self, extractor: StructuredExtractor, settings: Settings) -> None:
        self._extractor = extractor
        self._request = charge_classification_request(settings)

    async def classify(self, document: SourceDocument) -> ChargeBreakdown:
        """Return the charge breakdown, or all zeros if the model output is unusable.

        Model-service and document-read errors propagate to the caller.
        """
        try:
            output = await self._extractor.extract(document, self._request)
        except MalformedModelOutputError as exc:
            logger.warning(f"[CHARGES] {document.filename} - {exc.reason}; using zero charges")
            return ChargeBreakdown()

        breakdown = breakdown_from_output(output)
        logger.info(
            f"[CHARGES] {document.filename} - Own: {breakdown.own_charges:.2f}, "
            f"Reimbursement: {breakdown.reimbursement_charges:.2f}"
        )
        return breakdown
