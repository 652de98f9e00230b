"""Invoice actuals vs. quoted rate ceilings."""
from typing import Iterable, Optional

from ..core.models import ComparisonStatus, ExtractedRecord, RateSchedule, ShipmentMode


def _within_ceiling(actual: float, ceiling: Optional[float]) -> bool:
    # No ceiling means the check is skipped, not that the charge must be zero
    return ceiling is None or actual <= ceiling


def compare(record: ExtractedRecord, schedule: Optional[RateSchedule]) -> ComparisonStatus:
    """Compare service and loading actuals against the schedule for the record's mode.

    Transportation is never part of the verdict: quoted transportation rates
    are tiered and do not reduce to one ceiling.
    """
    if schedule is None:
        return ComparisonStatus.NO_QUOTATION_DATA

    if record.shipment_mode == ShipmentMode.UNKNOWN:
        return ComparisonStatus.INVOICE_TYPE_UNKNOWN

    rates = schedule.for_mode(record.shipment_mode)
    if rates is None or (rates.service.rate is None and rates.loading.rate is None):
        return ComparisonStatus.NOT_COMPARABLE_CHARGES

    service_ok = _within_ceiling(record.service_charge_actual, rates.service.rate)
    loading_ok = _within_ceiling(record.loading_unloading_charge_actual, rates.loading.rate)
    return ComparisonStatus.MATCHED if service_ok and loading_ok else ComparisonStatus.MISMATCHED


def annotate(records: Iterable[ExtractedRecord], schedule: Optional[RateSchedule]) -> list[ExtractedRecord]:
    """Copies of ``records`` carrying their comparison against ``schedule``."""
    return [record.with_comparison(compare(record, schedule)) for record in records]
