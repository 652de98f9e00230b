"""
Spreadsheet export for extracted invoice records.

One worksheet of invoice rows, plus the active quotation rates and failed
files when there are any. Column order is fixed by ``INVOICE_COLUMNS``.
"""

import io
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.workbook import Workbook

from ..core.models import DocumentFailure, ExtractedRecord, RateSchedule

logger = logging.getLogger(__name__)

INVOICE_SHEET = "Invoice Data"
QUOTATION_SHEET = "Quotation Rates"
FAILED_SHEET = "Failed Files"
AMOUNT_FORMAT = "#,##0.00"

INVOICE_COLUMNS: List[tuple[str, Callable[[ExtractedRecord], Any]]] = [
    ("Invoice Date", lambda r: r.invoice_date),
    ("Invoice No", lambda r: r.invoice_number),
    ("Shipment Ref (HAWB/HBL/MAWB/MBL)", lambda r: r.shipment_reference),
    ("Terms of Invoice", lambda r: r.terms_of_invoice),
    ("Job Number", lambda r: r.job_number),
    ("Shipment Mode", lambda r: r.shipment_mode.value),
    ("Service Charges (Actual)", lambda r: r.service_charge_actual),
    ("Loading & Unloading Charges (Actual)", lambda r: r.loading_unloading_charge_actual),
    ("Transportation Charges (Actual)", lambda r: r.transportation_charge_actual),
    ("Own Charges (Service, Loading/Unloading, Transportation)", lambda r: r.own_charges),
    ("Reimbursement Charges (Storage, DO, Terminal Handling, etc.)", lambda r: r.reimbursement_charges),
    ("Total Charges (Incl. Tax)", lambda r: r.own_charges + r.reimbursement_charges),
    ("Rate Comparison", lambda r: r.comparison.value if r.comparison else ""),
    ("Source File", lambda r: r.source_filename or "N/A"),
]

AMOUNT_COLUMNS = {
    "Service Charges (Actual)",
    "Loading & Unloading Charges (Actual)",
    "Transportation Charges (Actual)",
    "Own Charges (Service, Loading/Unloading, Transportation)",
    "Reimbursement Charges (Storage, DO, Terminal Handling, etc.)",
    "Total Charges (Incl. Tax)",
}


def create_worksheet(workbook: Workbook, sheet_name: str, headers: List[str], data_rows: List[List], header_color: str = "366092"):
    """
    Create a worksheet with styled headers and data rows.

    Args:
        workbook: openpyxl workbook object
        sheet_name: Name of the worksheet
        headers: List of header strings
        data_rows: List of lists, each containing row data
        header_color: Hex color for header background (default: blue)
    """
    ws = workbook.create_sheet(sheet_name)

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = PatternFill(start_color=header_color, end_color=header_color, fill_type="solid")
        ws.column_dimensions[cell.column_letter].width = max(12, min(len(header) + 2, 40))

    for row_idx, row_data in enumerate(data_rows, 2):
        for col, value in enumerate(row_data, 1):
            if isinstance(value, str):
                value = ILLEGAL_CHARACTERS_RE.sub("", value)
            cell = ws.cell(row=row_idx, column=col, value=value)
            if headers[col - 1] in AMOUNT_COLUMNS:
                cell.number_format = AMOUNT_FORMAT

    ws.freeze_panes = "A2"
    return ws


def invoice_rows(records: Sequence[ExtractedRecord]) -> List[List[Any]]:
    return [[accessor(record) for _, accessor in INVOICE_COLUMNS] for record in records]


def _quotation_rows(schedule: RateSchedule) -> List[List[Any]]:
    rows = []
    for mode_name, mode_rates in (("Air", schedule.air), ("Ocean", schedule.ocean)):
        for charge_name, rate in (
            ("Service Charges", mode_rates.service),
            ("Loading & Unloading Charges", mode_rates.loading),
            ("Transportation Charges", mode_rates.transportation),
        ):
            rows.append([mode_name, charge_name, rate.rate if rate.rate is not None else "Not comparable", rate.description])
    return rows


def build_workbook(
    records: Sequence[ExtractedRecord],
    schedule: Optional[RateSchedule] = None,
    failures: Sequence[DocumentFailure] = ()
) -> Workbook:
    """Build the export workbook in memory."""
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)

    create_worksheet(workbook, INVOICE_SHEET, [header for header, _ in INVOICE_COLUMNS], invoice_rows(records))

    if schedule is not None:
        create_worksheet(
            workbook,
            QUOTATION_SHEET,
            ["Shipment Mode", "Charge", "Rate Ceiling", "Quoted Description"],
            _quotation_rows(schedule),
            "70AD47",
        )

    if failures:
        create_worksheet(
            workbook,
            FAILED_SHEET,
            ["File Name", "Failure Stage", "Error Message"],
            [[f.filename, f.stage, f.error_message] for f in failures],
            "C00000",
        )

    return workbook


def workbook_bytes(
    records: Sequence[ExtractedRecord],
    schedule: Optional[RateSchedule] = None,
    failures: Sequence[DocumentFailure] = ()
) -> bytes:
    """Serialize the export workbook to .xlsx bytes."""
    buffer = io.BytesIO()
    build_workbook(records, schedule, failures).save(buffer)
    return buffer.getvalue()


def export_to_excel(
    records: Sequence[ExtractedRecord],
    output_path: Path | str,
    schedule: Optional[RateSchedule] = None,
    failures: Sequence[DocumentFailure] = ()
) -> Path:
    """Write the export workbook to ``output_path``."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    build_workbook(records, schedule, failures).save(output_path)
    logger.info(f"Exported {len(records)} invoice rows to {output_path}")
    return output_path
