"""Command-line entry point: extract invoices, compare against a quotation, export to Excel."""
import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .config import Settings
from .core.exceptions import ConfigurationError, DocumentReadError, QuotationExtractionError
from .core.pdf_utils import load_document_async
from .extraction.quotation import QuotationRateExtractor
from .extraction.structured import StructuredExtractor, create_client
from .logging_config import setup_logging
from .pipeline.orchestrator import ExtractionOrchestrator
from .pipeline.store import RateScheduleContext, ResultStore
from .reports.excel import export_to_excel

logger = logging.getLogger("freight_invoice.main")

DEFAULT_EXPORT_NAME = "freight_invoice_export.xlsx"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="freight-invoice",
        description="Extract and classify freight invoice charges into an Excel workbook."
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="Invoice PDFs or folders containing them")
    parser.add_argument("--quotation", type=Path, help="Quotation PDF to compare invoice charges against")
    parser.add_argument("--output", type=Path, help=f"Output workbook (default: <output_directory>/{DEFAULT_EXPORT_NAME})")
    parser.add_argument("--logs", type=Path, help="Logs folder (default: settings.logs_directory)")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console")
    return parser.parse_args(argv)


def collect_pdfs(inputs: List[Path]) -> List[Path]:
    """Expand folders into their PDF files, keeping command-line order."""
    pdf_files: List[Path] = []
    for item in inputs:
        if item.is_dir():
            pdf_files.extend(sorted(p for p in item.iterdir() if p.is_file() and p.suffix.lower() == ".pdf"))
        else:
            pdf_files.append(item)
    return pdf_files


def load_settings() -> Settings:
    load_dotenv()
    try:
        return Settings.from_env()
    except ValidationError as exc:
        first_error = exc.errors()[0]
        setting_name = ".".join(str(part) for part in first_error.get("loc", ())) or "settings"
        raise ConfigurationError(setting_name, first_error.get("msg", str(exc))) from exc


async def load_quotation(
    path: Path,
    quotation_extractor: QuotationRateExtractor,
    context: RateScheduleContext,
    settings: Settings
) -> None:
    """Set the active schedule from ``path``; on failure the schedule is cleared."""
    try:
        document = await load_document_async(path, settings.max_pdf_size_mb)
        context.set(await quotation_extractor.extract_rates(document))
        logger.info(f"Quotation rates loaded from {path.name}")
    except (DocumentReadError, QuotationExtractionError) as exc:
        context.clear()
        logger.error(f"Quotation {path.name} could not be used, comparisons disabled: {exc}")


async def run(args: argparse.Namespace, settings: Settings) -> int:
    pdf_files = collect_pdfs(args.inputs)
    if not pdf_files:
        logger.warning("No PDF files found in the given inputs")
        return 1

    extractor = StructuredExtractor(create_client(settings), settings)
    orchestrator = ExtractionOrchestrator.from_settings(settings, extractor)
    store = ResultStore()
    schedule_context = RateScheduleContext()

    if args.quotation:
        await load_quotation(args.quotation, QuotationRateExtractor(extractor, settings), schedule_context, settings)

    logger.info(f"Found {len(pdf_files)} PDF files to process")
    batch = await orchestrator.process_batch(pdf_files, store, progress=not args.no_progress)

    records = store.compared(schedule_context.active) if schedule_context.active else store.records
    output_path = args.output or settings.output_directory / DEFAULT_EXPORT_NAME
    export_to_excel(records, output_path, schedule_context.active, batch.failures)

    logger.info(f"Total successfully processed files: {batch.succeeded} out of {batch.total}")
    for failure in batch.failures:
        logger.warning(f"Failed: {failure.filename} ({failure.stage}) - {failure.error_message}")

    return 0 if batch.succeeded else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(exc.message, file=sys.stderr)
        return 2

    setup_logging(args.logs or settings.logs_directory, verbose=args.verbose)

    start_time = time.time()
    exit_code = asyncio.run(run(args, settings))
    logger.info(f"Completed in {time.time() - start_time:.1f}s")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
