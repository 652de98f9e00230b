"""Tests for the command-line entry point."""
from pathlib import Path
from unittest.mock import patch

import openpyxl
import pytest

from freight_invoice import main as cli
from freight_invoice.core.models import RateSchedule
from freight_invoice.extraction.quotation import QuotationRateExtractor
from freight_invoice.extraction.structured import StructuredExtractor
from freight_invoice.pipeline.store import RateScheduleContext
from freight_invoice.reports.excel import INVOICE_SHEET, QUOTATION_SHEET, FAILED_SHEET

from conftest import make_genai_client


def test_parse_args():
    args = cli.parse_args(["a.pdf", "invoices", "--quotation", "q.pdf", "--no-progress"])
    assert args.inputs == [Path("a.pdf"), Path("invoices")]
    assert args.quotation == Path("q.pdf")
    assert args.no_progress is True
    assert args.output is None


def test_collect_pdfs_expands_folders(tmp_path, write_pdf):
    folder = tmp_path / "batch"
    folder.mkdir()
    for name in ("b.pdf", "a.PDF", "notes.txt"):
        (folder / name).write_bytes(b"x")
    single = write_pdf("single.pdf")

    assert cli.collect_pdfs([single, folder]) == [single, folder / "a.PDF", folder / "b.pdf"]


class TestLoadQuotation:
    @pytest.mark.asyncio
    async def test_success_sets_active_schedule(self, settings, write_pdf):
        client = make_genai_client({"quotation": {"air_service_charge_rate": 4000}})
        extractor = QuotationRateExtractor(StructuredExtractor(client, settings), settings)
        context = RateScheduleContext()

        await cli.load_quotation(write_pdf("quotation.pdf", pages=2), extractor, context, settings)

        assert context.active.air.service.rate == 4000.0
        assert context.active.source_filename == "quotation.pdf"

    @pytest.mark.asyncio
    async def test_failure_clears_previous_schedule(self, settings, write_pdf):
        client = make_genai_client({"quotation": "nothing useful"})
        extractor = QuotationRateExtractor(StructuredExtractor(client, settings), settings)
        context = RateScheduleContext(RateSchedule(source_filename="old.pdf"))

        await cli.load_quotation(write_pdf("quotation.pdf"), extractor, context, settings)

        assert context.active is None

    @pytest.mark.asyncio
    async def test_unreadable_quotation_clears_schedule(self, settings, tmp_path):
        extractor = QuotationRateExtractor(StructuredExtractor(make_genai_client({}), settings), settings)
        context = RateScheduleContext(RateSchedule())

        await cli.load_quotation(tmp_path / "missing.pdf", extractor, context, settings)

        assert context.active is None


@pytest.mark.asyncio
async def test_run_exports_records_and_failures(settings, write_pdf, tmp_path, field_response, charge_response):
    invoice = write_pdf("invoice.pdf")
    broken = tmp_path / "broken.pdf"
    broken.write_bytes(b"broken")
    quotation = write_pdf("quotation.pdf", pages=3)
    output = tmp_path / "export.xlsx"
    client = make_genai_client({
        "fields": field_response,
        "charges": charge_response,
        "quotation": {"air_service_charge_rate": 4000, "air_loading_charge_rate": 1000},
    })
    args = cli.parse_args([str(invoice), str(broken), "--quotation", str(quotation), "--output", str(output), "--no-progress"])

    with patch.object(cli, "create_client", return_value=client):
        exit_code = await cli.run(args, settings)

    assert exit_code == 0
    workbook = openpyxl.load_workbook(output)
    assert workbook.sheetnames == [INVOICE_SHEET, QUOTATION_SHEET, FAILED_SHEET]
    row = [cell.value for cell in workbook[INVOICE_SHEET][2]]
    assert "CCLAIUP252600071" in row
    # 4720 service against a 4000 ceiling
    assert "mismatched" in row
    assert workbook[FAILED_SHEET].cell(row=2, column=1).value == "broken.pdf"


@pytest.mark.asyncio
async def test_run_without_pdfs(settings, tmp_path):
    args = cli.parse_args([str(tmp_path)])
    assert await cli.run(args, settings) == 1


def test_main_reports_configuration_error(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_GENAI_USE_VERTEXAI", raising=False)

    assert cli.main([str(tmp_path)]) == 2
    assert "GEMINI_API_KEY" in capsys.readouterr().err
