"""Tests for per-document orchestration and batch failure isolation."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from freight_invoice.core.exceptions import (
    ExtractionFailure,
    MalformedModelOutputError,
    ModelServiceError,
)
from freight_invoice.core.models import ChargeBreakdown, ShipmentMode
from freight_invoice.pipeline.orchestrator import ExtractionOrchestrator
from freight_invoice.pipeline.store import ResultStore

from conftest import make_genai_client


def make_orchestrator(settings, responses) -> ExtractionOrchestrator:
    return ExtractionOrchestrator.from_settings(settings, client=make_genai_client(responses))


class TestProcess:
    @pytest.mark.asyncio
    async def test_fields_and_charges_merge_into_one_record(
        self, settings, invoice_document, field_response, charge_response
    ):
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": charge_response})

        record = await orchestrator.process(invoice_document)

        assert record.invoice_number == "CCLAIUP252600071"
        assert record.shipment_reference == "AFRAA0079028"
        assert record.shipment_mode == ShipmentMode.AIR
        assert record.own_charges == 9440.0
        assert record.reimbursement_charges == pytest.approx(15245.5)
        assert record.total_charges == pytest.approx(24685.5)
        assert record.source_filename == "invoice.pdf"
        assert record.comparison is None

    @pytest.mark.asyncio
    async def test_own_charges_reconciled_to_sum_of_actuals(self, settings, invoice_document, field_response):
        charges = {
            "service_charge_actual": 100,
            "loading_unloading_charge_actual": "50",
            "transportation_charge_actual": 200,
            "own_charges": 999,
            "reimbursement_charges": 25,
        }
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": charges})

        record = await orchestrator.process(invoice_document)

        assert record.own_charges == 350.0
        assert record.total_charges == 375.0

    @pytest.mark.asyncio
    async def test_source_filename_override(self, settings, invoice_document, field_response, charge_response):
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": charge_response})
        record = await orchestrator.process(invoice_document, source_filename="upload-17.pdf")
        assert record.source_filename == "upload-17.pdf"

    @pytest.mark.asyncio
    async def test_malformed_charges_give_zero_amounts(self, settings, invoice_document, field_response):
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": "no table here"})

        record = await orchestrator.process(invoice_document)

        assert record.invoice_number == "CCLAIUP252600071"
        assert record.own_charges == 0.0
        assert record.reimbursement_charges == 0.0
        assert record.total_charges == 0.0

    @pytest.mark.asyncio
    async def test_field_failure_fails_the_document(self, settings, invoice_document, charge_response):
        orchestrator = make_orchestrator(settings, {"fields": "not json", "charges": charge_response})

        with pytest.raises(ExtractionFailure) as exc_info:
            await orchestrator.process(invoice_document)
        assert exc_info.value.filename == "invoice.pdf"
        assert isinstance(exc_info.value.cause, MalformedModelOutputError)

    @pytest.mark.asyncio
    async def test_charge_service_failure_fails_the_document(self, settings, invoice_document, field_response):
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": ValueError("bad request")})

        with pytest.raises(ExtractionFailure) as exc_info:
            await orchestrator.process(invoice_document)
        assert isinstance(exc_info.value.cause, ModelServiceError)


class TestProcessBatch:
    @pytest.mark.asyncio
    async def test_unreadable_document_is_isolated(self, settings, write_pdf, tmp_path, field_response, charge_response):
        first = write_pdf("a.pdf")
        corrupted = tmp_path / "b.pdf"
        corrupted.write_bytes(b"this is not a pdf")
        third = write_pdf("c.pdf", pages=2)

        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": charge_response})
        store = ResultStore()

        result = await orchestrator.process_batch([first, corrupted, third], store, progress=False)

        assert result.succeeded == 2
        assert result.failed == 1
        assert [r.source_filename for r in store] == ["a.pdf", "c.pdf"]
        failure = result.failures[0]
        assert failure.filename == "b.pdf"
        assert failure.stage == "load"
        assert "corrupted" in failure.error_message

    @pytest.mark.asyncio
    async def test_missing_file_is_reported(self, settings, tmp_path, field_response, charge_response):
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": charge_response})

        result = await orchestrator.process_batch([tmp_path / "missing.pdf"], progress=False)

        assert result.records == []
        assert result.failures[0].filename == "missing.pdf"
        assert "File not found" in result.failures[0].error_message

    @pytest.mark.asyncio
    async def test_extraction_failure_reported_with_stage(self, settings, invoice_document, charge_response):
        orchestrator = make_orchestrator(settings, {"fields": TimeoutError("deadline exceeded"), "charges": charge_response})

        result = await orchestrator.process_batch([invoice_document], progress=False)

        assert result.failed == 1
        assert result.failures[0].stage == "extraction"
        assert "deadline exceeded" in result.failures[0].error_message

    @pytest.mark.asyncio
    async def test_unexpected_errors_do_not_abort_the_batch(self, invoice_document):
        field_extractor = MagicMock()
        field_extractor.extract_fields = AsyncMock(side_effect=KeyError("invoice_number"))
        charge_classifier = MagicMock()
        charge_classifier.classify = AsyncMock(return_value=ChargeBreakdown())
        orchestrator = ExtractionOrchestrator(field_extractor, charge_classifier)

        result = await orchestrator.process_batch([invoice_document], progress=False)

        assert result.failed == 1
        assert result.failures[0].error_message.startswith("KeyError")

    @pytest.mark.asyncio
    async def test_duplicate_documents_stored_once(self, settings, invoice_document, field_response, charge_response):
        orchestrator = make_orchestrator(settings, {"fields": field_response, "charges": charge_response})
        store = ResultStore()

        result = await orchestrator.process_batch([invoice_document, invoice_document], store, progress=False)

        assert result.succeeded == 2
        assert len(store) == 1
