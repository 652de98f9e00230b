"""Shared fixtures: generated PDFs, test settings and a mocked Gemini client."""

import json
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import fitz  # PyMuPDF
import pytest

from freight_invoice.config import Settings
from freight_invoice.core.models import SourceDocument
from freight_invoice.extraction.prompts import (
    CHARGE_CLASSIFICATION_REQUEST,
    FIELD_EXTRACTION_REQUEST,
    QUOTATION_RATES_REQUEST,
)

STAGE_BY_REQUEST = {
    FIELD_EXTRACTION_REQUEST: "fields",
    CHARGE_CLASSIFICATION_REQUEST: "charges",
    QUOTATION_RATES_REQUEST: "quotation",
}


class MockGeminiResponse:
    """Mock response from Gemini API."""

    def __init__(self, text: str):
        self.text = text


def make_pdf_bytes(pages: int = 1) -> bytes:
    """Build a real PDF with one line of text per page."""
    doc = fitz.open()
    try:
        for number in range(1, pages + 1):
            page = doc.new_page()
            page.insert_text((72, 72), f"Page {number}")
        return doc.tobytes()
    finally:
        doc.close()


def page_count_of(pdf_bytes: bytes) -> int:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc.page_count


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with no retry delay and debug output under tmp_path."""
    return Settings(
        _env_file=None,
        gemini_api_key="unit-test-api-key-0123456789",
        retry_max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter_range=0.0,
        responses_directory=tmp_path / "json_responses",
        logs_directory=tmp_path / "logs",
        output_directory=tmp_path / "output",
    )


@pytest.fixture
def invoice_document() -> SourceDocument:
    return SourceDocument(filename="invoice.pdf", content=make_pdf_bytes(3), page_count=3)


@pytest.fixture
def quotation_document() -> SourceDocument:
    return SourceDocument(filename="quotation.pdf", content=make_pdf_bytes(7), page_count=7)


@pytest.fixture
def write_pdf(tmp_path) -> Callable[..., Path]:
    """Write a generated PDF into tmp_path and return its path."""
    def _write(name: str, pages: int = 1) -> Path:
        path = tmp_path / name
        path.write_bytes(make_pdf_bytes(pages))
        return path
    return _write


def stage_of(contents: list) -> str:
    return STAGE_BY_REQUEST[contents[1]]


def make_genai_client(responses: dict[str, Any]) -> MagicMock:
    """Mock genai.Client whose answer depends on the extraction stage.

    ``responses`` maps a stage name to a dict (sent as JSON), a raw string,
    an exception instance, or a list of those consumed one call at a time.
    """
    queues = {stage: list(value) if isinstance(value, list) else value for stage, value in responses.items()}

    async def generate_content(model: str, contents: list, config: Any) -> MockGeminiResponse:
        entry = queues[stage_of(contents)]
        if isinstance(entry, list):
            entry = entry.pop(0)
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, dict):
            return MockGeminiResponse(json.dumps(entry))
        return MockGeminiResponse(entry)

    client = MagicMock()
    client.aio = MagicMock()
    client.aio.models = MagicMock()
    client.aio.models.generate_content = AsyncMock(side_effect=generate_content)
    return client


@pytest.fixture
def field_response() -> dict:
    return {
        "invoice_number": "CCLAIUP252600071",
        "invoice_date": "2025-04-29",
        "house_waybill_number": "AFRAA0079028",
        "master_waybill_number": "176-12345675",
        "waybill_terminology": "HAWB",
        "terms_of_invoice": "CIF",
        "job_number": "IMP/AIR/12771/04/25-26",
        "shipment_mode": "air",
    }


@pytest.fixture
def charge_response() -> dict:
    return {
        "line_items": [
            {"description": "SERVICE CHARGES", "total": 4720.0},
            {"description": "LOADING & UNLOADING CHARGES", "total": "₹590.00"},
            {"description": "TRANSPORTATION", "total": 4130},
            {"description": "Airline Terminal Handling Charges", "total": 12000},
            {"description": "DELHICARGOSERVICE-CUSTODIAN CHARGES", "total": "3,245.50"},
        ],
        "service_charge_actual": 4720.0,
        "loading_unloading_charge_actual": 590.0,
        "transportation_charge_actual": 4130.0,
        "own_charges": 9440.0,
        "reimbursement_charges": 15245.5,
    }
