"""Per-document orchestration of field extraction and charge classification."""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from google import genai
from tqdm import tqdm

from ..config import Settings
from ..core.exceptions import (
    DocumentReadError,
    ExtractionFailure,
    FreightInvoiceError,
    describe_failure,
)
from ..core.models import BatchResult, DocumentFailure, ExtractedRecord, SourceDocument
from ..core.pdf_utils import load_document_async
from ..extraction.charges import ChargeClassifier, reconcile
from ..extraction.fields import FieldExtractor
from ..extraction.structured import StructuredExtractor, create_client
from .store import ResultStore

logger = logging.getLogger(__name__)

DocumentSource = Union[SourceDocument, Path, str]


class ExtractionOrchestrator:
    """Turns invoice documents into :class:`ExtractedRecord` objects."""

    def __init__(
        self,
        field_extractor: FieldExtractor,
        charge_classifier: ChargeClassifier,
        max_pdf_size_mb: float = 100.0
    ) -> None:
        self._field_extractor = field_extractor
        self._charge_classifier = charge_classifier
        self._max_pdf_size_mb = max_pdf_size_mb

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        extractor: Optional[StructuredExtractor] = None,
        client: Optional[genai.Client] = None
    ) -> "ExtractionOrchestrator":
        """Wire both stages onto one extractor (and so one concurrency limit)."""
        extractor = extractor or StructuredExtractor(client or create_client(settings), settings)
        return cls(
            FieldExtractor(extractor, settings),
            ChargeClassifier(extractor, settings),
            settings.max_pdf_size_mb,
        )

    async def process(self, document: SourceDocument, source_filename: Optional[str] = None) -> ExtractedRecord:
        """Extract, classify and merge one document into a record.

        Both stages run concurrently; neither depends on the other's output.

        Raises:
            ExtractionFailure: If either stage fails (the charge stage only
                fails on service or read errors; malformed charge output
                degrades to zeros)
        """
        filename = source_filename or document.filename

        fields, charges = await asyncio.gather(
            self._field_extractor.extract_fields(document),
            self._charge_classifier.classify(document),
            return_exceptions=True,
        )
        for outcome in (fields, charges):
            if isinstance(outcome, FreightInvoiceError):
                raise ExtractionFailure(filename, outcome) from outcome
            if isinstance(outcome, BaseException):
                raise outcome

        charges = reconcile(charges)
        return ExtractedRecord(
            **fields.model_dump(),
            **charges.model_dump(),
            source_filename=filename,
        )

    async def _load(self, source: DocumentSource) -> SourceDocument:
        if isinstance(source, SourceDocument):
            return source
        return await load_document_async(source, self._max_pdf_size_mb)

    @staticmethod
    def _record_failure(result: BatchResult, filename: str, stage: str, error: Exception) -> None:
        failure = DocumentFailure(filename=filename, stage=stage, error_message=describe_failure(error))
        result.failures.append(failure)
        logger.error(f"[BATCH] {filename} - {failure.error_message}")

    async def process_batch(
        self,
        sources: Iterable[DocumentSource],
        store: Optional[ResultStore] = None,
        progress: bool = True
    ) -> BatchResult:
        """Process documents one at a time, isolating failures per document.

        Each successful record is added to ``store`` as soon as its document
        completes. Never raises for a per-document failure.
        """
        sources = list(sources)
        result = BatchResult()

        with tqdm(total=len(sources), desc=f"Processing {len(sources)} invoices", unit="file", disable=not progress) as pbar:
            for source in sources:
                filename = source.filename if isinstance(source, SourceDocument) else Path(source).name
                stage = "load"
                try:
                    document = await self._load(source)
                    stage = "extraction"
                    record = await self.process(document)
                except (DocumentReadError, ExtractionFailure) as exc:
                    self._record_failure(result, filename, stage, exc)
                    pbar.set_postfix_str(f"failed {filename}")
                except Exception as exc:
                    logger.exception(f"[BATCH] {filename} - Unexpected error")
                    self._record_failure(result, filename, stage, exc)
                    pbar.set_postfix_str(f"failed {filename}")
                else:
                    result.records.append(record)
                    if store is not None:
                        store.add(record)
                    pbar.set_postfix_str(f"ok {filename}")
                    logger.info(f"[BATCH] {filename} - Processed invoice {record.invoice_number or '?'}")
                finally:
                    pbar.update(1)

        logger.info(f"[BATCH] {result.succeeded}/{result.total} processed, {result.failed} failed")
        return result
