"""PDF loading and page scoping.

Invoices are analyzed on their first page only and quotations on their first
few pages; the page restriction is applied here, before bytes ever reach the
model, by cutting a new PDF from the source document.
"""

import asyncio
import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import fitz  # PyMuPDF

from .exceptions import DocumentReadError, InvalidPDFError, PDFTooLargeError, SecurityError
from .models import SourceDocument
from .security import validate_safe_path

logger = logging.getLogger(__name__)


def check_pdf_size_safety(file_path: Path | str, max_size_mb: float = 100.0) -> tuple[float, bool]:
    """Check if PDF file size is safe for memory operations.

    Args:
        file_path: Path to PDF file
        max_size_mb: Maximum allowed size in MB

    Returns:
        Tuple of (file_size_mb, is_safe)

    Raises:
        PDFTooLargeError: If file exceeds maximum size
        DocumentReadError: If unable to read file
    """
    file_path = Path(file_path)
    try:
        file_size_bytes = file_path.stat().st_size
    except OSError as e:
        raise DocumentReadError(file_path, "Unable to stat file", e)

    file_size_mb = file_size_bytes / (1024 * 1024)
    logger.debug(f"PDF size check: {file_path.name} = {file_size_mb:.2f}MB")

    if file_size_mb > max_size_mb:
        raise PDFTooLargeError(file_path, file_size_mb, max_size_mb)

    # "Safe" means under half of the hard limit
    return file_size_mb, file_size_mb <= (max_size_mb * 0.5)


@contextmanager
def open_pdf(content: bytes, filename: str = "document.pdf") -> Generator[fitz.Document, None, None]:
    """Open PDF bytes, guaranteeing the document is closed afterwards.

    Raises:
        InvalidPDFError: If the bytes are not a readable PDF or have no pages
    """
    if not content:
        raise InvalidPDFError(filename, "PDF file is empty")

    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as e:
        raise InvalidPDFError(filename, f"PDF file is corrupted: {e}")

    try:
        if doc.page_count == 0:
            raise InvalidPDFError(filename, "PDF has no pages")
        yield doc
    finally:
        doc.close()


def get_page_count(content: bytes, filename: str = "document.pdf") -> int:
    """Get the total number of pages in PDF bytes."""
    with open_pdf(content, filename) as doc:
        return doc.page_count


def extract_first_n_pages(content: bytes, max_pages: int, filename: str = "document.pdf") -> bytes:
    """Return a PDF containing only the first ``max_pages`` pages of ``content``.

    If the document already fits, the original bytes are returned untouched.
    """
    if max_pages < 1:
        raise ValueError("max_pages must be at least 1")

    with open_pdf(content, filename) as source_doc:
        pages_to_copy = min(source_doc.page_count, max_pages)
        if pages_to_copy == source_doc.page_count:
            return content

        new_doc = fitz.open()
        try:
            new_doc.insert_pdf(source_doc, from_page=0, to_page=pages_to_copy - 1)
            return new_doc.tobytes()
        finally:
            new_doc.close()


def load_document(file_path: Path | str, max_size_mb: float = 100.0) -> SourceDocument:
    """Read a PDF from disk into a :class:`SourceDocument`.

    Raises:
        DocumentReadError: If the path is unsafe, missing, too large or not a PDF
    """
    file_path = Path(file_path)
    try:
        validate_safe_path(file_path)
    except SecurityError as e:
        raise DocumentReadError(file_path, e.message, e)

    if not file_path.is_file():
        raise DocumentReadError(file_path, "File not found")

    _, is_safe = check_pdf_size_safety(file_path, max_size_mb)
    if not is_safe:
        logger.warning(f"Large PDF detected: {file_path.name}")

    try:
        content = file_path.read_bytes()
    except OSError as e:
        raise DocumentReadError(file_path, "Unable to read file", e)

    page_count = get_page_count(content, file_path.name)
    return SourceDocument(filename=file_path.name, content=content, page_count=page_count)


def document_from_bytes(content: bytes, filename: str) -> SourceDocument:
    """Wrap already-uploaded PDF bytes in a :class:`SourceDocument`."""
    return SourceDocument(filename=filename, content=content, page_count=get_page_count(content, filename))


async def load_document_async(file_path: Path | str, max_size_mb: float = 100.0) -> SourceDocument:
    """Load a document without blocking the event loop."""
    return await asyncio.to_thread(load_document, file_path, max_size_mb)


async def scoped_pdf_bytes(document: SourceDocument, max_pages: int) -> bytes:
    """Page-scoped bytes for a model call, computed off the event loop."""
    return await asyncio.to_thread(extract_first_n_pages, document.content, max_pages, document.filename)
