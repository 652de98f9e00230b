"""Exception hierarchy for freight invoice processing."""

from pathlib import Path
from typing import Any, Optional


class FreightInvoiceError(Exception):
    """Base exception for all freight invoice processing errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DocumentReadError(FreightInvoiceError):
    """Raised when a source document cannot be loaded before extraction."""

    def __init__(
        self,
        file_path: Path | str,
        message: str,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.original_error = original_error

        full_message = f"Unable to read document {self.file_path.name}: {message}"
        if original_error:
            full_message += f" (Original error: {original_error})"

        super().__init__(full_message, {"file_path": str(self.file_path), **(details or {})})


class PDFTooLargeError(DocumentReadError):
    """Raised when a PDF file exceeds the maximum allowed size."""

    def __init__(
        self,
        file_path: Path | str,
        file_size_mb: float,
        max_size_mb: float
    ) -> None:
        message = f"PDF size ({file_size_mb:.1f}MB) exceeds maximum allowed size ({max_size_mb}MB)"
        super().__init__(
            file_path,
            message,
            details={"file_size_mb": file_size_mb, "max_size_mb": max_size_mb}
        )


class InvalidPDFError(DocumentReadError):
    """Raised when a PDF file is corrupted or has no pages."""

    def __init__(
        self,
        file_path: Path | str,
        reason: str = "PDF file is corrupted or invalid"
    ) -> None:
        super().__init__(file_path, reason)


class ModelServiceError(FreightInvoiceError):
    """Raised when the document-understanding call itself fails."""

    def __init__(
        self,
        stage: str,
        file_name: str,
        api_error: Exception,
        model_used: Optional[str] = None,
        retry_count: int = 0
    ) -> None:
        self.stage = stage
        self.file_name = file_name
        self.api_error = api_error
        self.model_used = model_used
        self.retry_count = retry_count

        message = f"{stage} call failed for {file_name} after {retry_count} attempt(s): {api_error}"
        if model_used:
            message += f" (Model: {model_used})"

        super().__init__(message, {"stage": stage, "file_name": file_name, "model_used": model_used})


class MalformedModelOutputError(FreightInvoiceError):
    """Raised when the model returns no structured result or one failing shape validation."""

    def __init__(
        self,
        stage: str,
        file_name: str,
        reason: str,
        response_text: str = "",
        parsing_error: Optional[Exception] = None
    ) -> None:
        self.stage = stage
        self.file_name = file_name
        self.reason = reason
        self.response_text = response_text
        self.parsing_error = parsing_error

        message = f"{stage} returned unusable output for {file_name}: {reason}"
        if response_text:
            message += f" (Response: {response_text[:100]}...)"

        super().__init__(message, {"stage": stage, "file_name": file_name})


class ExtractionFailure(FreightInvoiceError):
    """Raised when one invoice document cannot be turned into a record."""

    def __init__(self, filename: str, cause: Exception) -> None:
        self.filename = filename
        self.cause = cause
        super().__init__(
            f"Extraction failed for {filename}: {cause}",
            {"filename": filename, "cause": type(cause).__name__}
        )


class QuotationExtractionError(FreightInvoiceError):
    """Raised when a quotation document yields no rate schedule."""

    def __init__(self, filename: str, cause: Exception) -> None:
        self.filename = filename
        self.cause = cause
        super().__init__(
            f"Quotation rate extraction failed for {filename}: {cause}",
            {"filename": filename, "cause": type(cause).__name__}
        )


class SecurityError(FreightInvoiceError):
    """Base class for security-related errors."""

    def __init__(
        self,
        message: str,
        security_check: str,
        file_path: Optional[Path | str] = None
    ) -> None:
        self.security_check = security_check
        self.file_path = Path(file_path) if file_path else None

        full_message = f"Security check failed ({security_check}): {message}"
        details = {"security_check": security_check}
        if file_path:
            details["file_path"] = str(file_path)

        super().__init__(full_message, details)


class PathTraversalError(SecurityError):
    """Raised when path traversal attack is detected."""

    def __init__(self, attempted_path: str) -> None:
        message = f"Path traversal attempt detected: {attempted_path}"
        super().__init__(message, "path_traversal", attempted_path)
        self.attempted_path = attempted_path


class ConfigurationError(FreightInvoiceError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, setting_name: str, issue: str) -> None:
        message = f"Configuration error for '{setting_name}': {issue}"
        super().__init__(message, {"setting_name": setting_name, "issue": issue})
        self.setting_name = setting_name
        self.issue = issue


def describe_failure(error: BaseException) -> str:
    """Human-readable cause for a per-document failure report."""
    if isinstance(error, (ExtractionFailure, QuotationExtractionError)):
        return describe_failure(error.cause)
    if isinstance(error, FreightInvoiceError):
        return error.message
    return f"{type(error).__name__}: {error}"


__all__ = [
    "FreightInvoiceError",
    "DocumentReadError",
    "PDFTooLargeError",
    "InvalidPDFError",
    "ModelServiceError",
    "MalformedModelOutputError",
    "ExtractionFailure",
    "QuotationExtractionError",
    "SecurityError",
    "PathTraversalError",
    "ConfigurationError",
    "describe_failure",
]
