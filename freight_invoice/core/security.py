"""Path and filename checks for documents read from, and written to, disk."""

import re
from pathlib import Path

from .exceptions import PathTraversalError, SecurityError

RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9"
}


def validate_safe_path(file_path: str | Path, allowed_extensions: tuple[str, ...] = (".pdf",)) -> Path:
    """Validate that a document path is safe to open.

    Args:
        file_path: Path to validate
        allowed_extensions: Tuple of allowed file extensions (default: PDF only)

    Returns:
        Resolved Path object

    Raises:
        PathTraversalError: If path contains parent-directory references
        SecurityError: If path has invalid characters or extension
    """
    path_str = str(file_path)

    if ".." in Path(path_str).parts:
        raise PathTraversalError(path_str)

    if re.search(r'[<>"|?*\x00-\x1f]', path_str):
        raise SecurityError(f"Invalid characters in path: {path_str!r}", "invalid_characters", path_str)

    path = Path(file_path).resolve()
    if allowed_extensions and path.suffix.lower() not in [ext.lower() for ext in allowed_extensions]:
        raise SecurityError(
            f"File extension '{path.suffix}' not allowed. Allowed: {allowed_extensions}",
            "invalid_extension",
            path_str
        )

    return path


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """Sanitize a filename for safe filesystem operations.

    Used when a document name becomes part of an output path (debug responses,
    exported workbooks).

    Raises:
        SecurityError: If filename cannot be safely sanitized
    """
    if not filename or not filename.strip():
        raise SecurityError("Empty filename provided", "empty_filename")

    # Keep alphanumerics, dots, hyphens, underscores and spaces
    sanitized = re.sub(r"[^a-zA-Z0-9._\-\s]", "_", filename)
    sanitized = re.sub(r"\.{2,}", ".", sanitized)
    sanitized = sanitized.strip(". ")

    if len(sanitized) > max_length:
        path = Path(sanitized)
        stem = path.stem[:max_length - len(path.suffix) - 1]
        sanitized = f"{stem}{path.suffix}"

    if Path(sanitized).stem.upper() in RESERVED_NAMES:
        sanitized = f"safe_{sanitized}"

    if not sanitized:
        raise SecurityError("Filename could not be sanitized safely", "unsanitizable_filename")

    return sanitized
