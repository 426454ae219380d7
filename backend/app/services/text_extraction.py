"""
Text extraction for uploaded course resources.

The extracted text is stored alongside the resource and later used to map
document-search fragments back to the resource they came from.
"""

import io
import logging
import re
from typing import Optional

import pdfplumber

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# Browsers often send application/octet-stream for these
MIME_TYPES_BY_EXTENSION = (
    ((".md", ".markdown"), "text/markdown"),
    ((".txt",), "text/plain"),
    ((".json",), "application/json"),
    ((".csv",), "text/csv"),
    ((".html", ".htm"), "text/html"),
)

TEXT_EXTENSIONS = (".txt", ".md", ".markdown", ".csv", ".json")

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


def effective_mime_type(filename: Optional[str], content_type: Optional[str]) -> str:
    """MIME type to send to document search, corrected by file extension."""
    if filename:
        lower = filename.lower()
        for extensions, mime_type in MIME_TYPES_BY_EXTENSION:
            if lower.endswith(extensions):
                return mime_type
    return content_type or DEFAULT_MIME_TYPE


def safe_display_name(name: str) -> str:
    """Display name for document search: anything but [a-zA-Z0-9.-] becomes '_'."""
    return _UNSAFE_NAME_RE.sub("_", name)


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text of every PDF page (pdfplumber)."""
    parts = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            text = page.extract_text()
            if text:
                parts.append(text)
    return "\n\n".join(parts)


def extract_text(
    data: bytes,
    filename: Optional[str],
    content_type: Optional[str],
) -> Optional[str]:
    """
    Extract plain text from an uploaded file.

    PDFs go through pdfplumber; text-like files are decoded as UTF-8.

    Returns:
        The text, or None for unsupported types and unreadable files
    """
    lower_name = (filename or "").lower()
    lower_type = (content_type or "").lower()

    try:
        if lower_name.endswith(".pdf") or "pdf" in lower_type:
            return extract_pdf_text(data)

        if lower_type.startswith("text/") or lower_name.endswith(TEXT_EXTENSIONS):
            return data.decode("utf-8", errors="replace")
    except Exception as e:
        logger.warning(f"Failed to extract text from file {filename}: {e}")

    return None
