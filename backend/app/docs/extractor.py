"""PDF text extraction for grounding chat turns."""

import io
import logging

import pdfplumber

from backend.app.errors import ExtractionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 2000


class PdfExcerptExtractor:
    """Turns PDF bytes into a bounded plain-text excerpt.

    Pages are read in order with pdfplumber, joined with newlines and stripped.
    The joined text is then cut to `max_chars`, so the excerpt is always a
    prefix of the full document text.
    """

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self._max_chars = max_chars

    @property
    def max_chars(self) -> int:
        return self._max_chars

    def extract(self, file_bytes: bytes) -> str:
        """Extract the excerpt.

        Args:
            file_bytes: Raw PDF bytes

        Returns:
            Text of at most `max_chars` characters (empty for image-only PDFs)

        Raises:
            ExtractionError: If the bytes are not a readable PDF
        """
        try:
            with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as exc:
            logger.warning(f"PDF extraction failed: {type(exc).__name__}")
            raise ExtractionError() from exc

        text = "\n".join(pages).strip()
        return text[: self._max_chars]
