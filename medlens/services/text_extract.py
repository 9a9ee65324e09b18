import logging
from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)

MAX_PAGES = 50


def extract_text_from_pdf(file_content: bytes) -> str:
    """Text of at most the first 50 pages; empty string when nothing is extractable."""
    reader = PdfReader(BytesIO(file_content))
    parts = []
    for i, page in enumerate(reader.pages):
        if i >= MAX_PAGES:
            break
        text = page.extract_text()
        if text:
            parts.append(text.strip())
    return "\n\n".join(parts).strip()


def extract_excerpt(data: bytes, content_type: str | None, ext: str) -> str | None:
    """Readable text for the prompt, or None for binary formats (images, Word)."""
    ext = (ext or "").lower()
    try:
        if content_type == "application/pdf" or ext == ".pdf":
            return extract_text_from_pdf(data) or None
        if content_type == "text/plain" or ext == ".txt":
            return data.decode("utf-8", errors="replace")
    except PyPdfError as e:
        logger.warning("Text extraction failed (%s): %s", ext or content_type, e)
    except Exception:
        # malformed files surface as arbitrary parser errors; the prompt falls back to metadata only
        logger.exception("Text extraction crashed (%s)", ext or content_type)
    return None
