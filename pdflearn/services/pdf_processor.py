import io
from dataclasses import dataclass

import structlog
from pypdf import PdfReader

from pdflearn.errors import ExtractionError, NoExtractableTextError

logger = structlog.get_logger()


@dataclass
class ExtractedPdf:
    filename: str
    text: str
    page_count: int


# -------------------- PDF TEXT EXTRACTION --------------------

def extract_pdf(data: bytes, filename: str) -> ExtractedPdf:
    """Extract page text in order, joined by paragraph breaks.

    Raises ``ExtractionError`` when the payload is not a readable PDF and
    ``NoExtractableTextError`` when it parses but yields only whitespace
    (scanned or image-only documents).
    """
    if not data:
        raise ExtractionError("The uploaded file is empty")

    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            # Many "protected" PDFs only carry an owner password
            if not reader.decrypt(""):
                raise ExtractionError("This PDF is password-protected and cannot be read")
        pages = [page.extract_text() or "" for page in reader.pages]
    except ExtractionError:
        raise
    except Exception as e:
        logger.warning("pdf_parse_failed", filename=filename, error=str(e))
        raise ExtractionError("Failed to extract text from PDF") from e

    text = "\n\n".join(p.strip() for p in pages if p.strip())
    logger.info("pdf_extracted", filename=filename, page_count=len(pages), chars=len(text))

    if not text.strip():
        raise NoExtractableTextError()

    return ExtractedPdf(filename=filename, text=text, page_count=len(pages))


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split())
