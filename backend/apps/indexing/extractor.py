"""
Text extraction from uploaded documents.

Supports:
- .txt: UTF-8 text (with fallback for encoding errors)
- .pdf: Text layer extraction using PyMuPDF
- .docx: Paragraph text using python-docx

Extraction works on in-memory bytes; staging files on disk is the
upload layer's job.
"""
import io
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ('pdf', 'docx', 'txt')


class ExtractionError(Exception):
    """Base class for extraction-stage failures."""
    code = 'EXTRACTION_ERROR'


class UnsupportedFormat(ExtractionError):
    """Raised when the file extension is not pdf, docx or txt."""
    code = 'UNSUPPORTED_FORMAT'


class ExtractionFailure(ExtractionError):
    """Raised when the underlying parser rejects the bytes."""
    code = 'EXTRACTION_FAILED'


class EmptyExtraction(ExtractionError):
    """Raised when a document yields no text after trimming."""
    code = 'EMPTY_DOCUMENT'


class UploadTooLarge(ExtractionError):
    """Raised when a payload exceeds the configured upload limit."""
    code = 'FILE_TOO_LARGE'


def detect_format(file_type_or_name: str) -> str:
    """
    Resolve a declared format to one of SUPPORTED_FORMATS.

    Accepts a bare format ('pdf'), an extension ('.PDF') or a filename
    ('report.Pdf'). Matching is case-insensitive.

    Raises:
        UnsupportedFormat: If the format is not supported
    """
    value = (file_type_or_name or '').strip().lower()
    if value in SUPPORTED_FORMATS:
        return value

    suffix = Path(value).suffix or value
    fmt = suffix.lstrip('.')
    if fmt not in SUPPORTED_FORMATS:
        raise UnsupportedFormat(f"Unsupported file format: {suffix or '(none)'}")
    return fmt


def extract_text_from_txt(data: bytes) -> str:
    """Decode a plain text payload as UTF-8."""
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        logger.warning("UTF-8 decode failed, using errors='ignore'")
        return data.decode('utf-8', errors='ignore')


def extract_text_from_pdf(data: bytes) -> str:
    """
    Extract text from a PDF payload using PyMuPDF.

    Scanned, image-only PDFs have no text layer and come back empty;
    there is no OCR step.

    Raises:
        ExtractionFailure: If the PDF cannot be parsed
    """
    import fitz  # PyMuPDF

    text_parts = []
    try:
        with fitz.open(stream=data, filetype='pdf') as doc:
            if doc.page_count == 0:
                raise ExtractionFailure("PDF has no pages")
            for page in doc:
                page_text = page.get_text()
                if page_text.strip():
                    text_parts.append(page_text)
    except Exception as e:
        raise ExtractionFailure(f"PDF parsing failed: {e}") from e

    if not text_parts:
        logger.warning("No text extracted from PDF (may be image-based)")

    return "\n\n".join(text_parts)


def extract_text_from_docx(data: bytes) -> str:
    """
    Extract paragraph text from a DOCX payload using python-docx.

    Raises:
        ExtractionFailure: If the file is not a valid DOCX package
    """
    from docx import Document

    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        raise ExtractionFailure(f"DOCX parsing failed: {e}") from e

    paragraphs = [para.text for para in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            paragraphs.append(" ".join(cell.text for cell in row.cells))
    return "\n".join(paragraphs)


_EXTRACTORS = {
    'pdf': extract_text_from_pdf,
    'docx': extract_text_from_docx,
    'txt': extract_text_from_txt,
}


def extract_text(data: bytes, file_type: str) -> str:
    """
    Extract plain text from a document payload.

    Args:
        data: Raw file bytes
        file_type: Declared format, extension or original filename

    Returns:
        The extracted text (untrimmed)

    Raises:
        UnsupportedFormat: If the format is not pdf, docx or txt
        ExtractionFailure: If the parser rejects the bytes
        EmptyExtraction: If no text remains after trimming
    """
    fmt = detect_format(file_type)

    logger.info(f"Extracting text (format={fmt}, {len(data)} bytes)")

    text = _EXTRACTORS[fmt](data)

    if not text or not text.strip():
        raise EmptyExtraction("No text content found in document")

    return text
