import io
import mimetypes
import re
from pathlib import Path
from typing import List, Optional

from docx import Document as DocxDocument
from pdfminer.high_level import extract_text as pdf_extract
from pdfminer.layout import LAParams

from cv_intelligence.models.models import LayoutBlock, ParsedText
from cv_intelligence.utils.exceptions import UnreadableDocument
from cv_intelligence.utils.logging_config import get_logger, log_function_call

logger = get_logger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"

_EXTENSION_MIME = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".txt": TEXT_MIME,
    ".md": TEXT_MIME,
}

_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_YEAR_RE = re.compile(r"\d{4}")

# Looser grouping for PDFs whose text layer comes back empty with default params
RELAXED_LAPARAMS = LAParams(char_margin=4.0, line_margin=1.0, word_margin=0.3, all_texts=True)


def resolve_mime(mime_type: Optional[str], file_name: Optional[str]) -> str:
    if mime_type in (PDF_MIME, DOCX_MIME) or (mime_type or "").startswith("text/"):
        return mime_type
    if file_name:
        ext = Path(file_name).suffix.lower()
        if ext in _EXTENSION_MIME:
            return _EXTENSION_MIME[ext]
        guessed, _ = mimetypes.guess_type(file_name)
        if guessed:
            return guessed
    return mime_type or TEXT_MIME


def read_txt(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def read_docx(data: bytes) -> str:
    doc = DocxDocument(io.BytesIO(data))
    return "\n".join([p.text for p in doc.paragraphs])


def relax_whitespace(x: str) -> str:
    """Normalize line endings and collapse horizontal runs, keeping paragraph breaks."""
    x = x.replace("\r\n", "\n").replace("\r", "\n").replace("\x0c", "\n\n")
    x = re.sub(r"[ \t ]+", " ", x)
    x = re.sub(r" *\n *", "\n", x)
    x = re.sub(r"\n{3,}", "\n\n", x)
    return x.strip()


def read_pdf(data: bytes, file_name: str = None) -> str:
    try:
        text = pdf_extract(io.BytesIO(data))
        if text and text.strip():
            return text
        logger.info(f"Empty PDF text layer for {file_name or 'document'}, retrying with relaxed layout")
    except Exception as e:
        logger.warning(f"PDF extraction failed for {file_name or 'document'}: {e}; retrying with relaxed layout")

    # single retry
    try:
        text = pdf_extract(io.BytesIO(data), laparams=RELAXED_LAPARAMS)
    except Exception as e:
        raise UnreadableDocument(
            f"PDF text extraction failed: {e}", file_name=file_name, mime_type=PDF_MIME, cause=e
        ) from e
    return relax_whitespace(text or "")


def detect_block_type(block: str) -> str:
    if "@" in block:
        return "contact"
    if _YEAR_RE.search(block):
        return "experience"
    low = block.lower()
    if "university" in low or "degree" in low:
        return "education"
    return "text"


def split_layout_blocks(text: str) -> List[LayoutBlock]:
    blocks = []
    pos = 0
    for m in list(_BLOCK_SPLIT_RE.finditer(text)) + [None]:
        end = m.start() if m else len(text)
        chunk = text[pos:end]
        stripped = chunk.strip()
        if stripped:
            lead = len(chunk) - len(chunk.lstrip())
            start_offset = pos + lead
            blocks.append(LayoutBlock(
                index=len(blocks),
                text=stripped,
                start_offset=start_offset,
                end_offset=start_offset + len(stripped),
                block_type=detect_block_type(stripped),
            ))
        if m:
            pos = m.end()
    return blocks


@log_function_call
def parse_document(data: bytes, mime_type: Optional[str] = None, file_name: Optional[str] = None) -> ParsedText:
    """Turn document bytes into text plus advisory layout blocks.

    Raises UnreadableDocument for unsupported binary types and when nothing but
    whitespace can be extracted.
    """
    if not data:
        raise UnreadableDocument("Document is empty", file_name=file_name, mime_type=mime_type)

    mime = resolve_mime(mime_type, file_name)
    if mime == PDF_MIME:
        text = read_pdf(data, file_name)
    elif mime == DOCX_MIME:
        try:
            text = read_docx(data)
        except Exception as e:
            raise UnreadableDocument(
                f"DOCX extraction failed: {e}", file_name=file_name, mime_type=mime, cause=e
            ) from e
    elif mime.startswith("text/"):
        text = read_txt(data)
    else:
        raise UnreadableDocument(f"Unsupported document type: {mime}", file_name=file_name, mime_type=mime)

    if not text.strip():
        raise UnreadableDocument("No text could be extracted", file_name=file_name, mime_type=mime)

    return ParsedText(
        raw_text=text,
        layout_blocks=split_layout_blocks(text),
        word_count=len(text.split()),
    )
