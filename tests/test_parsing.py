import io
from unittest.mock import patch

import pytest
from docx import Document as DocxDocument

from conftest import make_pdf
from cv_intelligence.helpers.parsing import (
    DOCX_MIME, PDF_MIME, RELAXED_LAPARAMS, parse_document, relax_whitespace, resolve_mime,
)
from cv_intelligence.utils.exceptions import UnreadableDocument


def _docx_bytes(paragraphs):
    doc = DocxDocument()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class TestParseDocument:
    """Test cases for the document parser"""

    def test_plain_text(self):
        """UTF-8 text is decoded as-is"""
        parsed = parse_document("Jane Doe\nPython développeuse".encode("utf-8"), "text/plain", "cv.txt")
        assert parsed.raw_text == "Jane Doe\nPython développeuse"
        assert parsed.word_count == 4

    def test_pdf_text_layer(self):
        """Text is pulled from a generated PDF"""
        data = make_pdf(["Jane Doe", "jane.doe@example.com", "Python engineer"])
        parsed = parse_document(data, PDF_MIME, "cv.pdf")
        assert "Jane Doe" in parsed.raw_text
        assert "jane.doe@example.com" in parsed.raw_text
        assert "Python engineer" in parsed.raw_text

    def test_docx(self):
        """DOCX paragraphs are joined with newlines"""
        data = _docx_bytes(["Jane Doe", "Software Engineer at Acme"])
        parsed = parse_document(data, DOCX_MIME, "cv.docx")
        assert parsed.raw_text == "Jane Doe\nSoftware Engineer at Acme"

    def test_mime_inferred_from_extension(self):
        """Unknown MIME types fall back to the file extension"""
        data = make_pdf(["Inferred PDF"])
        parsed = parse_document(data, "application/octet-stream", "resume.PDF")
        assert "Inferred PDF" in parsed.raw_text

    def test_unknown_type_treated_as_text(self):
        assert resolve_mime(None, "notes") == "text/plain"
        assert resolve_mime(None, None) == "text/plain"
        assert resolve_mime("text/markdown", "x.md") == "text/markdown"

    @pytest.mark.parametrize("data", [b"", b"   \n\t  \n"])
    def test_empty_text_is_unreadable(self, data):
        """Whitespace-only documents never succeed"""
        with pytest.raises(UnreadableDocument) as exc_info:
            parse_document(data, "text/plain", "blank.txt")
        assert exc_info.value.error_code == "UNREADABLE_DOCUMENT"
        assert exc_info.value.details["file_name"] == "blank.txt"

    @pytest.mark.parametrize("mime_type,file_name", [
        ("application/msword", "cv.doc"),
        (None, "cv.doc"),
        ("application/octet-stream", "cv.bin"),
        ("image/png", "scan.png"),
    ])
    def test_unsupported_binary_types_are_unreadable(self, mime_type, file_name):
        with pytest.raises(UnreadableDocument) as exc_info:
            parse_document(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1 binary", mime_type, file_name)
        assert "Unsupported document type" in exc_info.value.message

    def test_corrupt_docx_is_unreadable(self):
        with pytest.raises(UnreadableDocument):
            parse_document(b"not a zip archive", DOCX_MIME, "broken.docx")

    @patch("cv_intelligence.helpers.parsing.pdf_extract")
    def test_pdf_retry_with_relaxed_layout(self, mock_extract):
        """An empty first pass is retried once with relaxed layout and normalized whitespace"""
        mock_extract.side_effect = ["", "Jane   Doe\r\n\r\n\r\n\r\nPython\t\tengineer"]

        parsed = parse_document(b"%PDF-1.4 fake", PDF_MIME, "cv.pdf")

        assert mock_extract.call_count == 2
        assert mock_extract.call_args_list[1].kwargs["laparams"] is RELAXED_LAPARAMS
        assert parsed.raw_text == "Jane Doe\n\nPython engineer"

    @patch("cv_intelligence.helpers.parsing.pdf_extract")
    def test_pdf_retry_after_exception(self, mock_extract):
        mock_extract.side_effect = [ValueError("bad xref"), "Recovered text"]
        parsed = parse_document(b"%PDF-1.4 fake", PDF_MIME, "cv.pdf")
        assert parsed.raw_text == "Recovered text"

    @patch("cv_intelligence.helpers.parsing.pdf_extract")
    def test_pdf_empty_after_retry_is_unreadable(self, mock_extract):
        """Scanned PDFs without a text layer are reported, not returned empty"""
        mock_extract.side_effect = ["", "  \n "]
        with pytest.raises(UnreadableDocument):
            parse_document(b"%PDF-1.4 fake", PDF_MIME, "scan.pdf")
        assert mock_extract.call_count == 2

    @patch("cv_intelligence.helpers.parsing.pdf_extract")
    def test_pdf_failing_twice_is_unreadable(self, mock_extract):
        mock_extract.side_effect = [ValueError("bad"), ValueError("still bad")]
        with pytest.raises(UnreadableDocument) as exc_info:
            parse_document(b"%PDF-1.4 fake", PDF_MIME, "broken.pdf")
        assert isinstance(exc_info.value.cause, ValueError)


class TestLayoutBlocks:
    """Test cases for advisory layout blocks"""

    def test_blocks_and_offsets(self):
        text = "Jane Doe\njane@example.com\n\nAcme 2019 - 2021\n\n\nUniversity of Ghana\n\nHobbies"
        parsed = parse_document(text.encode("utf-8"), "text/plain")

        types = [b.block_type for b in parsed.layout_blocks]
        assert types == ["contact", "experience", "education", "text"]
        for block in parsed.layout_blocks:
            assert text[block.start_offset:block.end_offset] == block.text
        assert [b.index for b in parsed.layout_blocks] == [0, 1, 2, 3]


class TestRelaxWhitespace:
    def test_collapses_runs_and_keeps_paragraphs(self):
        assert relax_whitespace("a  b\t c\r\n\r\n\r\nd\x0ce") == "a b c\n\nd\n\ne"
