"""Tests for file-format detection and the PDF/DOCX/TXT readers."""
import fitz
import pytest
from docx import Document as DocxDocument

from prd_validator.errors import DocumentParseError, UnsupportedFormatError
from prd_validator.services.document_parser import DocumentParser, describe_text, detect_format
from tests.conftest import SAMPLE_PRD


@pytest.mark.parametrize(
    "filename,expected",
    [("spec.pdf", "pdf"), ("Spec.DOCX", "docx"), ("notes.txt", "txt")],
)
def test_detect_format(filename, expected):
    assert detect_format(filename) == expected


@pytest.mark.parametrize("filename", ["slides.pptx", "legacy.doc", "README", "archive.tar.gz", ""])
def test_detect_format_rejects_unknown_extensions(filename):
    with pytest.raises(UnsupportedFormatError):
        detect_format(filename)


def test_describe_text_short_sample_language_unknown():
    info = describe_text("too short to tell")
    assert info == {"word_count": 4, "character_count": 17, "detected_language": "unknown"}


def test_describe_text_detects_english():
    assert describe_text(SAMPLE_PRD)["detected_language"] == "en"


@pytest.mark.asyncio
async def test_parse_txt(tmp_path):
    path = tmp_path / "prd.txt"
    path.write_text(SAMPLE_PRD, encoding="utf-8")

    parsed = await DocumentParser().parse_document(str(path))

    assert parsed.text == SAMPLE_PRD
    assert parsed.metadata["format"] == "txt"
    assert parsed.metadata["file_size"] == path.stat().st_size
    assert parsed.metadata["word_count"] == len(SAMPLE_PRD.split())
    assert "parsed_at" in parsed.metadata


@pytest.mark.asyncio
async def test_parse_docx_paragraphs_and_tables(tmp_path):
    path = tmp_path / "prd.docx"
    doc = DocxDocument()
    doc.core_properties.title = "Checkout Revamp"
    doc.add_paragraph("Problem Statement")
    doc.add_paragraph("Checkout is too slow.")
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Metric"
    table.cell(0, 1).text = "Target"
    table.cell(1, 0).text = "Conversion"
    table.cell(1, 1).text = "+15%"
    doc.save(str(path))

    # Upload name decides the reader, not the stored name
    parsed = await DocumentParser().parse_document(str(path), "Checkout PRD.docx")

    assert parsed.text.splitlines() == [
        "Problem Statement",
        "Checkout is too slow.",
        "Metric | Target",
        "Conversion | +15%",
    ]
    assert parsed.metadata["format"] == "docx"
    assert parsed.metadata["title"] == "Checkout Revamp"


@pytest.mark.asyncio
async def test_parse_pdf(tmp_path):
    path = tmp_path / "prd.pdf"
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Problem Statement")
    page.insert_text((72, 96), "Checkout is too slow.")
    doc.set_metadata({"title": "Checkout Revamp"})
    doc.save(str(path))
    doc.close()

    parsed = await DocumentParser().parse_document(str(path))

    assert "Problem Statement" in parsed.text
    assert "Checkout is too slow." in parsed.text
    assert parsed.metadata["format"] == "pdf"
    assert parsed.metadata["page_count"] == 1
    assert parsed.metadata["title"] == "Checkout Revamp"


@pytest.mark.asyncio
async def test_password_protected_pdf_is_rejected(tmp_path):
    path = tmp_path / "locked.pdf"
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "secret roadmap")
    doc.save(
        str(path),
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner",
        user_pw="user",
    )
    doc.close()

    with pytest.raises(DocumentParseError, match="password"):
        await DocumentParser().parse_document(str(path))


@pytest.mark.asyncio
async def test_corrupt_pdf_is_rejected(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")

    with pytest.raises(DocumentParseError):
        await DocumentParser().parse_document(str(path))


@pytest.mark.asyncio
async def test_unsupported_file_is_rejected_before_reading(tmp_path):
    with pytest.raises(UnsupportedFormatError):
        await DocumentParser().parse_document(str(tmp_path / "missing.xlsx"))
