"""Tests for format detection, PDF rasterization and oracle extraction."""
import pytest

from exceptions import ExtractionError, OracleError
from ingestion import detect_format, extract_document, lines_to_page, rasterize_pdf, translate_visual
from models import Heading, Paragraph, Stage, Table, TranslatedLine
from tests.conftest import FakeOracle


@pytest.mark.parametrize("filename, expected", [
    ("scan.PDF", ("pdf", "application/pdf")),
    ("photo.jpg", ("image", "image/jpeg")),
    ("shot.png", ("image", "image/png")),
    ("contract.docx", ("docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document")),
])
def test_detect_format(filename, expected):
    assert detect_format(filename) == expected


def test_legacy_doc_gets_a_conversion_hint():
    with pytest.raises(ValueError, match="convert"):
        detect_format("old.doc")


def test_unknown_extension():
    with pytest.raises(ValueError, match="Unsupported file format"):
        detect_format("notes.txt")


def test_rasterize_pdf(sample_pdf):
    images = rasterize_pdf(sample_pdf, resolution=36)
    assert len(images) == 2
    assert all(image.startswith(b"\x89PNG") for image in images)


def test_rasterize_garbage():
    with pytest.raises(ExtractionError):
        rasterize_pdf(b"not a pdf")


@pytest.mark.asyncio
async def test_extract_pdf_pages(sample_pdf):
    oracle = FakeOracle(extracted_pages=[
        [{"id": "h", "type": "heading", "level": 1, "text": "Title", "confidence": 0.99,
          "bbox": {"x1": 1, "y1": 2, "x2": 3, "y2": 4}}],
        [{"id": "t", "type": "table", "rows": [[{"id": "c", "text": "x", "confidence": 0.5}]]}],
    ])
    pages = await extract_document(sample_pdf, "pdf", "application/pdf", oracle, resolution=36)

    assert [p.page_number for p in pages] == [1, 2]
    assert all(p.stage is Stage.SOURCE for p in pages)
    assert isinstance(pages[0].blocks[0], Heading)
    assert pages[0].blocks[0].bbox.y2 == 4.0
    assert isinstance(pages[1].blocks[0], Table)
    assert oracle.extract_calls == 2


@pytest.mark.asyncio
async def test_extract_image_is_one_page():
    pages = await extract_document(b"\x89PNGdata", "image", "image/png", FakeOracle())
    assert len(pages) == 1
    assert pages[0].blocks[0].text == "Hello"


@pytest.mark.asyncio
async def test_malformed_extraction_reply():
    oracle = FakeOracle(extracted_pages=[[{"id": "a", "type": "paragraph", "text": "x"},
                                          {"id": "a", "type": "paragraph", "text": "y"}]])
    with pytest.raises(ExtractionError, match="well-formed"):
        await extract_document(b"img", "image", "image/png", oracle)


@pytest.mark.asyncio
async def test_oracle_failure_during_extraction():
    class DownOracle(FakeOracle):
        async def extract_page(self, image, mime_type):
            raise OracleError("connection refused")

    with pytest.raises(ExtractionError, match="connection refused"):
        await extract_document(b"img", "image", "image/png", DownOracle())


@pytest.mark.asyncio
async def test_empty_upload():
    with pytest.raises(ExtractionError, match="empty"):
        await extract_document(b"", "image", "image/png", FakeOracle())


@pytest.mark.asyncio
async def test_translate_visual():
    oracle = FakeOracle(lines=[TranslatedLine("Titre", True), TranslatedLine("Corps")])
    pages = await translate_visual(b"img", "image", "image/png", oracle, "auto", "fr")

    assert len(pages) == 1
    heading, body = pages[0].blocks
    assert isinstance(heading, Heading) and heading.level == 1 and heading.text == "Titre"
    assert isinstance(body, Paragraph) and body.text == "Corps"


def test_lines_to_page_ids():
    page = lines_to_page(3, [TranslatedLine("a"), TranslatedLine("b")])
    assert page.page_number == 3
    assert page.stage is Stage.TRANSLATED
    assert [b.id for b in page.blocks] == ["line-1", "line-2"]
    page.validate()
