"""Tests for the structural Word export and the render dispatcher."""
import io

import pytest
from docx import Document

from exceptions import RenderingError
from models import Heading, Page, Paragraph
from reconstruction.builders import MEDIA_TYPES, output_filename, render, render_artifact
from reconstruction.docx_builder import build_docx


def open_docx(data):
    return Document(io.BytesIO(data))


def test_blocks_map_to_word_structures(lease_page, mixed_page):
    doc = open_docx(build_docx([lease_page, Page(2, mixed_page.blocks)], title="Lease"))

    assert doc.core_properties.title == "Lease"
    styles = [(p.style.name, p.text) for p in doc.paragraphs if p.text]
    assert ("Heading 1", "Lease") in styles
    assert ("Heading 2", "Terms") in styles
    assert ("List Bullet", "Pay rent") in styles
    assert ("Normal", "The tenant agrees.") in styles

    table = doc.tables[0]
    assert [[cell.text for cell in row.cells] for row in table.rows] == [["A", "B"], ["C", "D"]]


def test_blank_paragraph_runs_collapse():
    page = Page(1, [Paragraph("a", "One"), Paragraph("b", ""), Paragraph("c", ""),
                    Paragraph("d", ""), Paragraph("e", "Two")])
    doc = open_docx(build_docx([page]))
    assert [p.text for p in doc.paragraphs] == ["One", "", "Two"]


def test_page_break_between_source_pages():
    doc = open_docx(build_docx([Page(1, [Paragraph("a", "One")]), Page(2, [Paragraph("b", "Two")])]))
    breaks = [p for p in doc.paragraphs if 'w:br w:type="page"' in p._p.xml]
    assert len(breaks) == 1


def test_output_filename():
    assert output_filename("scans/contract.pdf", "docx") == "contract_translated.docx"
    assert output_filename("photo.jpeg", "pdf") == "photo_translated.pdf"


def test_render_artifact(lease_page):
    artifact = render_artifact([lease_page], "lease.png", "docx")
    assert artifact.filename == "lease_translated.docx"
    assert artifact.media_type == MEDIA_TYPES["docx"]
    assert open_docx(artifact.content).tables


def test_render_pdf_bytes(lease_page):
    assert render([lease_page], "pdf").startswith(b"%PDF")


def test_unknown_format(lease_page):
    with pytest.raises(RenderingError, match="Unsupported output format"):
        render([lease_page], "odt")


def test_unknown_block_type_is_rejected():
    page = Page(1, [Heading("h", "ok"), object()])
    with pytest.raises(TypeError):
        build_docx([page])
