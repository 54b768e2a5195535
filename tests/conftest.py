"""
Pytest configuration and shared fixtures for the translation pipeline tests.
"""
import copy
import io
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from config import Config
from history import JsonHistoryStore
from models import BoundingBox, Heading, ListItem, Page, Paragraph, Table, TableCell, TranslatedLine
from pipeline import TranslationPipeline
from storage import LocalFileStorage


def mark_translated(texts: List[str]) -> List[str]:
    """Default fake translation: prefix every non-blank text."""
    return [f"FR:{t}" if t.strip() else t for t in texts]


class FakeOracle:
    """
    In-process oracle.

    `translate` maps a list of texts to the translated list and may raise to
    simulate oracle failures. Extraction returns `extracted_pages` in order.
    """

    def __init__(
        self,
        translate: Optional[Callable[[List[str]], List[str]]] = None,
        extracted_pages: Optional[List[List[Dict[str, Any]]]] = None,
        lines: Optional[List[TranslatedLine]] = None,
    ):
        self.translate = translate or mark_translated
        self.extracted_pages = list(extracted_pages or [])
        self.lines = lines or []
        self.text_calls: List[List[str]] = []
        self.page_calls: List[Dict[str, Any]] = []
        self.extract_calls = 0
        self.glossaries: List[str] = []
        self.closed = False

    async def translate_texts(self, texts, source_lang, target_lang, formality="default", glossary=""):
        self.text_calls.append(list(texts))
        self.glossaries.append(glossary)
        return self.translate(list(texts))

    async def translate_page(self, payload, source_lang, target_lang, formality="default", glossary=""):
        self.page_calls.append(copy.deepcopy(payload))
        page = copy.deepcopy(payload)
        for block in page["blocks"]:
            if block["type"] == "table":
                for row in block["rows"]:
                    for cell in row:
                        cell["text"] = self.translate([cell["text"]])[0]
            else:
                block["text"] = self.translate([block["text"]])[0]
        return page

    async def translate_image(self, image, mime_type, source_lang, target_lang):
        return list(self.lines)

    async def extract_page(self, image, mime_type):
        self.extract_calls += 1
        if self.extracted_pages:
            return self.extracted_pages.pop(0)
        return [{"id": "p1", "type": "paragraph", "text": "Hello", "confidence": 0.95}]

    async def close(self):
        self.closed = True


def make_page(page_number: int, *texts: str) -> Page:
    """A source page holding one paragraph per text."""
    return Page(
        page_number=page_number,
        blocks=[
            Paragraph(id=f"p{page_number}-{i}", text=text, confidence=0.9)
            for i, text in enumerate(texts, start=1)
        ],
    )


@pytest.fixture
def lease_page() -> Page:
    """Heading plus a 2x2 table, with OCR metadata on every element."""
    return Page(
        page_number=1,
        blocks=[
            Heading(id="h1", text="Lease", level=1, bbox=BoundingBox(10, 10, 200, 40), confidence=0.98),
            Table(
                id="t1",
                bbox=BoundingBox(10, 60, 400, 160),
                rows=[
                    [TableCell("c00", "A", 0, 0, 0.91), TableCell("c01", "B", 0, 1, 0.72)],
                    [TableCell("c10", "C", 1, 0, 0.88), TableCell("c11", "D", 1, 1, 0.99)],
                ],
            ),
        ],
    )


@pytest.fixture
def mixed_page() -> Page:
    return Page(
        page_number=1,
        blocks=[
            Heading(id="h1", text="Terms", level=2, confidence=0.97),
            Paragraph(id="p1", text="The tenant agrees.", confidence=0.93),
            ListItem(id="l1", text="Pay rent", confidence=0.85),
            ListItem(id="l2", text="Keep it clean", confidence=0.95),
        ],
    )


@pytest.fixture
def fake_oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    return Config(
        upload_dir=str(tmp_path / "uploads"),
        output_dir=str(tmp_path / "outputs"),
        history_path=str(tmp_path / "outputs" / "history.json"),
    )


@pytest.fixture
def pipeline(test_config: Config, fake_oracle: FakeOracle) -> TranslationPipeline:
    return TranslationPipeline(
        test_config,
        oracle=fake_oracle,
        storage=LocalFileStorage(test_config.upload_dir),
        history=JsonHistoryStore(test_config.history_path),
    )


def build_pdf(page_count: int = 2) -> bytes:
    """A small PDF with one line of text per page."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    for number in range(1, page_count + 1):
        c.drawString(72, 760, f"Page {number} content")
        c.showPage()
    c.save()
    return buffer.getvalue()


@pytest.fixture
def sample_pdf() -> bytes:
    return build_pdf(2)
