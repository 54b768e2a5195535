"""
Paginated, print-style PDF rendering with ReportLab.

Rendering happens in two passes. `layout` walks the translated pages and
positions every line and table cell on output pages, threading a
LayoutState (cursor, pending gap) through the walk. `render_pdf` then draws
the positioned items onto a ReportLab canvas. Positions are measured from
the top edge of the page.
"""
import io
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from config import Config
from exceptions import RenderingError
from models import Heading, ListItem, Page, Paragraph, Table

logger = logging.getLogger(__name__)

LINE_SPACING = 1.4     # Line height as a multiple of font size
CELL_PADDING = 3.0     # Points between a cell border and its text
BULLET = "•"


@dataclass
class RenderSettings:
    page_width: float = A4[0]
    page_height: float = A4[1]
    margin: float = 20 * mm
    body_font: str = "Helvetica"
    bold_font: str = "Helvetica-Bold"
    body_size: float = 11.0

    @property
    def line_height(self) -> float:
        return self.body_size * LINE_SPACING

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin

    def heading_size(self, level: int) -> float:
        """Level 1 is largest; every level down is 1.5pt smaller."""
        return self.body_size + (7 - level) * 1.5

    @classmethod
    def from_config(cls, config: Config) -> "RenderSettings":
        """
        Build settings, registering the configured TrueType fonts.

        Raises:
            RenderingError: a configured font file is missing or unreadable.
        """
        settings = cls(margin=config.pdf_margin_mm * mm)
        if config.pdf_font_path:
            settings.body_font = _register_font("DocBody", config.pdf_font_path)
            settings.bold_font = settings.body_font
        if config.pdf_bold_font_path:
            settings.bold_font = _register_font("DocBold", config.pdf_bold_font_path)
        return settings


def _register_font(name: str, path: str) -> str:
    if not os.path.exists(path):
        raise RenderingError(f"PDF font not found: {path}")
    try:
        pdfmetrics.registerFont(TTFont(name, path))
    except TTFError as e:
        raise RenderingError(f"PDF font {path} cannot be used: {e}") from e
    return name


@dataclass
class TextLine:
    x: float
    top: float
    text: str
    font: str
    size: float


@dataclass
class CellBox:
    row: int
    col: int
    x: float
    top: float
    width: float
    height: float
    lines: List[TextLine] = field(default_factory=list)


@dataclass
class LayoutPage:
    items: List[Union[TextLine, CellBox]] = field(default_factory=list)


@dataclass
class LayoutState:
    """Mutable state of one layout pass; never shared between calls."""
    settings: RenderSettings
    pages: List[LayoutPage] = field(default_factory=list)
    cursor: float = 0.0
    pending_gap: bool = False
    last_kind: Optional[str] = None

    def __post_init__(self):
        if not self.pages:
            self.new_page()

    @property
    def current(self) -> LayoutPage:
        return self.pages[-1]

    @property
    def at_top(self) -> bool:
        return self.cursor <= self.settings.margin

    def new_page(self) -> None:
        self.pages.append(LayoutPage())
        self.cursor = self.settings.margin

    def ensure_space(self, needed: float) -> None:
        """Start a new page unless `needed` fits above the bottom margin."""
        if self.cursor + needed > self.settings.bottom and not self.at_top:
            self.new_page()

    def flush_gap(self) -> None:
        """Emit at most one blank line, never at the top of a page."""
        if self.pending_gap and not self.at_top:
            self.cursor += self.settings.line_height
        self.pending_gap = False


def layout(pages: Sequence[Page], settings: Optional[RenderSettings] = None) -> List[LayoutPage]:
    """Position the content of the translated pages; every source page starts a new output page."""
    settings = settings or RenderSettings()
    state = LayoutState(settings=settings)

    for index, page in enumerate(pages):
        if index > 0:
            state.new_page()
            state.pending_gap = False
            state.last_kind = None

        for block in page.blocks:
            if isinstance(block, Heading):
                _layout_heading(state, block)
            elif isinstance(block, Paragraph):
                _layout_paragraph(state, block)
            elif isinstance(block, ListItem):
                _layout_list_item(state, block)
            elif isinstance(block, Table):
                _layout_table(state, block)
            else:
                raise TypeError(f"Unsupported block type: {type(block).__name__}")

    return state.pages


def _place_lines(state: LayoutState, lines: List[str], x: float, font: str, size: float) -> None:
    line_height = size * LINE_SPACING
    for line in lines:
        state.ensure_space(line_height)
        state.current.items.append(TextLine(x=x, top=state.cursor, text=line, font=font, size=size))
        state.cursor += line_height


def _layout_heading(state: LayoutState, block: Heading) -> None:
    text = block.text.strip()
    if not text:
        state.pending_gap = True
        state.last_kind = "blank"
        return

    settings = state.settings
    size = settings.heading_size(block.level)
    state.flush_gap()
    _place_lines(state, simpleSplit(text, settings.bold_font, size, settings.content_width),
                 settings.margin, settings.bold_font, size)
    state.pending_gap = True
    state.last_kind = Heading.kind


def _layout_paragraph(state: LayoutState, block: Paragraph) -> None:
    text = block.text.strip()
    if not text:
        # Blank runs collapse into the single gap already pending
        state.pending_gap = True
        state.last_kind = "blank"
        return

    settings = state.settings
    state.flush_gap()
    _place_lines(state, simpleSplit(text, settings.body_font, settings.body_size, settings.content_width),
                 settings.margin, settings.body_font, settings.body_size)
    state.pending_gap = True
    state.last_kind = Paragraph.kind


def _layout_list_item(state: LayoutState, block: ListItem) -> None:
    settings = state.settings
    if state.last_kind == ListItem.kind:
        state.pending_gap = False
    state.flush_gap()

    font, size = settings.body_font, settings.body_size
    indent = pdfmetrics.stringWidth(BULLET + "  ", font, size)
    lines = simpleSplit(block.text.strip(), font, size, settings.content_width - indent) or [""]

    state.ensure_space(size * LINE_SPACING)
    state.current.items.append(TextLine(x=settings.margin, top=state.cursor, text=BULLET, font=font, size=size))
    _place_lines(state, lines, settings.margin + indent, font, size)
    state.pending_gap = True
    state.last_kind = ListItem.kind


def _layout_table(state: LayoutState, block: Table) -> None:
    settings = state.settings
    state.flush_gap()
    state.pending_gap = True
    state.last_kind = Table.kind
    if not block.rows or not block.rows[0]:
        return

    font, size = settings.body_font, settings.body_size
    line_height = size * LINE_SPACING
    col_width = settings.content_width / len(block.rows[0])
    text_width = col_width - 2 * CELL_PADDING

    # A table never starts within one line of the bottom margin
    state.ensure_space(settings.line_height)

    for r, row in enumerate(block.rows):
        wrapped = [simpleSplit(cell.text, font, size, text_width) if cell.text.strip() else [] for cell in row]
        row_height = max(1, max(len(lines) for lines in wrapped)) * line_height + 2 * CELL_PADDING
        state.ensure_space(row_height)

        for c, lines in enumerate(wrapped):
            x = settings.margin + c * col_width
            text_lines = [
                TextLine(x=x + CELL_PADDING, top=state.cursor + CELL_PADDING + i * line_height,
                         text=line, font=font, size=size)
                for i, line in enumerate(lines)
            ]
            state.current.items.append(
                CellBox(row=r, col=c, x=x, top=state.cursor, width=col_width, height=row_height, lines=text_lines)
            )
        state.cursor += row_height


def render_pdf(pages: Sequence[Page], settings: Optional[RenderSettings] = None, title: Optional[str] = None) -> bytes:
    """Render translated pages to PDF bytes. The input pages are not modified."""
    settings = settings or RenderSettings()
    layout_pages = layout(pages, settings)

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=(settings.page_width, settings.page_height))
    if title:
        c.setTitle(title)

    for layout_page in layout_pages:
        for item in layout_page.items:
            if isinstance(item, CellBox):
                c.rect(item.x, settings.page_height - item.top - item.height, item.width, item.height,
                       stroke=1, fill=0)
                for line in item.lines:
                    _draw_line(c, line, settings)
            else:
                _draw_line(c, item, settings)
        c.showPage()

    c.save()
    logger.info("Rendered %d source pages onto %d PDF pages", len(pages), len(layout_pages))
    return buffer.getvalue()


def _draw_line(c: canvas.Canvas, line: TextLine, settings: RenderSettings) -> None:
    c.setFont(line.font, line.size)
    c.drawString(line.x, settings.page_height - line.top - line.size, line.text)
