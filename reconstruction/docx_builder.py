"""Generate a Word document from translated pages with python-docx."""
import io
from typing import Optional, Sequence

from docx import Document
from docx.shared import Inches, Pt

from models import Heading, ListItem, Page, Paragraph, Table


def build_docx(pages: Sequence[Page], title: Optional[str] = None) -> bytes:
    """
    Build a .docx from translated pages.

    Headings keep their level, list items use the bullet style, tables become
    bordered grids with every cell present, and each source page after the
    first starts on a new Word page. Runs of blank paragraphs collapse to one.
    """
    doc = Document()
    normal = doc.styles["Normal"]
    normal.font.name = "Calibri"
    normal.font.size = Pt(11)
    for section in doc.sections:
        section.top_margin = section.bottom_margin = Inches(1)
        section.left_margin = section.right_margin = Inches(1)
    if title:
        doc.core_properties.title = title

    for index, page in enumerate(pages):
        if index > 0:
            doc.add_page_break()

        previous_blank = False
        for block in page.blocks:
            if isinstance(block, Paragraph) and not block.text.strip():
                if not previous_blank:
                    doc.add_paragraph("")
                previous_blank = True
                continue
            previous_blank = False

            if isinstance(block, Heading):
                doc.add_heading(block.text, level=block.level)
            elif isinstance(block, Paragraph):
                doc.add_paragraph(block.text)
            elif isinstance(block, ListItem):
                doc.add_paragraph(block.text, style="List Bullet")
            elif isinstance(block, Table):
                _add_table(doc, block)
            else:
                raise TypeError(f"Unsupported block type: {type(block).__name__}")

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _add_table(doc, table: Table) -> None:
    if not table.rows or not table.rows[0]:
        return
    grid = doc.add_table(rows=len(table.rows), cols=len(table.rows[0]))
    grid.style = "Table Grid"
    for r, row in enumerate(table.rows):
        for c, cell in enumerate(row):
            grid.cell(r, c).text = cell.text
