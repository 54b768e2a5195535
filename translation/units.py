"""
Flatten pages into translatable text units and put translations back.

Traversal order: pages in order, blocks in presentation order, table cells
row-major. Headings, paragraphs, list items and cells are units; tables and
pages are containers. Units are bare strings: bbox and confidence never
leave this module.
"""
from typing import Callable, Iterator, List, Sequence, Tuple

from exceptions import CardinalityError
from models import DocumentBlock, Heading, ListItem, Page, Paragraph, Stage, Table, TableCell

Reinsert = Callable[[Sequence[str]], List[Page]]
PageReinsert = Callable[[Sequence[str]], Page]


def extract_units(pages: Sequence[Page]) -> Tuple[List[str], Reinsert]:
    """
    Flatten pages into an ordered list of unit texts.

    Returns:
        (units, reinsert) where reinsert(translated) builds new TRANSLATED
        pages of the same shape, taking texts from `translated` in unit
        order. reinsert raises CardinalityError unless
        len(translated) == len(units).
    """
    pages = list(pages)
    units: List[str] = []
    for page in pages:
        for block in page.blocks:
            units.extend(_block_units(block))

    def reinsert(translated: Sequence[str]) -> List[Page]:
        translated = list(translated)
        if len(translated) != len(units):
            raise CardinalityError(expected=len(units), received=len(translated))
        texts = iter(translated)
        return [_rebuild_page(page, texts) for page in pages]

    return units, reinsert


def extract_page_units(page: Page) -> Tuple[List[str], PageReinsert]:
    """Single-page form of extract_units."""
    units, reinsert = extract_units([page])
    return units, lambda translated: reinsert(translated)[0]


def _block_units(block: DocumentBlock) -> List[str]:
    if isinstance(block, (Heading, Paragraph, ListItem)):
        return [block.text]
    if isinstance(block, Table):
        return [cell.text for row in block.rows for cell in row]
    raise TypeError(f"Unsupported block type: {type(block).__name__}")


def _rebuild_page(page: Page, texts: Iterator[str]) -> Page:
    return Page(
        page_number=page.page_number,
        blocks=[_rebuild_block(block, texts) for block in page.blocks],
        stage=Stage.TRANSLATED,
    )


def _rebuild_block(block: DocumentBlock, texts: Iterator[str]) -> DocumentBlock:
    if isinstance(block, Heading):
        return Heading(id=block.id, text=next(texts), level=block.level)
    if isinstance(block, Paragraph):
        return Paragraph(id=block.id, text=next(texts))
    if isinstance(block, ListItem):
        return ListItem(id=block.id, text=next(texts))
    if isinstance(block, Table):
        return Table(
            id=block.id,
            rows=[
                [TableCell(id=cell.id, text=next(texts), row=cell.row, col=cell.col) for cell in row]
                for row in block.rows
            ],
        )
    raise TypeError(f"Unsupported block type: {type(block).__name__}")
