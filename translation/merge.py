"""Structural congruence check and metadata merge for translated pages."""
from dataclasses import replace
from typing import List, Optional, Tuple

from exceptions import StructuralMismatchError
from models import DocumentBlock, Heading, ListItem, Page, Paragraph, Stage, Table

Shape = List[Tuple[str, Optional[Tuple[int, ...]]]]


def page_shape(page: Page) -> Shape:
    """Block kinds in order; tables also carry their per-row cell counts."""
    shape: Shape = []
    for block in page.blocks:
        if isinstance(block, Table):
            shape.append((block.kind, tuple(block.shape)))
        elif isinstance(block, (Heading, Paragraph, ListItem)):
            shape.append((block.kind, None))
        else:
            raise TypeError(f"Unsupported block type: {type(block).__name__}")
    return shape


def check_congruence(source: Page, translated: Page) -> None:
    """
    Raise StructuralMismatchError unless both pages have the same block
    count, block kinds in the same order, and identical table dimensions.
    Text content is not compared.
    """
    if len(source.blocks) != len(translated.blocks):
        raise StructuralMismatchError(
            f"Page {source.page_number}: expected {len(source.blocks)} blocks, "
            f"translation has {len(translated.blocks)}"
        )

    for index, (expected, actual) in enumerate(zip(page_shape(source), page_shape(translated))):
        expected_kind, expected_rows = expected
        actual_kind, actual_rows = actual
        if expected_kind != actual_kind:
            raise StructuralMismatchError(
                f"Page {source.page_number}, block {index}: expected {expected_kind}, "
                f"translation has {actual_kind}"
            )
        if expected_rows != actual_rows:
            raise StructuralMismatchError(
                f"Page {source.page_number}, block {index}: table rows {list(expected_rows)} "
                f"became {list(actual_rows)}"
            )


def merge_metadata(source: Page, translated: Page) -> Page:
    """
    Copy bbox and confidence from source onto translated, by position.

    The pages must already be congruent. Returns a new MERGED page numbered
    like the source; neither input is modified and translated text is kept
    as is.
    """
    check_congruence(source, translated)
    return Page(
        page_number=source.page_number,
        blocks=[_merge_block(src, dst) for src, dst in zip(source.blocks, translated.blocks)],
        stage=Stage.MERGED,
    )


def _merge_block(source: DocumentBlock, translated: DocumentBlock) -> DocumentBlock:
    if isinstance(source, Table) and isinstance(translated, Table):
        rows = [
            [replace(dst_cell, confidence=src_cell.confidence) for src_cell, dst_cell in zip(src_row, dst_row)]
            for src_row, dst_row in zip(source.rows, translated.rows)
        ]
        return replace(translated, rows=rows, bbox=source.bbox)
    if isinstance(source, (Heading, Paragraph, ListItem)):
        return replace(translated, bbox=source.bbox, confidence=source.confidence)
    raise TypeError(f"Unsupported block type: {type(source).__name__}")
