"""Data models for the translation pipeline."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Union


class Stage(str, Enum):
    """Marks where a Page sits in the pipeline."""
    SOURCE = "source"          # Produced by extraction, carries OCR metadata
    TRANSLATED = "translated"  # Decoded oracle output, text only
    MERGED = "merged"          # Translated text with source metadata copied back


@dataclass
class BoundingBox:
    """Page-relative coordinates of an OCR region. Advisory only."""
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass
class Heading:
    id: str
    text: str
    level: int = 1                      # 1..6, 1 is the most prominent
    bbox: Optional[BoundingBox] = None
    confidence: Optional[float] = None  # OCR confidence in [0, 1]
    kind: ClassVar[str] = "heading"


@dataclass
class Paragraph:
    id: str
    text: str
    bbox: Optional[BoundingBox] = None
    confidence: Optional[float] = None
    kind: ClassVar[str] = "paragraph"


@dataclass
class ListItem:
    id: str
    text: str
    bbox: Optional[BoundingBox] = None
    confidence: Optional[float] = None
    kind: ClassVar[str] = "list_item"


@dataclass
class TableCell:
    id: str
    text: str
    row: int                            # Equals the cell's row index in the grid
    col: int                            # Equals the cell's column index in the grid
    confidence: Optional[float] = None


@dataclass
class Table:
    id: str
    rows: List[List[TableCell]] = field(default_factory=list)  # Dense rectangular grid
    bbox: Optional[BoundingBox] = None
    kind: ClassVar[str] = "table"

    @property
    def shape(self) -> List[int]:
        """Cell count of every row."""
        return [len(row) for row in self.rows]


DocumentBlock = Union[Heading, Paragraph, ListItem, Table]

BLOCK_TYPES = {cls.kind: cls for cls in (Heading, Paragraph, ListItem, Table)}


@dataclass
class Page:
    """One page of a document; block order is presentation order."""
    page_number: int                    # 1-based
    blocks: List[DocumentBlock] = field(default_factory=list)
    stage: Stage = Stage.SOURCE

    def validate(self) -> None:
        """Raise ValueError if the page breaks a structural invariant."""
        if self.page_number < 1:
            raise ValueError(f"Page number must be >= 1, got {self.page_number}")

        seen = set()
        for block in self.blocks:
            if block.id in seen:
                raise ValueError(f"Duplicate block id '{block.id}' on page {self.page_number}")
            seen.add(block.id)

            if isinstance(block, Heading):
                if not 1 <= block.level <= 6:
                    raise ValueError(f"Heading '{block.id}' has level {block.level}, expected 1..6")
                _check_confidence(block.id, block.confidence)
            elif isinstance(block, (Paragraph, ListItem)):
                _check_confidence(block.id, block.confidence)
            elif isinstance(block, Table):
                _check_table(block)
            else:
                raise TypeError(f"Unsupported block type: {type(block).__name__}")

    def set_text(self, element_id: str, text: str) -> None:
        """Correct the text of a block or table cell in place."""
        for element in iter_text_elements(self):
            if element.id == element_id:
                element.text = text
                return
        raise KeyError(f"No text element '{element_id}' on page {self.page_number}")


def _check_confidence(element_id: str, confidence: Optional[float]) -> None:
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        raise ValueError(f"Confidence of '{element_id}' is {confidence}, expected 0..1")


def _check_table(table: Table) -> None:
    widths = set(table.shape)
    if len(widths) > 1:
        raise ValueError(f"Table '{table.id}' is not rectangular: row lengths {table.shape}")
    cell_ids = set()
    for r, row in enumerate(table.rows):
        for c, cell in enumerate(row):
            if (cell.row, cell.col) != (r, c):
                raise ValueError(
                    f"Cell '{cell.id}' in table '{table.id}' claims ({cell.row}, {cell.col}) "
                    f"but sits at ({r}, {c})"
                )
            if cell.id in cell_ids:
                raise ValueError(f"Duplicate cell id '{cell.id}' in table '{table.id}'")
            cell_ids.add(cell.id)
            _check_confidence(cell.id, cell.confidence)


def iter_text_elements(page: Page) -> Iterator[Union[Heading, Paragraph, ListItem, TableCell]]:
    """Yield every text-bearing block and cell in traversal order."""
    for block in page.blocks:
        if isinstance(block, Table):
            for row in block.rows:
                yield from row
        else:
            yield block


def low_confidence_ids(page: Page, threshold: float) -> List[str]:
    """Ids of blocks and cells whose OCR confidence is below threshold."""
    return [
        element.id
        for element in iter_text_elements(page)
        if element.confidence is not None and element.confidence < threshold
    ]


def validate_document(pages: List[Page]) -> None:
    """Check that page numbers run 1, 2, 3, ... and every page is valid."""
    for expected, page in enumerate(pages, start=1):
        if page.page_number != expected:
            raise ValueError(
                f"Page numbers must be dense and start at 1: expected {expected}, got {page.page_number}"
            )
        page.validate()


# ---------------------------------------------------------------------------
# Wire format (camelCase JSON, as exchanged with the oracle and the API)
# ---------------------------------------------------------------------------

def page_from_dict(data: Dict[str, Any], stage: Stage = Stage.SOURCE) -> Page:
    """
    Decode and validate a page dict.

    Pages decoded at the TRANSLATED stage never carry bbox or confidence,
    whatever the payload contains.

    Raises:
        ValueError: if the payload is not a well-formed page.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Page must be an object, got {type(data).__name__}")

    page_number = data.get("pageNumber")
    if not isinstance(page_number, int) or isinstance(page_number, bool):
        raise ValueError(f"Page is missing an integer pageNumber: {page_number!r}")

    raw_blocks = data.get("blocks")
    if raw_blocks is None:
        raw_blocks = []
    if not isinstance(raw_blocks, list):
        raise ValueError(f"Blocks of page {page_number} must be a list")

    keep_metadata = stage is not Stage.TRANSLATED
    blocks = [_block_from_dict(raw, keep_metadata) for raw in raw_blocks]

    page = Page(page_number=page_number, blocks=blocks, stage=stage)
    page.validate()
    return page


def _block_from_dict(raw: Any, keep_metadata: bool) -> DocumentBlock:
    if not isinstance(raw, dict):
        raise ValueError(f"Block must be an object, got {type(raw).__name__}")

    kind = raw.get("type")
    block_id = str(raw.get("id", ""))
    if not block_id:
        raise ValueError(f"Block of type {kind!r} has no id")

    bbox = _bbox_from_dict(raw.get("bbox")) if keep_metadata else None

    if kind == Table.kind:
        raw_rows = raw.get("rows") or []
        if not isinstance(raw_rows, list):
            raise ValueError(f"Rows of table '{block_id}' must be a list")
        rows = []
        for r, raw_row in enumerate(raw_rows):
            if not isinstance(raw_row, list):
                raise ValueError(f"Row {r} of table '{block_id}' must be a list")
            rows.append([_cell_from_dict(raw_cell, r, c, keep_metadata) for c, raw_cell in enumerate(raw_row)])
        return Table(id=block_id, rows=rows, bbox=bbox)

    if kind not in BLOCK_TYPES:
        raise ValueError(f"Unknown block type {kind!r} for block '{block_id}'")

    text = raw.get("text")
    if not isinstance(text, str):
        raise ValueError(f"Block '{block_id}' has no text")
    confidence = _confidence(raw.get("confidence")) if keep_metadata else None

    if kind == Heading.kind:
        level = raw.get("level", 1)
        if not isinstance(level, int) or isinstance(level, bool):
            raise ValueError(f"Heading '{block_id}' has a non-integer level: {level!r}")
        return Heading(id=block_id, text=text, level=level, bbox=bbox, confidence=confidence)
    if kind == Paragraph.kind:
        return Paragraph(id=block_id, text=text, bbox=bbox, confidence=confidence)
    return ListItem(id=block_id, text=text, bbox=bbox, confidence=confidence)


def _cell_from_dict(raw: Any, row: int, col: int, keep_metadata: bool) -> TableCell:
    if not isinstance(raw, dict):
        raise ValueError(f"Cell at ({row}, {col}) must be an object")
    text = raw.get("text")
    if not isinstance(text, str):
        raise ValueError(f"Cell at ({row}, {col}) has no text")
    # Grid position is authoritative when the payload omits it
    return TableCell(
        id=str(raw.get("id") or f"cell-{row}-{col}"),
        text=text,
        row=raw.get("row", row),
        col=raw.get("col", col),
        confidence=_confidence(raw.get("confidence")) if keep_metadata else None,
    )


def _bbox_from_dict(raw: Any) -> Optional[BoundingBox]:
    if raw is None:
        return None
    try:
        return BoundingBox(
            x1=float(raw["x1"]), y1=float(raw["y1"]),
            x2=float(raw["x2"]), y2=float(raw["y2"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed bounding box: {raw!r}") from e


def _confidence(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"Confidence must be a number, got {raw!r}")
    return float(raw)


def page_to_dict(page: Page, include_metadata: bool = True) -> Dict[str, Any]:
    """Encode a page; with include_metadata=False bbox and confidence are left out."""
    return {
        "pageNumber": page.page_number,
        "blocks": [_block_to_dict(block, include_metadata) for block in page.blocks],
    }


def _block_to_dict(block: DocumentBlock, include_metadata: bool) -> Dict[str, Any]:
    if isinstance(block, Table):
        data: Dict[str, Any] = {
            "id": block.id,
            "type": block.kind,
            "rows": [[_cell_to_dict(cell, include_metadata) for cell in row] for row in block.rows],
        }
    elif isinstance(block, (Heading, Paragraph, ListItem)):
        data = {"id": block.id, "type": block.kind, "text": block.text}
        if isinstance(block, Heading):
            data["level"] = block.level
        if include_metadata and block.confidence is not None:
            data["confidence"] = block.confidence
    else:
        raise TypeError(f"Unsupported block type: {type(block).__name__}")

    if include_metadata and block.bbox is not None:
        data["bbox"] = {"x1": block.bbox.x1, "y1": block.bbox.y1, "x2": block.bbox.x2, "y2": block.bbox.y2}
    return data


def _cell_to_dict(cell: TableCell, include_metadata: bool) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": cell.id, "text": cell.text, "row": cell.row, "col": cell.col}
    if include_metadata and cell.confidence is not None:
        data["confidence"] = cell.confidence
    return data


# ---------------------------------------------------------------------------
# Translation outcomes
# ---------------------------------------------------------------------------

@dataclass
class PageSuccess:
    page: Page                          # Merged translated page
    ok: ClassVar[bool] = True

    @property
    def page_number(self) -> int:
        return self.page.page_number


@dataclass
class PageFailure:
    page_number: int
    error_message: str
    ok: ClassVar[bool] = False


TranslationOutcome = Union[PageSuccess, PageFailure]


def outcome_to_dict(outcome: TranslationOutcome) -> Dict[str, Any]:
    if isinstance(outcome, PageSuccess):
        return {"status": "success", "pageNumber": outcome.page_number, "page": page_to_dict(outcome.page)}
    if isinstance(outcome, PageFailure):
        return {"status": "failure", "pageNumber": outcome.page_number, "error": outcome.error_message}
    raise TypeError(f"Unsupported outcome type: {type(outcome).__name__}")


# ---------------------------------------------------------------------------
# Auxiliary records
# ---------------------------------------------------------------------------

@dataclass
class GlossaryTerm:
    source: str
    target: str


def format_glossary(terms: List[GlossaryTerm]) -> str:
    """Render glossary terms as 'source: target' lines for the oracle instructions."""
    return "\n".join(f"{term.source}: {term.target}" for term in terms)


@dataclass
class TranslatedLine:
    """One line returned by the image translation oracle, top to bottom."""
    text: str
    is_heading: bool = False


@dataclass
class OutputArtifact:
    """A named, downloadable output file."""
    filename: str
    media_type: str
    content: bytes


@dataclass
class HistoryRecord:
    """A completed translation, as kept by the history store."""
    id: str
    file_name: str
    source_language: str
    target_language: str
    page_count: int = 0
    failed_pages: List[int] = field(default_factory=list)
    formats: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "page_count": self.page_count,
            "failed_pages": list(self.failed_pages),
            "formats": list(self.formats),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryRecord":
        return cls(
            id=data["id"],
            file_name=data["file_name"],
            source_language=data["source_language"],
            target_language=data["target_language"],
            page_count=data.get("page_count", 0),
            failed_pages=list(data.get("failed_pages", [])),
            formats=list(data.get("formats", [])),
            created_at=data["created_at"],
        )


@dataclass
class JobRecord:
    """Job record for API layer job tracking."""
    job_id: str
    status: str            # "extracted" | "translating" | "done" | "cancelled" | "failed"
    filename: str          # Original uploaded filename
    storage_key: str       # Key of the stored upload
    pages: List[Page] = field(default_factory=list)                # Source pages
    outcomes: List[TranslationOutcome] = field(default_factory=list)
    progress: int = 0      # 0–100
    source_lang: str = "auto"
    target_lang: str = ""
    formality: str = "default"
    glossary: str = ""
    error: Optional[str] = None        # Error message if status == "failed"
    duration_seconds: float = 0.0
