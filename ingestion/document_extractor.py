"""Turn uploaded PDFs and images into structured pages through the oracle."""
import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from exceptions import ExtractionError, OracleError
from ingestion.pdf_extractor import rasterize_pdf
from models import Heading, Page, Paragraph, Stage, TranslatedLine, page_from_dict, validate_document
from translation.llm_translator import TranslationOracle

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
IMAGE_MIMES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
}


def detect_format(filename: str) -> Tuple[str, str]:
    """
    Detect file format from extension.

    Returns:
        (format, mime_type) with format one of "pdf", "image", "docx".
    """
    ext = Path(filename).suffix.lower()

    if ext == ".pdf":
        return "pdf", PDF_MIME
    elif ext in IMAGE_MIMES:
        return "image", IMAGE_MIMES[ext]
    elif ext == ".docx":
        return "docx", DOCX_MIME
    elif ext == ".doc":
        raise ValueError(
            "The .doc format (old binary Word format) is not supported. "
            "Please convert your file to .docx first, for example with "
            "LibreOffice: soffice --convert-to docx yourfile.doc"
        )
    else:
        raise ValueError(f"Unsupported file format: {ext or filename}. Please upload a DOCX, PDF, or image file.")


def page_images(data: bytes, file_format: str, mime_type: str, resolution: int = 150) -> List[Tuple[bytes, str]]:
    """One (image bytes, mime type) pair per page of a PDF or image upload."""
    if file_format == "pdf":
        return [(image, "image/png") for image in rasterize_pdf(data, resolution)]
    if file_format == "image":
        return [(data, mime_type)]
    raise ExtractionError(f"Cannot extract pages from a {file_format} file")


async def extract_document(
    data: bytes,
    file_format: str,
    mime_type: str,
    oracle: TranslationOracle,
    resolution: int = 150,
) -> List[Page]:
    """
    Extract a Document (pages with confidence and bbox) from a PDF or image.

    Each page image goes to the oracle once; its reply must decode into a
    well-formed page.

    Raises:
        ExtractionError: the oracle failed or a reply is not a valid page.
    """
    if not data:
        raise ExtractionError("File is empty")

    pages: List[Page] = []
    for page_number, (image, image_mime) in enumerate(page_images(data, file_format, mime_type, resolution), start=1):
        try:
            blocks = await oracle.extract_page(image, image_mime)
            page = page_from_dict({"pageNumber": page_number, "blocks": blocks}, stage=Stage.SOURCE)
        except OracleError as e:
            raise ExtractionError(f"Failed to extract content from page {page_number}: {e}") from e
        except ValueError as e:
            raise ExtractionError(f"Page {page_number} is not a well-formed page: {e}") from e
        logger.info("Extracted page %d: %d blocks", page_number, len(page.blocks))
        pages.append(page)

    try:
        validate_document(pages)
    except ValueError as e:
        raise ExtractionError(str(e)) from e
    return pages


async def translate_visual(
    data: bytes,
    file_format: str,
    mime_type: str,
    oracle: TranslationOracle,
    source_lang: str,
    target_lang: str,
    resolution: int = 150,
) -> List[Page]:
    """
    Translate page images directly into line-level pages.

    Only headings and body lines survive this path; there is no table or
    list structure and no OCR metadata.
    """
    pages: List[Page] = []
    for page_number, (image, image_mime) in enumerate(page_images(data, file_format, mime_type, resolution), start=1):
        lines = await oracle.translate_image(image, image_mime, source_lang, target_lang)
        pages.append(lines_to_page(page_number, lines))
    return pages


def lines_to_page(page_number: int, lines: Sequence[TranslatedLine]) -> Page:
    """Headings become level-1 headings, every other line a paragraph."""
    blocks = []
    for index, line in enumerate(lines, start=1):
        if line.is_heading:
            blocks.append(Heading(id=f"line-{index}", text=line.text, level=1))
        else:
            blocks.append(Paragraph(id=f"line-{index}", text=line.text))
    return Page(page_number=page_number, blocks=blocks, stage=Stage.TRANSLATED)
