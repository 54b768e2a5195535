"""PDF page rasterization using pdfplumber."""
import io
import logging
from typing import List

import pdfplumber

from exceptions import ExtractionError

logger = logging.getLogger(__name__)


def rasterize_pdf(data: bytes, resolution: int = 150) -> List[bytes]:
    """
    Render every page of a PDF to a PNG image.

    The oracle only sees images, so PDFs are turned into one picture per
    page, in page order.

    Returns:
        PNG bytes for each page.
    """
    images: List[bytes] = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page_num, page in enumerate(pdf.pages, start=1):
                page_image = page.to_image(resolution=resolution)
                buffer = io.BytesIO()
                page_image.original.save(buffer, format="PNG")
                images.append(buffer.getvalue())
                logger.debug("Rasterized PDF page %d (%d bytes)", page_num, len(images[-1]))
    except Exception as e:
        raise ExtractionError(f"Could not read the PDF: {e}") from e

    if not images:
        raise ExtractionError("The PDF has no pages")
    return images
