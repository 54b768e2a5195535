"""Document reconstruction - render translated pages into downloadable files."""
import logging
from pathlib import Path
from typing import Optional, Sequence

from exceptions import RenderingError
from models import OutputArtifact, Page
from reconstruction.docx_builder import build_docx
from reconstruction.pdf_renderer import RenderSettings, render_pdf

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def output_filename(source_name: str, extension: str) -> str:
    """`report.pdf` -> `report_translated.docx` for extension "docx"."""
    stem = Path(source_name).stem or "document"
    return f"{stem}_translated.{extension}"


def render(
    pages: Sequence[Page],
    target_format: str,
    settings: Optional[RenderSettings] = None,
    title: Optional[str] = None,
) -> bytes:
    """
    Route to the correct builder based on the requested format.

    Raises:
        RenderingError: unknown format, or the builder failed. No partial
            output is returned.
    """
    if target_format not in MEDIA_TYPES:
        raise RenderingError(f"Unsupported output format: {target_format}")

    try:
        if target_format == "pdf":
            return render_pdf(pages, settings, title=title)
        return build_docx(pages, title=title)
    except RenderingError:
        raise
    except (OSError, ValueError, KeyError) as e:
        logger.exception("Failed to render %s output", target_format)
        raise RenderingError(f"Failed to generate the {target_format.upper()} file: {e}") from e


def render_artifact(
    pages: Sequence[Page],
    source_name: str,
    target_format: str,
    settings: Optional[RenderSettings] = None,
) -> OutputArtifact:
    """Render pages and wrap the bytes as a named, downloadable artifact."""
    title = Path(source_name).stem
    content = render(pages, target_format, settings, title=title)
    return OutputArtifact(
        filename=output_filename(source_name, target_format),
        media_type=MEDIA_TYPES[target_format],
        content=content,
    )
