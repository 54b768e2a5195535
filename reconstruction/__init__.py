"""Reconstruction layer - rebuild documents with translated text."""
from .builders import MEDIA_TYPES, output_filename, render, render_artifact
from .docx_builder import build_docx
from .markup_surgeon import WhitespacePolicy, translate_markup_package
from .pdf_renderer import RenderSettings, layout, render_pdf

__all__ = [
    "MEDIA_TYPES",
    "output_filename",
    "render",
    "render_artifact",
    "build_docx",
    "WhitespacePolicy",
    "translate_markup_package",
    "RenderSettings",
    "layout",
    "render_pdf",
]
