"""Ingestion layer - format detection and oracle-backed extraction."""
from .document_extractor import detect_format, extract_document, lines_to_page, translate_visual
from .pdf_extractor import rasterize_pdf

__all__ = ["detect_format", "extract_document", "lines_to_page", "translate_visual", "rasterize_pdf"]
