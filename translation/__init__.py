"""Translation layer - unit extraction, oracle client, page orchestration."""
from .llm_translator import OllamaOracle, TranslationOracle
from .merge import check_congruence, merge_metadata
from .orchestrator import DocumentTranslator
from .units import extract_page_units, extract_units

__all__ = [
    "OllamaOracle",
    "TranslationOracle",
    "DocumentTranslator",
    "check_congruence",
    "merge_metadata",
    "extract_units",
    "extract_page_units",
]
