"""Configuration management for the translation pipeline."""
import os
from dataclasses import dataclass
from typing import Optional

PAYLOAD_MODES = ("units", "structured")
WHITESPACE_POLICIES = ("collapse", "preserve", "strip")


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Oracle (Ollama chat API; the model must accept images for extraction)
    oracle_url: str = "http://localhost:11434"
    oracle_model: str = "gemma3:12b"
    oracle_timeout: float = 300.0
    oracle_temperature: float = 0.1

    # Translation settings
    translation_payload: str = "units"     # "units" sends flat strings, "structured" sends page JSON
    low_confidence_threshold: float = 0.9

    # Extraction settings
    raster_resolution: int = 150           # DPI used to turn PDF pages into images
    max_upload_mb: int = 25

    # Rendering settings
    pdf_font_path: Optional[str] = None    # TTF for body text; Helvetica when unset
    pdf_bold_font_path: Optional[str] = None
    pdf_margin_mm: float = 20.0

    # Word-processor markup
    whitespace_policy: str = "collapse"

    # File paths
    upload_dir: str = "./uploads"
    output_dir: str = "./outputs"
    history_path: str = "./outputs/history.json"

    log_level: str = "INFO"

    def __post_init__(self):
        if self.translation_payload not in PAYLOAD_MODES:
            raise ValueError(
                f"translation_payload must be one of {PAYLOAD_MODES}, got {self.translation_payload!r}"
            )
        if self.whitespace_policy not in WHITESPACE_POLICIES:
            raise ValueError(
                f"whitespace_policy must be one of {WHITESPACE_POLICIES}, got {self.whitespace_policy!r}"
            )

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            oracle_url=os.getenv("ORACLE_URL", "http://localhost:11434"),
            oracle_model=os.getenv("ORACLE_MODEL", "gemma3:12b"),
            oracle_timeout=float(os.getenv("ORACLE_TIMEOUT", "300")),
            oracle_temperature=float(os.getenv("ORACLE_TEMPERATURE", "0.1")),
            translation_payload=os.getenv("TRANSLATION_PAYLOAD", "units"),
            low_confidence_threshold=float(os.getenv("LOW_CONFIDENCE_THRESHOLD", "0.9")),
            raster_resolution=int(os.getenv("RASTER_RESOLUTION", "150")),
            max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "25")),
            pdf_font_path=os.getenv("PDF_FONT_PATH") or None,
            pdf_bold_font_path=os.getenv("PDF_BOLD_FONT_PATH") or None,
            pdf_margin_mm=float(os.getenv("PDF_MARGIN_MM", "20")),
            whitespace_policy=os.getenv("WHITESPACE_POLICY", "collapse"),
            upload_dir=os.getenv("UPLOAD_DIR", "./uploads"),
            output_dir=os.getenv("OUTPUT_DIR", "./outputs"),
            history_path=os.getenv("HISTORY_PATH", "./outputs/history.json"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def ensure_directories(self) -> None:
        """Create upload and output directories if they don't exist."""
        os.makedirs(self.upload_dir, exist_ok=True)
        os.makedirs(self.output_dir, exist_ok=True)
        history_dir = os.path.dirname(self.history_path)
        if history_dir:
            os.makedirs(history_dir, exist_ok=True)
