"""Main translation pipeline orchestrator."""
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from config import Config
from exceptions import StorageError
from history import JsonHistoryStore
from ingestion import detect_format, extract_document, translate_visual
from logging_config import setup_logging
from models import HistoryRecord, OutputArtifact, Page, PageSuccess, TranslationOutcome
from reconstruction import (
    MEDIA_TYPES,
    RenderSettings,
    WhitespacePolicy,
    output_filename,
    render_artifact,
    translate_markup_package,
)
from storage import LocalFileStorage
from translation import DocumentTranslator, OllamaOracle, TranslationOracle
from translation.orchestrator import CancelSignal

logger = logging.getLogger(__name__)


class TranslationPipeline:
    """
    Composes upload, extraction, translation, export and history.

    Collaborators default to the Ollama oracle, local file storage and the
    JSON history file named in the config; tests pass their own.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        oracle: Optional[TranslationOracle] = None,
        storage: Optional[LocalFileStorage] = None,
        history: Optional[JsonHistoryStore] = None,
    ):
        self.config = config or Config.from_env()
        self.config.ensure_directories()
        self.oracle = oracle or OllamaOracle(self.config)
        self.storage = storage or LocalFileStorage(self.config.upload_dir)
        self.history = history or JsonHistoryStore(self.config.history_path)
        self.translator = DocumentTranslator(self.oracle, self.config.translation_payload)
        self._render_settings: Optional[RenderSettings] = None

    @property
    def render_settings(self) -> RenderSettings:
        if self._render_settings is None:
            self._render_settings = RenderSettings.from_config(self.config)
        return self._render_settings

    def _check_upload(self, data: bytes, filename: str) -> None:
        if not data:
            raise ValueError(f"File is empty: {filename}")
        limit = self.config.max_upload_mb * 1024 * 1024
        if len(data) > limit:
            raise ValueError(f"File is larger than {self.config.max_upload_mb} MB: {filename}")

    async def ingest(self, data: bytes, filename: str) -> Tuple[str, List[Page]]:
        """
        Store an upload and extract its pages.

        If extraction fails, the stored upload is deleted and the extraction
        error is re-raised; a failed delete is only logged.

        Returns:
            (storage key, source pages)
        """
        file_format, mime_type = detect_format(filename)
        if file_format == "docx":
            raise ValueError("Word documents are translated in place; use markup translation for .docx files")
        self._check_upload(data, filename)

        key = self.storage.put(data, self.storage.generate_key(filename))
        try:
            pages = await extract_document(
                data, file_format, mime_type, self.oracle, resolution=self.config.raster_resolution
            )
        except Exception:
            self.discard(key)
            raise

        logger.info("Ingested %s as %s: %d pages", filename, key, len(pages))
        return key, pages

    def discard(self, key: str) -> bool:
        """Delete a stored upload. Failures are logged, never raised."""
        try:
            deleted = self.storage.delete(key)
        except StorageError as e:
            logger.error("Failed to delete stored upload %s: %s", key, e)
            return False
        if not deleted:
            logger.error("Stored upload %s was already gone", key)
        return deleted

    async def translate(
        self,
        pages: Sequence[Page],
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[CancelSignal] = None,
    ) -> List[TranslationOutcome]:
        outcomes = await self.translator.translate_document(
            pages, source_lang, target_lang, formality, glossary, on_progress=on_progress, cancel=cancel
        )
        failed = [o.page_number for o in outcomes if not o.ok]
        logger.info(
            "Translated %d of %d pages to %s (%d failed)",
            len(outcomes) - len(failed), len(pages), target_lang, len(failed),
        )
        return outcomes

    async def retry_page(
        self,
        outcomes: Sequence[TranslationOutcome],
        pages: Sequence[Page],
        page_number: int,
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> List[TranslationOutcome]:
        return await self.translator.retry_page(
            outcomes, pages, page_number, source_lang, target_lang, formality, glossary
        )

    def export(
        self,
        outcomes: Sequence[TranslationOutcome],
        filename: str,
        formats: Sequence[str] = ("pdf",),
    ) -> List[OutputArtifact]:
        """
        Render the translated pages in each requested format.

        Raises:
            ValueError: nothing was translated or some page failed.
            RenderingError: a format is unknown or its builder failed.
        """
        if not outcomes:
            raise ValueError("There are no translated pages to export")
        failed = [o.page_number for o in outcomes if not o.ok]
        if failed:
            raise ValueError(f"Pages {failed} failed to translate; retry them before exporting")

        pages = [o.page for o in outcomes if isinstance(o, PageSuccess)]
        settings = self.render_settings if "pdf" in formats else None
        return [render_artifact(pages, filename, fmt, settings) for fmt in formats]

    async def translate_markup(
        self,
        data: bytes,
        filename: str,
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> OutputArtifact:
        """Translate a .docx in place, keeping every other part of the package."""
        file_format, _ = detect_format(filename)
        if file_format != "docx":
            raise ValueError(f"Markup translation needs a .docx file, got {filename}")
        self._check_upload(data, filename)

        content = await translate_markup_package(
            data,
            source_lang,
            target_lang,
            self.oracle,
            policy=WhitespacePolicy(self.config.whitespace_policy),
            formality=formality,
            glossary=glossary,
        )
        return OutputArtifact(
            filename=output_filename(filename, "docx"),
            media_type=MEDIA_TYPES["docx"],
            content=content,
        )

    async def translate_visual(
        self, data: bytes, filename: str, source_lang: str, target_lang: str
    ) -> List[Page]:
        """Translate page images straight into line-level pages."""
        file_format, mime_type = detect_format(filename)
        self._check_upload(data, filename)
        return await translate_visual(
            data, file_format, mime_type, self.oracle, source_lang, target_lang,
            resolution=self.config.raster_resolution,
        )

    def record_history(
        self,
        filename: str,
        source_lang: str,
        target_lang: str,
        outcomes: Sequence[TranslationOutcome],
        formats: Sequence[str] = (),
    ) -> HistoryRecord:
        return self.history.append(
            file_name=filename,
            source_language=source_lang,
            target_language=target_lang,
            page_count=len(outcomes),
            failed_pages=[o.page_number for o in outcomes if not o.ok],
            formats=formats,
        )

    async def translate_file(
        self,
        input_path: str,
        target_lang: str,
        output_dir: Optional[str] = None,
        source_lang: str = "auto",
        progress_callback: Optional[Callable[[float], None]] = None,
    ) -> List[str]:
        """
        Translate a file on disk and write the artifacts next to each other.

        Word documents are translated in place; PDFs and images go through
        extraction, page translation and PDF + DOCX export.

        Returns:
            Paths of the written files.
        """
        if not os.path.exists(input_path):
            raise FileNotFoundError(f"File not found: {input_path}")

        filename = Path(input_path).name
        data = Path(input_path).read_bytes()
        output_dir = output_dir or self.config.output_dir
        os.makedirs(output_dir, exist_ok=True)

        file_format, _ = detect_format(filename)
        if file_format == "docx":
            artifacts = [await self.translate_markup(data, filename, source_lang, target_lang)]
            self.history.append(filename, source_lang, target_lang, formats=["docx"])
        else:
            key, pages = await self.ingest(data, filename)
            try:
                outcomes = await self.translate(pages, source_lang, target_lang, on_progress=progress_callback)
                artifacts = self.export(outcomes, filename, formats=("pdf", "docx"))
                self.record_history(filename, source_lang, target_lang, outcomes, ["pdf", "docx"])
            finally:
                self.discard(key)

        paths = []
        for artifact in artifacts:
            path = os.path.join(output_dir, artifact.filename)
            with open(path, "wb") as f:
                f.write(artifact.content)
            paths.append(path)
        return paths

    async def close(self):
        """Clean up resources."""
        await self.oracle.close()


# CLI entry point
async def main():
    """CLI entry point for direct pipeline execution."""
    if len(sys.argv) < 3:
        print("Usage: python pipeline.py <input_file> <target_lang> [output_dir]")
        sys.exit(1)

    input_file = sys.argv[1]
    target_lang = sys.argv[2]
    output_dir = sys.argv[3] if len(sys.argv) > 3 else None

    config = Config.from_env()
    setup_logging(config.log_level)
    pipeline = TranslationPipeline(config)

    def progress_callback(fraction: float):
        logger.info("Progress: %d%%", int(fraction * 100))

    try:
        paths = await pipeline.translate_file(input_file, target_lang, output_dir, progress_callback=progress_callback)
        for path in paths:
            print(f"Translation complete: {path}")
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await pipeline.close()


if __name__ == "__main__":
    asyncio.run(main())
