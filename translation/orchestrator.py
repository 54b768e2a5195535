"""Page-by-page document translation with per-page failure isolation."""
import logging
from typing import Callable, List, Optional, Protocol, Sequence

from exceptions import CardinalityError, OracleError, StructuralMismatchError
from models import (
    Page,
    PageFailure,
    PageSuccess,
    Stage,
    TranslationOutcome,
    page_from_dict,
    page_to_dict,
)
from translation.llm_translator import TranslationOracle
from translation.merge import check_congruence, merge_metadata
from translation.units import extract_page_units

logger = logging.getLogger(__name__)

# Errors that fail a single page; anything else aborts the run
PAGE_ERRORS = (OracleError, StructuralMismatchError, CardinalityError)


class CancelSignal(Protocol):
    def is_set(self) -> bool:
        ...


class DocumentTranslator:
    """
    Translates pages through the oracle, one call per page.

    payload_mode "units" sends the page's flat unit list and rebuilds the
    page locally; "structured" sends the metadata-free page JSON and decodes
    the page the oracle sends back. Both paths end in the same congruence
    check and metadata merge.
    """

    def __init__(self, oracle: TranslationOracle, payload_mode: str = "units"):
        if payload_mode not in ("units", "structured"):
            raise ValueError(f"Unknown payload mode: {payload_mode!r}")
        self.oracle = oracle
        self.payload_mode = payload_mode

    async def translate_page(
        self,
        source_page: Page,
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> Page:
        """
        Translate one page and merge the source metadata back in.

        Raises:
            OracleError: the oracle call failed or its reply was undecodable.
            CardinalityError: the oracle returned the wrong number of units.
            StructuralMismatchError: the translated page has a different shape.
        """
        if self.payload_mode == "structured":
            translated = await self._translate_structured(source_page, source_lang, target_lang, formality, glossary)
        else:
            translated = await self._translate_units(source_page, source_lang, target_lang, formality, glossary)

        check_congruence(source_page, translated)
        return merge_metadata(source_page, translated)

    async def _translate_units(
        self, source_page: Page, source_lang: str, target_lang: str, formality: str, glossary: str
    ) -> Page:
        units, reinsert = extract_page_units(source_page)
        translated_units = await self.oracle.translate_texts(
            units, source_lang, target_lang, formality=formality, glossary=glossary
        )
        return reinsert(translated_units)

    async def _translate_structured(
        self, source_page: Page, source_lang: str, target_lang: str, formality: str, glossary: str
    ) -> Page:
        payload = page_to_dict(source_page, include_metadata=False)
        response = await self.oracle.translate_page(
            payload, source_lang, target_lang, formality=formality, glossary=glossary
        )
        response["pageNumber"] = source_page.page_number
        try:
            return page_from_dict(response, stage=Stage.TRANSLATED)
        except ValueError as e:
            raise StructuralMismatchError(
                f"Page {source_page.page_number}: translated page is malformed: {e}"
            ) from e

    async def translate_document(
        self,
        source_pages: Sequence[Page],
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[CancelSignal] = None,
    ) -> List[TranslationOutcome]:
        """
        Translate pages strictly one after another, in page order.

        A page that fails is recorded as PageFailure and the run continues.
        on_progress(completed / total) is called after every page. The
        cancel signal is checked between pages; once set, the outcomes so far
        are returned and no further page is attempted.
        """
        pages = list(source_pages)
        numbers = [page.page_number for page in pages]
        if numbers != sorted(set(numbers)):
            raise ValueError(f"Pages must be in strictly ascending order, got {numbers}")

        total = len(pages)
        outcomes: List[TranslationOutcome] = []

        for done, page in enumerate(pages, start=1):
            if cancel is not None and cancel.is_set():
                logger.info("Translation cancelled after %d of %d pages", len(outcomes), total)
                break

            outcomes.append(
                await self._attempt(page, source_lang, target_lang, formality, glossary)
            )
            if on_progress:
                on_progress(done / total)

        return outcomes

    async def retry_page(
        self,
        outcomes: Sequence[TranslationOutcome],
        source_pages: Sequence[Page],
        page_number: int,
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> List[TranslationOutcome]:
        """
        Re-translate a single page and replace only its outcome.

        A page whose outcome is already a success is not sent again; the
        outcomes come back unchanged.
        """
        result = list(outcomes)
        index = next((i for i, o in enumerate(result) if o.page_number == page_number), None)
        if index is None:
            raise KeyError(f"No outcome for page {page_number}")
        if result[index].ok:
            logger.info("Page %d already translated, not retrying", page_number)
            return result

        source = next((p for p in source_pages if p.page_number == page_number), None)
        if source is None:
            raise KeyError(f"No source page {page_number}")

        result[index] = await self._attempt(source, source_lang, target_lang, formality, glossary)
        return result

    async def _attempt(
        self, page: Page, source_lang: str, target_lang: str, formality: str, glossary: str
    ) -> TranslationOutcome:
        try:
            merged = await self.translate_page(page, source_lang, target_lang, formality, glossary)
        except PAGE_ERRORS as e:
            logger.warning("Page %d failed: %s", page.page_number, e)
            return PageFailure(page_number=page.page_number, error_message=str(e))
        return PageSuccess(page=merged)
