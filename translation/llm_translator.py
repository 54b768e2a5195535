"""Oracle client: translation and OCR through an Ollama-compatible chat API."""
import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from config import Config
from exceptions import OracleError
from models import TranslatedLine

logger = logging.getLogger(__name__)

FORMALITY_TONES = {
    "default": "neutral",
    "formal": "formal",
    "informal": "informal",
}

TEXTS_PROMPT = """You are an expert translation engine.
- Source Language: {source}. If it is auto-detected, identify the language from the text.
- Target Language: {target}.
- Apply a {tone} tone.
- Preserve original formatting within each string, like markdown or special characters.
- You will receive a JSON object {{"texts": [...]}} holding {count} strings.
- You MUST return a JSON object {{"translations": [...]}} with exactly {count} strings, where
  each element is the translation of the input string at the same position.
- Do not merge, split, drop or reorder strings. Empty strings stay empty.
- Do not add any commentary outside of the JSON object.{glossary}"""

PAGE_PROMPT = """You are a highly precise JSON translation API. Your sole function is to translate
the "text" fields within a JSON object from {source} to {target}.

The input is a JSON object with a "pages" array holding a single page object.

1. Translate: translate every value of a "text" key.
2. Tone: apply a {tone} tone.{glossary}
3. Preserve Structure: the output MUST have exactly the same structure, keys, ids and order
   as the input. Same number of blocks, same block types, same number of table rows and cells.
   Only the "text" values change.
4. Valid JSON: return a single complete JSON object {{"translatedPages": [<page>]}}.
   Escape double quotes inside translated text. No comments, no markdown."""

IMAGE_PROMPT = """You are an expert translator and document analyst. Translate all text visible in the
provided image and identify its structure.
- Source Language: {source}. If it is auto-detected, identify the language from the text.
- Target Language: {target}.
- Identify headings and subheadings from their visual prominence (font size, weight, capitalization).
- Return a JSON object {{"lines": [{{"text": "string", "isHeading": boolean}}]}}, one entry per line
  of text from top to bottom, "text" being the translated line.
- Return only the JSON object, without any comments or explanations."""

EXTRACT_PROMPT = """You are an expert document processor. Perform optical character recognition and
layout analysis on the provided page image.
- Extract all content: headings, paragraphs, list items and tables, top to bottom.
- Identify heading levels (1 for the most prominent, up to 6).
- For every heading, paragraph, list item and table cell give a confidence score between 0 and 1.
- Give every block a bounding box {{"x1", "y1", "x2", "y2"}} in image pixels.
- Return a JSON object {{"blocks": [...]}} where each block is one of
  {{"id", "type": "heading", "level", "text", "confidence", "bbox"}},
  {{"id", "type": "paragraph", "text", "confidence", "bbox"}},
  {{"id", "type": "list_item", "text", "confidence", "bbox"}},
  {{"id", "type": "table", "bbox", "rows": [[{{"id", "text", "row", "col", "confidence"}}]]}}.
- Every block id and every cell id must be unique. Every table row must have the same number
  of cells; use an empty text for empty cells.
- Return only the JSON object."""

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class TranslationOracle(Protocol):
    """What the pipeline needs from the external translation/OCR service."""

    async def translate_texts(
        self,
        texts: Sequence[str],
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> List[str]:
        ...

    async def translate_page(
        self,
        payload: Dict[str, Any],
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> Dict[str, Any]:
        ...

    async def translate_image(
        self, image: bytes, mime_type: str, source_lang: str, target_lang: str
    ) -> List[TranslatedLine]:
        ...

    async def extract_page(self, image: bytes, mime_type: str) -> List[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


def language_name(code: str) -> str:
    return "the auto-detected source language" if code == "auto" else code


def glossary_rule(glossary: str) -> str:
    """Glossary lines appended verbatim to the instructions, or nothing."""
    glossary = (glossary or "").strip()
    if not glossary:
        return ""
    return f"\n- Glossary: strictly apply the following custom translations:\n{glossary}"


def decode_json(content: str) -> Any:
    """
    Decode the JSON value in an oracle reply.

    Models sometimes wrap JSON in markdown fences or a sentence; the
    outermost object or array is cut out before decoding.
    """
    text = (content or "").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    end = max(text.rfind("}"), text.rfind("]"))
    if starts and end > min(starts):
        text = text[min(starts):end + 1]

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise OracleError(
            "Failed to parse the oracle response. The model may have returned an invalid format."
        ) from e


class OllamaOracle:
    """Oracle backed by an Ollama /api/chat endpoint."""

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.base_url = config.oracle_url.rstrip("/")
        self.model = config.oracle_model
        self.client = client or httpx.AsyncClient(timeout=config.oracle_timeout)

    async def _chat(self, system: str, user: str, images: Optional[List[bytes]] = None) -> Any:
        user_message: Dict[str, Any] = {"role": "user", "content": user}
        if images:
            user_message["images"] = [base64.b64encode(image).decode("ascii") for image in images]

        try:
            response = await self.client.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": [{"role": "system", "content": system}, user_message],
                    "format": "json",
                    "stream": False,
                    "options": {"temperature": self.config.oracle_temperature},
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise OracleError(f"The oracle is unavailable or rejected the request: {e}") from e
        except ValueError as e:
            raise OracleError("The oracle returned a non-JSON HTTP body") from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise OracleError("The oracle returned an unexpected reply")
        content = message.get("content")
        if not isinstance(content, str):
            raise OracleError("The oracle reply has no message content")
        return decode_json(content)

    async def translate_texts(
        self,
        texts: Sequence[str],
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> List[str]:
        """
        Translate an ordered batch of strings.

        Returns the oracle's list as is; callers enforce that it has the
        same length as `texts`. Empty or all-blank input is returned
        without a call.
        """
        texts = list(texts)
        if not texts or all(not t.strip() for t in texts):
            return texts

        system = TEXTS_PROMPT.format(
            source=language_name(source_lang),
            target=target_lang,
            tone=FORMALITY_TONES.get(formality, "neutral"),
            count=len(texts),
            glossary=glossary_rule(glossary),
        )
        logger.debug("Translating %d text units %s -> %s", len(texts), source_lang, target_lang)
        result = await self._chat(system, json.dumps({"texts": texts}, ensure_ascii=False))

        if isinstance(result, dict):
            result = result.get("translations")
        if not isinstance(result, list) or not all(isinstance(t, str) for t in result):
            raise OracleError("The oracle did not return a list of translated strings")
        return result

    async def translate_page(
        self,
        payload: Dict[str, Any],
        source_lang: str,
        target_lang: str,
        formality: str = "default",
        glossary: str = "",
    ) -> Dict[str, Any]:
        """Translate one metadata-free page dict; returns the translated page dict."""
        system = PAGE_PROMPT.format(
            source=language_name(source_lang),
            target=target_lang,
            tone=FORMALITY_TONES.get(formality, "neutral"),
            glossary=glossary_rule(glossary),
        )
        logger.debug("Translating structured page %s", payload.get("pageNumber"))
        result = await self._chat(system, json.dumps({"pages": [payload]}, ensure_ascii=False))

        if isinstance(result, dict) and "translatedPages" in result:
            pages = result["translatedPages"]
            if not isinstance(pages, list) or not pages:
                raise OracleError(f"The oracle returned no translation for page {payload.get('pageNumber')}")
            result = pages[0]
        if not isinstance(result, dict):
            raise OracleError("The oracle did not return a page object")
        return result

    async def translate_image(
        self, image: bytes, mime_type: str, source_lang: str, target_lang: str
    ) -> List[TranslatedLine]:
        """Translate the text in an image into lines, top to bottom."""
        system = IMAGE_PROMPT.format(source=language_name(source_lang), target=target_lang)
        logger.debug("Translating %s image (%d bytes)", mime_type, len(image))
        result = await self._chat(system, "Translate the text in this image.", images=[image])

        lines = result.get("lines") if isinstance(result, dict) else None
        if not isinstance(lines, list):
            raise OracleError("Invalid JSON structure received from the image translation oracle")
        try:
            return [TranslatedLine(text=str(line["text"]), is_heading=bool(line.get("isHeading", False))) for line in lines]
        except (KeyError, TypeError, AttributeError) as e:
            raise OracleError("Malformed line in the image translation response") from e

    async def extract_page(self, image: bytes, mime_type: str) -> List[Dict[str, Any]]:
        """OCR and layout analysis of one page image; returns raw block dicts."""
        logger.debug("Extracting %s page image (%d bytes)", mime_type, len(image))
        result = await self._chat(EXTRACT_PROMPT, "Extract the content of this page.", images=[image])

        blocks = result.get("blocks") if isinstance(result, dict) else None
        if not isinstance(blocks, list):
            raise OracleError("The extraction oracle did not return a block list")
        return blocks

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
