"""
In-place translation of Word (.docx) packages.

The main document part is parsed with lxml, every <w:t> text node is
collected in document order and sent to the oracle as one batch, and the
translations are written back into the same nodes. Every other part of the
archive is copied through untouched, so styles, layout and media survive.
"""
import io
import logging
import re
import zipfile
from enum import Enum
from typing import List, Sequence

from lxml import etree

from exceptions import CardinalityError, OracleError
from translation.llm_translator import TranslationOracle

logger = logging.getLogger(__name__)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
W_TEXT = f"{{{W_NS}}}t"
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"
OFFICE_DOCUMENT_RELS = {
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument",
    "http://purl.oclc.org/ooxml/officeDocument/relationships/officeDocument",
}
DEFAULT_MAIN_PART = "word/document.xml"

_LEADING_SPACES = re.compile(r"^ +")
_TRAILING_SPACES = re.compile(r" +$")


class WhitespacePolicy(str, Enum):
    """How translated text is trimmed in nodes not marked xml:space="preserve"."""
    COLLAPSE = "collapse"    # At most one leading and one trailing space
    PRESERVE = "preserve"    # Keep the oracle's text as is
    STRIP = "strip"          # No leading or trailing spaces


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True)


def find_main_part(archive: zipfile.ZipFile) -> str:
    """Name of the main document part, from the package relationships."""
    names = set(archive.namelist())
    if "_rels/.rels" in names:
        rels = etree.fromstring(archive.read("_rels/.rels"), _parser())
        for rel in rels:
            if rel.get("Type") in OFFICE_DOCUMENT_RELS:
                target = (rel.get("Target") or "").lstrip("/")
                if target in names:
                    return target
    if DEFAULT_MAIN_PART in names:
        return DEFAULT_MAIN_PART
    raise ValueError("Invalid DOCX file: main document part not found")


def collect_text_nodes(root: etree._Element) -> List[etree._Element]:
    """All <w:t> nodes, depth-first in document order."""
    return list(root.iter(W_TEXT))


def is_space_preserved(node: etree._Element) -> bool:
    """The nearest xml:space on the node or an ancestor decides."""
    element = node
    while element is not None:
        value = element.get(XML_SPACE)
        if value is not None:
            return value == "preserve"
        element = element.getparent()
    return False


def normalize_text(text: str, preserved: bool, policy: WhitespacePolicy = WhitespacePolicy.COLLAPSE) -> str:
    if preserved or policy is WhitespacePolicy.PRESERVE:
        return text
    if policy is WhitespacePolicy.STRIP:
        return text.strip(" ")
    return _TRAILING_SPACES.sub(" ", _LEADING_SPACES.sub(" ", text))


def apply_translations(
    nodes: Sequence[etree._Element],
    translated: Sequence[str],
    policy: WhitespacePolicy = WhitespacePolicy.COLLAPSE,
) -> None:
    """
    Write translations into the nodes they were read from.

    Nothing is written unless there is exactly one translation per node.
    """
    if len(translated) != len(nodes):
        raise CardinalityError(expected=len(nodes), received=len(translated))
    for node, text in zip(nodes, translated):
        try:
            node.text = normalize_text(text, is_space_preserved(node), policy)
        except ValueError as e:
            raise OracleError(f"The oracle returned text that cannot be stored in the document: {e}") from e


def rewrite_package(package: bytes, part_name: str, part_data: bytes) -> bytes:
    """Copy the archive entry by entry, replacing only `part_name`."""
    output = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(package)) as source, zipfile.ZipFile(output, "w") as target:
        for info in source.infolist():
            data = part_data if info.filename == part_name else source.read(info.filename)
            target.writestr(info, data)
    return output.getvalue()


async def translate_markup_package(
    package: bytes,
    source_lang: str,
    target_lang: str,
    oracle: TranslationOracle,
    policy: WhitespacePolicy = WhitespacePolicy.COLLAPSE,
    formality: str = "default",
    glossary: str = "",
) -> bytes:
    """
    Translate a .docx package and return the new package bytes.

    Raises:
        ValueError: the bytes are not a Word package.
        CardinalityError: the oracle returned a different number of texts.
        OracleError: the oracle call failed or returned text that XML cannot hold.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(package)) as archive:
            part_name = find_main_part(archive)
            root = etree.fromstring(archive.read(part_name), _parser())
    except zipfile.BadZipFile as e:
        raise ValueError("The file is not a valid Word document (.docx)") from e
    except etree.XMLSyntaxError as e:
        raise ValueError(f"The Word document markup is malformed: {e}") from e

    nodes = collect_text_nodes(root)
    originals = [node.text or "" for node in nodes]
    if not any(text.strip() for text in originals):
        logger.info("No text to translate in %s", part_name)
        return package

    logger.info("Translating %d text nodes from %s", len(nodes), part_name)
    translated = await oracle.translate_texts(
        originals, source_lang, target_lang, formality=formality, glossary=glossary
    )
    apply_translations(nodes, translated, policy)

    part_data = etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)
    return rewrite_package(package, part_name, part_data)
