"""Tests for the Ollama oracle client, using httpx.MockTransport."""
import json

import httpx
import pytest

from config import Config
from exceptions import OracleError
from tests.conftest import make_page
from translation.llm_translator import OllamaOracle, decode_json, glossary_rule, language_name
from translation.orchestrator import DocumentTranslator


def reply(content):
    """Ollama /api/chat response carrying `content` as the assistant message."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})


def make_oracle(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaOracle(Config(oracle_url="http://oracle.test/"), client=client)


class TestDecodeJson:

    def test_plain(self):
        assert decode_json('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert decode_json('```json\n["x", "y"]\n```') == ["x", "y"]

    def test_wrapped_in_prose(self):
        assert decode_json('Here you go: {"translations": ["a"]} Hope it helps!') == {"translations": ["a"]}

    def test_garbage(self):
        with pytest.raises(OracleError):
            decode_json("I cannot translate that.")


def test_prompt_helpers():
    assert language_name("auto") == "the auto-detected source language"
    assert language_name("de") == "de"
    assert glossary_rule("  ") == ""
    assert "lease: bail" in glossary_rule("lease: bail")


@pytest.mark.asyncio
async def test_translate_texts_request_and_reply():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return reply({"translations": ["Bonjour", "Monde"]})

    oracle = make_oracle(handler)
    result = await oracle.translate_texts(["Hello", "World"], "en", "fr", formality="formal", glossary="a: b")
    await oracle.close()

    assert result == ["Bonjour", "Monde"]
    assert seen["url"] == "http://oracle.test/api/chat"
    body = seen["body"]
    assert body["format"] == "json" and body["stream"] is False
    assert json.loads(body["messages"][1]["content"]) == {"texts": ["Hello", "World"]}
    system = body["messages"][0]["content"]
    assert "formal tone" in system and "a: b" in system


@pytest.mark.asyncio
async def test_translate_texts_accepts_bare_list():
    oracle = make_oracle(lambda request: reply(["Hola"]))
    assert await oracle.translate_texts(["Hi"], "en", "es") == ["Hola"]


@pytest.mark.asyncio
async def test_translate_texts_does_not_check_length():
    oracle = make_oracle(lambda request: reply({"translations": ["one"]}))
    assert await oracle.translate_texts(["a", "b"], "en", "fr") == ["one"]


@pytest.mark.asyncio
async def test_blank_input_skips_the_call():
    def handler(request):
        raise AssertionError("oracle must not be called")

    oracle = make_oracle(handler)
    assert await oracle.translate_texts(["", "  "], "en", "fr") == ["", "  "]
    assert await oracle.translate_texts([], "en", "fr") == []


@pytest.mark.asyncio
async def test_non_string_items_rejected():
    oracle = make_oracle(lambda request: reply({"translations": ["ok", 3]}))
    with pytest.raises(OracleError):
        await oracle.translate_texts(["a", "b"], "en", "fr")


@pytest.mark.asyncio
async def test_http_error_becomes_oracle_error():
    oracle = make_oracle(lambda request: httpx.Response(500, text="model not loaded"))
    with pytest.raises(OracleError, match="unavailable"):
        await oracle.translate_texts(["a"], "en", "fr")


@pytest.mark.asyncio
async def test_connection_error_becomes_oracle_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    oracle = make_oracle(handler)
    with pytest.raises(OracleError):
        await oracle.translate_texts(["a"], "en", "fr")


@pytest.mark.asyncio
async def test_translate_page_unwraps_translated_pages():
    page = {"pageNumber": 1, "blocks": [{"id": "p", "type": "paragraph", "text": "Salut"}]}
    oracle = make_oracle(lambda request: reply({"translatedPages": [page]}))
    assert await oracle.translate_page({"pageNumber": 1, "blocks": []}, "en", "fr") == page


@pytest.mark.asyncio
async def test_translate_image_sends_image_and_decodes_lines():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return reply({"lines": [{"text": "Titre", "isHeading": True}, {"text": "Corps"}]})

    oracle = make_oracle(handler)
    lines = await oracle.translate_image(b"\x89PNG", "image/png", "auto", "fr")

    assert [(l.text, l.is_heading) for l in lines] == [("Titre", True), ("Corps", False)]
    assert seen["body"]["messages"][1]["images"] == ["iVBORw=="]


@pytest.mark.asyncio
async def test_extract_page_requires_block_list():
    oracle = make_oracle(lambda request: reply({"text": "no blocks here"}))
    with pytest.raises(OracleError):
        await oracle.extract_page(b"img", "image/png")

    blocks = [{"id": "p1", "type": "paragraph", "text": "Hi", "confidence": 0.9}]
    oracle = make_oracle(lambda request: reply({"blocks": blocks}))
    assert await oracle.extract_page(b"img", "image/png") == blocks


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[{"unexpected": "shape"}], {"message": ["not", "an", "object"]}, "plain"])
async def test_unexpected_reply_shape_becomes_oracle_error(body):
    oracle = make_oracle(lambda request: httpx.Response(200, json=body))
    with pytest.raises(OracleError, match="unexpected reply"):
        await oracle.translate_texts(["a"], "en", "fr")


@pytest.mark.asyncio
async def test_unexpected_reply_shape_fails_only_the_page():
    oracle = make_oracle(lambda request: httpx.Response(200, json=[{"unexpected": "shape"}]))
    translator = DocumentTranslator(oracle)

    outcomes = await translator.translate_document([make_page(1, "One"), make_page(2, "Two")], "en", "fr")
    await oracle.close()

    assert [o.page_number for o in outcomes] == [1, 2]
    assert not any(o.ok for o in outcomes)
    assert "unexpected reply" in outcomes[0].error_message
