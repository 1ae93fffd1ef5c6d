"""Tests for the LLM client wrapper and output parsing helpers."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dossier.core.llm import (
    LLMClient,
    LLMError,
    LLMResponseError,
    extract_json_object,
    parse_llm_json,
    strip_llm_fences,
)


def _message(text: str = "hello", block_type: str = "text", tokens=(3, 4)) -> MagicMock:
    block = MagicMock()
    block.type = block_type
    block.text = text
    message = MagicMock()
    message.content = [block]
    message.usage.input_tokens = tokens[0]
    message.usage.output_tokens = tokens[1]
    return message


def _client_with(create: AsyncMock) -> LLMClient:
    anthropic = MagicMock()
    anthropic.messages.create = create
    return LLMClient(api_key="test", client=anthropic)


class _FakeStream:
    def __init__(self, chunks, error=None):
        self._chunks = chunks
        self._error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    @property
    def text_stream(self):
        async def _iter():
            for chunk in self._chunks:
                yield chunk
            if self._error:
                raise self._error

        return _iter()


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_content_and_token_count(self):
        create = AsyncMock(return_value=_message("answer", tokens=(10, 5)))
        llm = _client_with(create)

        result = await llm.generate("system", "user", max_tokens=100, temperature=0.2)

        assert result.content == "answer"
        assert result.token_count == 15
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["max_tokens"] == 100
        assert kwargs["temperature"] == 0.2
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        create = AsyncMock(side_effect=[RuntimeError("overloaded"), _message("ok")])
        llm = _client_with(create)

        with patch("dossier.core.llm.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await llm.generate("s", "u", retries=1)

        assert result.content == "ok"
        assert create.await_count == 2
        mock_sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_failure_aggregates_last_error(self):
        create = AsyncMock(
            side_effect=[RuntimeError("first"), RuntimeError("second"), RuntimeError("final boom")]
        )
        llm = _client_with(create)

        with patch("dossier.core.llm.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(LLMError) as exc_info:
                await llm.generate("s", "u", retries=2)

        assert create.await_count == 3
        assert "after 3 attempts" in str(exc_info.value)
        assert "final boom" in str(exc_info.value)
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_non_text_block_is_not_retried(self):
        create = AsyncMock(return_value=_message(block_type="tool_use"))
        llm = _client_with(create)

        with pytest.raises(LLMResponseError):
            await llm.generate("s", "u", retries=3)

        assert create.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        llm = LLMClient(api_key=None)

        with pytest.raises(LLMError, match="ANTHROPIC_API_KEY"):
            await llm.generate("s", "u")


class TestStream:
    @pytest.mark.asyncio
    async def test_yields_text_chunks(self):
        anthropic = MagicMock()
        anthropic.messages.stream = MagicMock(return_value=_FakeStream(["## Ti", "tle\n", "- a"]))
        llm = LLMClient(api_key="test", client=anthropic, stream_timeout=30)

        chunks = [chunk async for chunk in llm.stream("s", "u", max_tokens=50)]

        assert chunks == ["## Ti", "tle\n", "- a"]
        assert anthropic.messages.stream.call_args.kwargs["timeout"] == 30

    @pytest.mark.asyncio
    async def test_wraps_stream_failures(self):
        anthropic = MagicMock()
        anthropic.messages.stream = MagicMock(
            return_value=_FakeStream(["partial"], error=RuntimeError("connection reset"))
        )
        llm = LLMClient(api_key="test", client=anthropic)

        received = []
        with pytest.raises(LLMError, match="connection reset"):
            async for chunk in llm.stream("s", "u"):
                received.append(chunk)

        assert received == ["partial"]


class TestParsing:
    def test_strip_json_fence(self):
        assert strip_llm_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_bare_fence(self):
        assert strip_llm_fences("```\n[1, 2]\n```") == "[1, 2]"

    def test_parse_plain_json(self):
        assert parse_llm_json('  {"title": "x"} ') == {"title": "x"}

    def test_parse_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            parse_llm_json("Sure! Here is your outline.")

    def test_extract_object_from_prose(self):
        raw = 'Here you go:\n{"slides": [{"title": "A"}]}\nThanks!'
        assert extract_json_object(raw) == {"slides": [{"title": "A"}]}

    def test_extract_without_object(self):
        with pytest.raises(ValueError, match="No JSON found"):
            extract_json_object("no braces here")
