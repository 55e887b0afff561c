"""
Tests for the Anthropic model gateway
"""

import copy
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from agent.errors import AgentError, ErrorKind
from agent.llm.anthropic_adapter import AnthropicAdapter, _ensure_alternation
from agent.llm.base import FunctionSchema, LLMAdapter

API_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _raw(*blocks, stop_reason="end_turn", usage=None):
    return SimpleNamespace(
        content=list(blocks),
        stop_reason=stop_reason,
        usage=usage or SimpleNamespace(input_tokens=12, output_tokens=7, cache_read_input_tokens=3),
    )


def _text(text):
    return SimpleNamespace(type="text", text=text)


def _tool_use(call_id, name, tool_input):
    return SimpleNamespace(type="tool_use", id=call_id, name=name, input=tool_input)


@pytest.fixture
def adapter():
    """Adapter whose SDK client is a mock."""
    a = AnthropicAdapter("test-key", model="claude-test", thinking_budget=5000)
    a._client = MagicMock()
    a._client.messages.create = AsyncMock(return_value=_raw(_text("Hello")))
    return a


class TestSendMessage:
    """Request building and response parsing."""

    @pytest.mark.asyncio
    async def test_request_shape(self, adapter):
        tools = [FunctionSchema("get_patterns", "List patterns", {"type": "object", "properties": {}})]

        response = await adapter.send_message(
            "You edit pages", [{"role": "user", "content": "Hi"}], tools, max_tokens=1024
        )

        kwargs = adapter._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "You edit pages"
        assert kwargs["max_tokens"] == 1024
        assert kwargs["tools"] == [
            {"name": "get_patterns", "description": "List patterns", "input_schema": {"type": "object", "properties": {}}}
        ]
        assert "thinking" not in kwargs
        assert response.text == "Hello"
        assert response.stop_reason == "end_turn"
        assert response.usage.input_tokens == 12
        assert response.usage.output_tokens == 7
        assert response.usage.cached_tokens == 3

    @pytest.mark.asyncio
    async def test_extended_thinking_raises_token_ceiling(self, adapter):
        await adapter.send_message(
            "", [{"role": "user", "content": "Hi"}], max_tokens=4096, extended_thinking=True
        )

        kwargs = adapter._client.messages.create.call_args.kwargs
        assert kwargs["thinking"] == {"type": "enabled", "budget_tokens": 5000}
        assert kwargs["max_tokens"] == 5000 + 1024
        assert "system" not in kwargs
        assert "tools" not in kwargs

    @pytest.mark.asyncio
    async def test_content_blocks_round_trip(self, adapter):
        adapter._client.messages.create.return_value = _raw(
            SimpleNamespace(type="thinking", thinking="Need the patterns", signature="sig-1"),
            _text("Checking"),
            _tool_use("toolu_1", "get_patterns", {}),
            stop_reason="tool_use",
        )

        response = await adapter.send_message("", [{"role": "user", "content": "Hi"}])

        assert response.content == [
            {"type": "thinking", "thinking": "Need the patterns", "signature": "sig-1"},
            {"type": "text", "text": "Checking"},
            {"type": "tool_use", "id": "toolu_1", "name": "get_patterns", "input": {}},
        ]
        assert response.thoughts == ["Need the patterns"]
        assert [c.id for c in LLMAdapter.extract_tool_calls(response)] == ["toolu_1"]
        assert LLMAdapter.extract_text(response) == "Checking"

    @pytest.mark.asyncio
    async def test_tool_calls_ignored_unless_tool_use(self, adapter):
        adapter._client.messages.create.return_value = _raw(
            _tool_use("toolu_2", "get_patterns", {}), stop_reason="max_tokens"
        )

        response = await adapter.send_message("", [{"role": "user", "content": "Hi"}])

        assert LLMAdapter.extract_tool_calls(response) == []

    @pytest.mark.asyncio
    async def test_empty_content(self, adapter):
        adapter._client.messages.create.return_value = _raw()
        response = await adapter.send_message("", [{"role": "user", "content": "Hi"}])
        assert response.content == [{"type": "text", "text": ""}]
        assert response.text == ""

    @pytest.mark.asyncio
    async def test_history_is_merged_not_mutated(self, adapter):
        history = [
            {"role": "user", "content": "Document context: ID: 42"},
            {"role": "user", "content": "Make the title bold"},
        ]
        before = copy.deepcopy(history)

        await adapter.send_message("", history)

        sent = adapter._client.messages.create.call_args.kwargs["messages"]
        assert sent == [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Document context: ID: 42"},
                    {"type": "text", "text": "Make the title bold"},
                ],
            }
        ]
        assert history == before


class TestErrors:
    """Provider failures become external_service errors."""

    @pytest.mark.asyncio
    async def test_status_error_keeps_status_code(self, adapter):
        response = httpx.Response(429, request=API_REQUEST)
        adapter._client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=response, body=None
        )

        with pytest.raises(AgentError) as exc_info:
            await adapter.send_message("", [{"role": "user", "content": "Hi"}])

        err = exc_info.value
        assert err.kind == ErrorKind.EXTERNAL_SERVICE
        assert err.details == {"provider": "anthropic", "status_code": 429}
        assert err.status_code == 502
        assert isinstance(err.__cause__, anthropic.RateLimitError)

    @pytest.mark.asyncio
    async def test_connection_error_has_no_status(self, adapter):
        adapter._client.messages.create.side_effect = anthropic.APIConnectionError(request=API_REQUEST)

        with pytest.raises(AgentError) as exc_info:
            await adapter.generate("Plan this")

        assert exc_info.value.kind == ErrorKind.EXTERNAL_SERVICE
        assert exc_info.value.details == {"provider": "anthropic"}


class TestGenerate:
    """One-shot generation."""

    @pytest.mark.asyncio
    async def test_json_schema_forces_tool(self, adapter):
        schema = {"title": "submit_plan", "type": "object", "properties": {"summary": {"type": "string"}}}
        adapter._client.messages.create.return_value = _raw(
            _tool_use("toolu_3", "submit_plan", {"summary": "s"}), stop_reason="tool_use"
        )

        response = await adapter.generate("Plan a page", system_prompt="Planner", json_schema=schema)

        kwargs = adapter._client.messages.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Plan a page"}]
        assert kwargs["system"] == "Planner"
        assert kwargs["tools"][0]["name"] == "submit_plan"
        assert kwargs["tools"][0]["input_schema"] is schema
        assert kwargs["tool_choice"] == {"type": "tool", "name": "submit_plan"}
        assert response.tool_calls[0].input == {"summary": "s"}


class TestEnsureAlternation:
    """Same-role merging."""

    def test_user_message_after_tool_results(self):
        """Test a new turn after an iteration cutoff lands in the tool_result message."""
        result_block = {"type": "tool_result", "tool_use_id": "toolu_1", "content": "[]"}
        messages = [
            {"role": "user", "content": "Loop"},
            {"role": "assistant", "content": [{"type": "tool_use", "id": "toolu_1", "name": "get_patterns", "input": {}}]},
            {"role": "user", "content": [result_block]},
            {"role": "user", "content": "Next request"},
        ]

        merged = _ensure_alternation(messages)

        assert [m["role"] for m in merged] == ["user", "assistant", "user"]
        assert merged[2]["content"] == [result_block, {"type": "text", "text": "Next request"}]
        assert messages[2]["content"] == [result_block]

    def test_alternating_untouched(self):
        messages = [{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}]
        assert _ensure_alternation(messages) == messages
        assert _ensure_alternation([]) == []
