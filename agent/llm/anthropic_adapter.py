"""Anthropic adapter - wraps the ``anthropic`` SDK for Claude models.

This is the **only** module that imports the ``anthropic`` package.

Key Anthropic API details handled here:
- System prompt is a separate ``system`` parameter, not a message.
- Strict user/assistant alternation required - consecutive same-role messages
  must be merged (the orchestrator's injected context message sits right
  before the user's own message).
- Tool results are sent inside a ``user`` message with ``tool_result`` blocks.
- Extended thinking is controlled via a ``thinking`` parameter with a token
  budget; ``max_tokens`` must stay above that budget.
"""

from __future__ import annotations

import logging
from typing import Any

import anthropic

import config
from agent.errors import ErrorKind, AgentError

logger = logging.getLogger("gutenberg_agent")

from .base import (
    FunctionSchema,
    LLMAdapter,
    LLMResponse,
    ToolCall,
    UsageMetadata,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_tools(schemas: list[FunctionSchema] | None) -> list[dict] | None:
    """Convert FunctionSchema list to Anthropic tool format."""
    if not schemas:
        return None
    return [s.to_wire() for s in schemas]


def _content_blocks(raw) -> list[dict]:
    """Convert an Anthropic response's content into wire-shape block dicts."""
    blocks: list[dict] = []
    for block in raw.content:
        if block.type == "text":
            blocks.append({"type": "text", "text": block.text})
        elif block.type == "tool_use":
            blocks.append(
                {
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input if isinstance(block.input, dict) else {},
                }
            )
        elif block.type == "thinking":
            # Thinking blocks must round-trip with their signature
            blocks.append(
                {
                    "type": "thinking",
                    "thinking": getattr(block, "thinking", ""),
                    "signature": getattr(block, "signature", ""),
                }
            )
    if not blocks:
        blocks = [{"type": "text", "text": ""}]
    return blocks


def _parse_response(raw) -> LLMResponse:
    """Parse an Anthropic Messages response into a provider-agnostic LLMResponse."""
    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []
    thoughts: list[str] = []

    for block in raw.content:
        if block.type == "text":
            text_parts.append(block.text)
        elif block.type == "tool_use":
            tool_calls.append(
                ToolCall(
                    id=block.id,
                    name=block.name,
                    input=block.input if isinstance(block.input, dict) else {},
                )
            )
        elif block.type == "thinking":
            thinking_text = getattr(block, "thinking", None)
            if thinking_text:
                thoughts.append(thinking_text)

    usage = UsageMetadata()
    if raw.usage:
        usage = UsageMetadata(
            input_tokens=getattr(raw.usage, "input_tokens", 0) or 0,
            output_tokens=getattr(raw.usage, "output_tokens", 0) or 0,
            cached_tokens=getattr(raw.usage, "cache_read_input_tokens", 0) or 0,
        )

    return LLMResponse(
        stop_reason=raw.stop_reason,
        content=_content_blocks(raw),
        text="\n".join(text_parts) if text_parts else "",
        tool_calls=tool_calls,
        usage=usage,
        thoughts=thoughts,
        raw=raw,
    )


def _ensure_alternation(messages: list[dict]) -> list[dict]:
    """Merge consecutive same-role messages to satisfy Anthropic's alternation rule.

    Returns a new list; the caller's messages are left untouched.
    """
    if not messages:
        return messages

    merged: list[dict] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            prev = merged[-1]
            prev_content = prev.get("content", "")
            new_content = msg.get("content", "")

            # Normalize to list form for merging
            if isinstance(prev_content, str):
                prev_list = (
                    [{"type": "text", "text": prev_content}] if prev_content else []
                )
            else:
                prev_list = list(prev_content)

            if isinstance(new_content, str):
                new_list = (
                    [{"type": "text", "text": new_content}] if new_content else []
                )
            else:
                new_list = list(new_content)

            prev["content"] = prev_list + new_list
        else:
            merged.append(dict(msg))

    return merged


# ---------------------------------------------------------------------------
# AnthropicAdapter
# ---------------------------------------------------------------------------


class AnthropicAdapter(LLMAdapter):
    """Model gateway over ``anthropic.AsyncAnthropic``."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str | None = None,
        base_url: str | None = None,
        timeout_ms: int = 300_000,
        thinking_budget: int | None = None,
    ):
        kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": timeout_ms / 1000.0,
        }
        if base_url:
            kwargs["base_url"] = base_url
        self._client = anthropic.AsyncAnthropic(**kwargs)
        self.model = model or config.MODEL
        self.thinking_budget = thinking_budget or config.THINKING_BUDGET_TOKENS

    # -- LLMAdapter interface --------------------------------------------------

    async def send_message(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: list[FunctionSchema] | None = None,
        *,
        max_tokens: int = 8192,
        extended_thinking: bool = False,
        model: str | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "messages": _ensure_alternation(messages),
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        anthropic_tools = _build_tools(tools)
        if anthropic_tools:
            kwargs["tools"] = anthropic_tools
        if extended_thinking:
            kwargs["thinking"] = {
                "type": "enabled",
                "budget_tokens": self.thinking_budget,
            }
            kwargs["max_tokens"] = max(max_tokens, self.thinking_budget + 1024)

        logger.debug(
            "[Anthropic] Sending %d message(s), %d tool(s), max_tokens=%d",
            len(messages),
            len(anthropic_tools or []),
            kwargs["max_tokens"],
        )
        raw = await self._create(kwargs)
        response = _parse_response(raw)
        logger.debug(
            "[Anthropic] stop_reason=%s in=%d out=%d",
            response.stop_reason,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return response

    async def generate(
        self,
        contents: str,
        *,
        system_prompt: str | None = None,
        json_schema: dict | None = None,
        max_output_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": [{"role": "user", "content": contents}],
            "max_tokens": max_output_tokens or 8192,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        # JSON schema enforcement via tool-based structured output
        if json_schema is not None:
            schema_tool_name = json_schema.get("title", "structured_output")
            kwargs["tools"] = [
                {
                    "name": schema_tool_name,
                    "description": "Return the structured response.",
                    "input_schema": json_schema,
                }
            ]
            kwargs["tool_choice"] = {"type": "tool", "name": schema_tool_name}

        raw = await self._create(kwargs)
        return _parse_response(raw)

    async def _create(self, kwargs: dict[str, Any]):
        try:
            return await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            details: dict[str, Any] = {"provider": "anthropic"}
            status = getattr(exc, "status_code", None)
            if status is not None:
                details["status_code"] = status
            raise AgentError(
                ErrorKind.EXTERNAL_SERVICE,
                f"Anthropic API error: {exc}",
                details,
            ) from exc

    # -- Convenience properties ------------------------------------------------

    @property
    def client(self):
        """Escape hatch - the underlying ``anthropic.AsyncAnthropic`` client."""
        return self._client

    async def close(self) -> None:
        await self._client.close()
