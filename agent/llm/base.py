"""Provider-agnostic types and abstract base class for the model gateway.

All agent code should depend on these types, never on provider-specific SDKs.
Messages use the Messages-API wire shape: ``{"role": ..., "content": str |
list[block]}`` with ``text``, ``tool_use`` and ``tool_result`` blocks.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class ToolCall:
    """A single tool invocation requested by the model.

    Attributes:
        id: Provider-assigned call ID (``toolu_xxxxx``). The matching
            ``tool_result`` block must carry the same id.
        name: Tool name.
        input: Parsed arguments dict.
    """
    id: str
    name: str
    input: dict = field(default_factory=dict)


@dataclass
class UsageMetadata:
    """Normalized token counts."""
    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0

    def add(self, other: "UsageMetadata") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cached_tokens += other.cached_tokens

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }


@dataclass
class LLMResponse:
    """Provider-agnostic response from a model call.

    Attributes:
        stop_reason: ``"tool_use"``, ``"end_turn"`` or whatever else the
            provider reported (``"max_tokens"``, ...).
        content: Assistant content blocks in wire shape, ready to be appended
            to the history as ``{"role": "assistant", "content": content}``.
        text: Concatenated text output (excludes thinking text).
        tool_calls: Extracted tool calls.
        usage: Token usage for this call.
        thoughts: Thinking blocks (for verbose logging).
        raw: The original provider response object.
    """
    stop_reason: str | None = None
    content: list[dict] = field(default_factory=list)
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: UsageMetadata = field(default_factory=UsageMetadata)
    thoughts: list[str] = field(default_factory=list)
    raw: Any = None


@dataclass
class FunctionSchema:
    """A tool as the provider sees it: name, description, JSON-schema input.

    The ``parameters`` dict is already JSON-schema-shaped and provider-agnostic.
    """
    name: str
    description: str
    parameters: dict

    def to_wire(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


# ---------------------------------------------------------------------------
# LLMAdapter ABC
# ---------------------------------------------------------------------------

class LLMAdapter(ABC):
    """Abstract interface that every model gateway must implement.

    No retry happens here; callers decide whether a failure is worth
    another attempt.
    """

    @abstractmethod
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
        """Send the full history and tool catalog, return the model's reply.

        Args:
            system_prompt: System instruction.
            messages: The complete ordered history (not just the delta).
            tools: Tool catalog, handlers excluded.
            max_tokens: Output token ceiling.
            extended_thinking: Enable extended reasoning with a fixed budget.
            model: Override the adapter's default model.

        Raises:
            AgentError: kind ``external_service`` on any transport or
                provider failure.
        """

    @abstractmethod
    async def generate(
        self,
        contents: str,
        *,
        system_prompt: str | None = None,
        json_schema: dict | None = None,
        max_output_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """One-shot generation (no history, no tools).

        With ``json_schema`` the model is forced to answer through a single
        structured-output tool; its arguments land in ``tool_calls[0].input``.
        """

    # -- Helpers shared by every adapter ---------------------------------------

    @staticmethod
    def extract_tool_calls(response: LLMResponse) -> list[ToolCall]:
        """Tool calls of ``response``; empty unless it stopped for tool use."""
        if response.stop_reason != "tool_use":
            return []
        return list(response.tool_calls)

    @staticmethod
    def extract_text(response: LLMResponse) -> str:
        """All text segments of ``response`` joined by newlines, in order."""
        if response.content:
            parts = [
                b.get("text", "") for b in response.content
                if b.get("type") == "text" and b.get("text")
            ]
            return "\n".join(parts)
        return response.text or ""

    @staticmethod
    def make_tool_result_message(
        tool_call_id: str, result: Any, *, is_error: bool = False
    ) -> dict:
        """Build a ``tool_result`` content block answering ``tool_call_id``."""
        content = result if isinstance(result, str) else json.dumps(result, default=str)
        block = {
            "type": "tool_result",
            "tool_use_id": tool_call_id,
            "content": content,
        }
        if is_error:
            block["is_error"] = True
        return block
