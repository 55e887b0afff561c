"""LLM abstraction layer - provider-agnostic interface for model calls.

Re-exports the public API so consumers can write:
    from agent.llm import LLMAdapter, AnthropicAdapter, LLMResponse, ...
"""

from .base import LLMAdapter, LLMResponse, ToolCall, UsageMetadata, FunctionSchema
from .anthropic_adapter import AnthropicAdapter
