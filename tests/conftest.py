"""
Pytest configuration and fixtures
"""

import copy
from pathlib import Path

import pytest
import pytest_asyncio

from agent.conversation_store import ConversationStore
from agent.errors import not_found
from agent.llm.base import LLMAdapter, LLMResponse, ToolCall, UsageMetadata
from agent.pending_requests import PendingRequestBroker
from agent.tool_registry import ToolContext, build_tool_registry

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


# ---- Scripted responses ----

def text_response(text: str, input_tokens: int = 10, output_tokens: int = 5) -> LLMResponse:
    """A final ``end_turn`` answer."""
    return LLMResponse(
        stop_reason="end_turn",
        content=[{"type": "text", "text": text}],
        text=text,
        usage=UsageMetadata(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def tool_use_response(*calls: tuple, text: str = "") -> LLMResponse:
    """A ``tool_use`` response; each call is ``(id, name, input)``."""
    content = [{"type": "text", "text": text}] if text else []
    tool_calls = []
    for call_id, name, tool_input in calls:
        content.append({"type": "tool_use", "id": call_id, "name": name, "input": tool_input})
        tool_calls.append(ToolCall(id=call_id, name=name, input=tool_input))
    return LLMResponse(
        stop_reason="tool_use",
        content=content,
        text=text,
        tool_calls=tool_calls,
        usage=UsageMetadata(input_tokens=10, output_tokens=5),
    )


class FakeGateway(LLMAdapter):
    """Model gateway replaying a fixed script of responses.

    Every ``send_message`` call is recorded with a snapshot of the history
    and the tool names offered. When the script runs out, ``repeat_last``
    keeps returning the final response, otherwise a plain answer is returned.
    """

    def __init__(self, responses=None, *, generate_responses=None, repeat_last=False):
        self.responses = list(responses or [])
        self.generate_responses = list(generate_responses or [])
        self.repeat_last = repeat_last
        self.calls: list[dict] = []
        self.generate_calls: list[dict] = []
        self.error: Exception | None = None

    async def send_message(
        self,
        system_prompt,
        messages,
        tools=None,
        *,
        max_tokens=8192,
        extended_thinking=False,
        model=None,
    ):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": copy.deepcopy(messages),
                "tools": [t.name for t in tools or []],
                "max_tokens": max_tokens,
                "model": model,
            }
        )
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1 or (self.responses and not self.repeat_last):
            return self.responses.pop(0)
        if self.responses:
            return self.responses[0]
        return text_response("Done.")

    async def generate(
        self,
        contents,
        *,
        system_prompt=None,
        json_schema=None,
        max_output_tokens=None,
        model=None,
    ):
        self.generate_calls.append(
            {"contents": contents, "system_prompt": system_prompt, "json_schema": json_schema}
        )
        if self.generate_responses:
            return self.generate_responses.pop(0)
        return text_response("{}")


class FakeContentClient:
    """In-memory stand-in for ``WordPressClient``."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.patterns = [
            {
                "name": "theme/hero",
                "title": "Hero",
                "categories": ["featured"],
                "description": "A large hero section with a heading and a button. " * 4,
                "content": "<!-- wp:cover --><!-- /wp:cover -->",
            },
            {
                "name": "theme/pricing",
                "title": "Pricing",
                "categories": ["call-to-action"],
                "description": "Three pricing columns",
                "content": "<!-- wp:columns --><!-- /wp:columns -->",
            },
        ]

    async def get_blocks_summary(self):
        self.calls.append(("get_blocks_summary",))
        return {"total": 2, "blocks": ["core/heading", "core/paragraph"]}

    async def get_page_context(self, post_id):
        self.calls.append(("get_page_context", post_id))
        if post_id == 404:
            raise not_found(f"Post {post_id} not found")
        return {"id": post_id, "title": "Home", "blocks_count": 3}

    async def get_block_schema(self, block_name):
        self.calls.append(("get_block_schema", block_name))
        return {"name": block_name, "attributes": {"content": {"type": "string"}}}

    async def get_block_attributes_by_group(self, block_name, group):
        self.calls.append(("get_block_attributes_by_group", block_name, group))
        return {"group": group, "attributes": {}}

    async def get_global_styles(self):
        self.calls.append(("get_global_styles",))
        return {"color": {"palette": [{"slug": "primary", "color": "#123456"}]}}

    async def update_global_styles(self, styles):
        self.calls.append(("update_global_styles", styles))
        return {"success": True}

    async def get_patterns(self):
        self.calls.append(("get_patterns",))
        return self.patterns

    async def get_templates(self):
        self.calls.append(("get_templates",))
        return {"templates": [{"slug": "index"}], "template_parts": [{"slug": "header"}]}

    async def create_post(self, post_data):
        self.calls.append(("create_post", post_data))
        return {"id": 99, **post_data}

    async def update_post(self, post_id, post_data):
        self.calls.append(("update_post", post_id, post_data))
        return {"id": post_id, **post_data}

    async def get_system_info(self):
        self.calls.append(("get_system_info",))
        return {"site_name": "Test", "theme": "Twenty Twenty-Four", "theme_supports": {"wide": True}}


# ---- Fixtures ----

@pytest.fixture
def gateway() -> FakeGateway:
    """Returns a gateway with an empty script (answers 'Done.')."""
    return FakeGateway()


@pytest.fixture
def content() -> FakeContentClient:
    return FakeContentClient()


@pytest.fixture
def conversations() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def registry():
    """Registry with every tool."""
    return build_tool_registry()


@pytest_asyncio.fixture
async def broker():
    """Broker with a short default timeout; outstanding requests are rejected on teardown."""
    b = PendingRequestBroker(default_timeout_ms=200)
    yield b
    await b.destroy()


@pytest.fixture
def make_ctx(registry, content):
    """Factory for a ToolContext around a given gateway and broker."""

    def _make(gateway, broker, **overrides):
        kwargs = dict(
            gateway=gateway,
            registry=registry,
            broker=broker,
            content=content,
            templates_dir=TEMPLATES_DIR,
            editor_timeout_ms=200,
        )
        kwargs.update(overrides)
        return ToolContext(**kwargs)

    return _make
