"""
Tests for the tool registry and catalogs
"""

import pytest

from agent.errors import AgentError, ErrorKind
from agent.tool_registry import Deferred, Immediate, Tool, ToolRegistry, build_tool_registry
from agent.tools import DELEGATE_TOOL, TOOLS, get_function_schemas, get_tool_schemas


def _echo(ctx, tool_args):
    return {"echo": tool_args}


async def _async_echo(ctx, tool_args):
    return Immediate({"async": tool_args})


def _tool(name, handler=_echo, required=()):
    return Tool(
        name=name,
        description=f"{name} tool",
        input_schema={
            "type": "object",
            "properties": {"mode": {"type": "string", "enum": ["a", "b"]}},
            "required": list(required),
        },
        handler=handler,
    )


class TestCatalog:
    """Provider-facing schemas."""

    def test_full_registry_covers_every_schema(self):
        registry = build_tool_registry()
        assert len(registry) == len(TOOLS)
        assert DELEGATE_TOOL in registry

    def test_catalog_wire_shape(self):
        registry = build_tool_registry(["get_patterns"])
        wire = registry.catalog()[0].to_wire()
        assert set(wire) == {"name", "description", "input_schema"}
        assert wire["name"] == "get_patterns"

    def test_catalog_filters_and_keeps_order(self):
        registry = ToolRegistry([_tool("a"), _tool("b"), _tool("c")])
        names = [s.name for s in registry.catalog(["c", "a", "unknown"])]
        assert names == ["a", "c"]

    def test_subset(self):
        registry = ToolRegistry([_tool("a"), _tool("b")])
        sub = registry.subset(["b"])
        assert sub.names() == ["b"]

    def test_duplicate_registration_conflicts(self):
        registry = ToolRegistry([_tool("a")])
        with pytest.raises(AgentError) as exc_info:
            registry.register(_tool("a"))
        assert exc_info.value.kind == ErrorKind.CONFLICT

    def test_missing_handler(self):
        with pytest.raises(KeyError):
            ToolRegistry.from_catalog(get_tool_schemas(["get_patterns"]), {})

    def test_function_schemas(self):
        schemas = get_function_schemas(["create_post"])
        assert schemas[0].name == "create_post"
        assert "title" in schemas[0].parameters["required"]


class TestDispatch:
    """Handler invocation."""

    @pytest.mark.asyncio
    async def test_sync_handler_wrapped_immediate(self):
        registry = ToolRegistry([_tool("a")])
        outcome = await registry.dispatch("a", {"x": 1}, ctx=None)
        assert isinstance(outcome, Immediate)
        assert outcome.value == {"echo": {"x": 1}}

    @pytest.mark.asyncio
    async def test_async_handler(self):
        registry = ToolRegistry([_tool("a", handler=_async_echo)])
        outcome = await registry.dispatch("a", {}, ctx=None)
        assert outcome.value == {"async": {}}

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        registry = ToolRegistry()
        with pytest.raises(AgentError) as exc_info:
            await registry.dispatch("nope", {}, ctx=None)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_missing_required_field(self):
        registry = ToolRegistry([_tool("a", required=("mode",))])
        with pytest.raises(AgentError) as exc_info:
            await registry.dispatch("a", {}, ctx=None)
        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert exc_info.value.details["missing"] == ["mode"]

    @pytest.mark.asyncio
    async def test_enum_violation(self):
        registry = ToolRegistry([_tool("a")])
        with pytest.raises(AgentError) as exc_info:
            await registry.dispatch("a", {"mode": "z"}, ctx=None)
        assert exc_info.value.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_editor_tool_is_deferred(self, gateway, broker, make_ctx, registry):
        """Test live editor tools return a Deferred registered with the broker."""
        ctx = make_ctx(gateway, broker)
        outcome = await registry.dispatch("get_blocks_structure", {}, ctx)

        assert isinstance(outcome, Deferred)
        assert outcome.command["command"] == "editor_action"
        assert broker.is_pending(outcome.command["requestId"])
