"""Tool registry - binds tool schemas to their handlers and dispatches calls.

A handler is ``handler(ctx: ToolContext, tool_args: dict)``, sync or async,
returning either a plain value (wrapped as :class:`Immediate`), an explicit
:class:`Immediate`, or a :class:`Deferred` whose future is settled later by
the live editor through the pending-request broker.

Schemas live in :mod:`agent.tools`, handlers in :mod:`agent.tool_handlers`;
:func:`build_tool_registry` joins the two.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from .errors import ErrorKind, AgentError, validation_error, not_found
from .llm.base import FunctionSchema

if TYPE_CHECKING:
    from content_api.wordpress import WordPressClient
    from .llm.base import LLMAdapter
    from .pending_requests import PendingRequestBroker


# ---------------------------------------------------------------------------
# Tool outcomes
# ---------------------------------------------------------------------------

@dataclass
class Immediate:
    """A tool result available right away."""
    value: Any


@dataclass
class Deferred:
    """A command sent to the live editor plus the future of its reply.

    ``command`` is the payload forwarded to the editor
    (``{"command": "editor_action", "action": ..., "requestId": ...}``).
    """
    command: dict
    future: asyncio.Future


ToolOutcome = Union[Immediate, Deferred]


# ---------------------------------------------------------------------------
# Tool + context
# ---------------------------------------------------------------------------

ToolHandler = Callable[["ToolContext", dict], Any]


@dataclass
class ToolContext:
    """Everything a handler may reach for during one turn.

    The orchestrator builds one per process and copies it per turn to attach
    the streaming ``on_editor_command`` callback.
    """
    gateway: "LLMAdapter"
    registry: "ToolRegistry"
    broker: "PendingRequestBroker"
    content: "WordPressClient | None" = None
    templates_dir: Path | None = None
    on_editor_command: Callable[[dict], Any] | None = None
    editor_timeout_ms: int | None = None
    depth: int = 0


@dataclass
class Tool:
    name: str
    description: str
    input_schema: dict
    handler: ToolHandler

    def schema(self) -> FunctionSchema:
        return FunctionSchema(
            name=self.name,
            description=self.description,
            parameters=self.input_schema,
        )


def _check_required(tool: Tool, tool_args: dict) -> None:
    if not isinstance(tool_args, dict):
        raise validation_error(f"{tool.name}: input must be an object", tool=tool.name)
    required = tool.input_schema.get("required", [])
    missing = [k for k in required if tool_args.get(k) is None]
    if missing:
        raise validation_error(
            f"{tool.name}: missing required field(s): {', '.join(missing)}",
            tool=tool.name,
            missing=missing,
        )
    properties = tool.input_schema.get("properties", {})
    for key, prop in properties.items():
        allowed = prop.get("enum")
        if allowed and key in tool_args and tool_args[key] not in allowed:
            raise validation_error(
                f"{tool.name}: '{key}' must be one of {allowed}, got {tool_args[key]!r}",
                tool=tool.name,
                field=key,
            )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ToolRegistry:
    """Name → :class:`Tool` catalog. Stateless beyond the catalog itself."""

    def __init__(self, tools: Iterable[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    @classmethod
    def from_catalog(
        cls, schemas: Iterable[dict], handlers: dict[str, ToolHandler]
    ) -> "ToolRegistry":
        """Build a registry from schema dicts (``name``/``description``/``parameters``)."""
        registry = cls()
        for schema in schemas:
            name = schema["name"]
            if name not in handlers:
                raise KeyError(f"No handler registered for tool {name!r}")
            registry.register(
                Tool(
                    name=name,
                    description=schema["description"],
                    input_schema=schema["parameters"],
                    handler=handlers[name],
                )
            )
        return registry

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise AgentError(
                ErrorKind.CONFLICT, f"Tool already registered: {tool.name}", {"tool": tool.name}
            )
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def catalog(self, allowed: Iterable[str] | None = None) -> list[FunctionSchema]:
        """Provider-facing schemas, optionally limited to ``allowed`` names.

        Registration order is preserved; names in ``allowed`` that are not
        registered are ignored.
        """
        if allowed is None:
            return [t.schema() for t in self._tools.values()]
        wanted = set(allowed)
        return [t.schema() for t in self._tools.values() if t.name in wanted]

    def subset(self, allowed: Iterable[str]) -> "ToolRegistry":
        wanted = set(allowed)
        return ToolRegistry(t for t in self._tools.values() if t.name in wanted)

    async def dispatch(self, name: str, tool_args: dict, ctx: ToolContext) -> ToolOutcome:
        """Run the handler for ``name``.

        Raises:
            AgentError: ``not_found`` for an unknown tool, ``validation`` when
                required fields are missing. Handler exceptions propagate.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise not_found(f"Unknown tool: {name}", tool=name)
        _check_required(tool, tool_args)

        result = tool.handler(ctx, tool_args)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, (Immediate, Deferred)):
            return result
        return Immediate(result)


def build_tool_registry(names: Iterable[str] | None = None) -> ToolRegistry:
    """Registry holding every tool of :data:`agent.tools.TOOLS` (or ``names``)."""
    from .tool_handlers import TOOL_REGISTRY
    from .tools import get_tool_schemas

    return ToolRegistry.from_catalog(
        get_tool_schemas(list(names) if names is not None else None), TOOL_REGISTRY
    )
