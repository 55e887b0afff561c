"""Agent layer for LLM-driven block editing.

Lazy imports keep ``import agent.errors`` cheap and avoid pulling the
Anthropic client into modules that only need the data types.
"""


def __getattr__(name: str):
    if name == "Orchestrator":
        from .orchestrator import Orchestrator
        return Orchestrator
    if name in ("TOOLS", "get_tool_schemas"):
        from .tools import TOOLS, get_tool_schemas
        return TOOLS if name == "TOOLS" else get_tool_schemas
    if name == "get_system_prompt":
        from .prompts import get_system_prompt
        return get_system_prompt
    raise AttributeError(f"module 'agent' has no attribute {name!r}")
