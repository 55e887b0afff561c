"""Site structure (full site editing) tool handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from agent.tool_handlers.content import _client

if TYPE_CHECKING:
    from agent.tool_registry import ToolContext


async def handle_get_site_templates(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).get_templates()


async def handle_get_template_parts(ctx: "ToolContext", tool_args: dict) -> dict:
    # The templates endpoint lists template parts alongside templates
    return await _client(ctx).get_templates()


async def handle_update_global_styles(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).update_global_styles(tool_args["styles"])


async def handle_get_theme_info(ctx: "ToolContext", tool_args: dict) -> dict:
    info = await _client(ctx).get_system_info()
    return {
        "theme": info.get("theme") or "Unknown",
        "theme_supports": info.get("theme_supports") or {},
    }
