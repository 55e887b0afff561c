"""Content API tool handlers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from agent.errors import external_service_error, not_found, validation_error

if TYPE_CHECKING:
    from agent.tool_registry import ToolContext
    from content_api.wordpress import WordPressClient

logger = logging.getLogger("gutenberg_agent")


def _client(ctx: "ToolContext") -> "WordPressClient":
    if ctx.content is None:
        raise external_service_error("WordPress client is not configured", service="wordpress")
    return ctx.content


async def handle_discover_available_blocks(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).get_blocks_summary()


async def handle_get_page_summary(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).get_page_context(tool_args["post_id"])


async def handle_inspect_block_schema(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).get_block_schema(tool_args["block_name"])


async def handle_get_block_attributes_group(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).get_block_attributes_by_group(
        tool_args["block_name"], tool_args["group"]
    )


async def handle_get_theme_design_system(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).get_global_styles()


async def handle_get_patterns(ctx: "ToolContext", tool_args: dict) -> list[dict]:
    patterns = await _client(ctx).get_patterns()
    # Summary only; get_pattern_details returns the markup
    return [
        {
            "name": p.get("name"),
            "title": p.get("title"),
            "categories": p.get("categories") or [],
            "description": (p.get("description") or "")[:100],
        }
        for p in patterns
    ]


async def handle_get_pattern_details(ctx: "ToolContext", tool_args: dict) -> dict:
    name = tool_args["pattern_name"]
    patterns = await _client(ctx).get_patterns()
    for p in patterns:
        if p.get("name") == name:
            return {
                "name": p.get("name"),
                "title": p.get("title"),
                "content": p.get("content"),
                "categories": p.get("categories"),
                "description": p.get("description"),
            }
    raise not_found(f"Pattern not found: {name}", pattern=name)


async def handle_create_post(ctx: "ToolContext", tool_args: dict) -> dict:
    return await _client(ctx).create_post(tool_args)


async def handle_update_post_title(ctx: "ToolContext", tool_args: dict) -> dict:
    update = {k: v for k, v in tool_args.items() if k != "post_id"}
    if update.get("content"):
        raise validation_error(
            "update_post_title cannot change the content. Use the realtime tools "
            "(update_block_by_clientid, insert_block_realtime, remove_block_realtime, "
            "replace_block_realtime) to change blocks.",
            tool="update_post_title",
        )
    return await _client(ctx).update_post(tool_args["post_id"], update)


def handle_search_block_templates(ctx: "ToolContext", tool_args: dict) -> dict:
    """Look up JSON templates under ``<templates_dir>/<namespace>/``."""
    block_name = tool_args["block_name"]
    use_case = tool_args.get("use_case")
    namespace = block_name.split("/")[0]
    templates_dir = Path(ctx.templates_dir) if ctx.templates_dir else None
    namespace_dir = templates_dir / namespace if templates_dir else None

    if namespace_dir is None or not namespace_dir.is_dir():
        return {
            "found": False,
            "templates": [],
            "message": f"No templates found for namespace: {namespace}",
        }

    templates = []
    try:
        for path in sorted(namespace_dir.glob("*.json")):
            template = json.loads(path.read_text(encoding="utf-8"))
            if template.get("blockName") != block_name:
                continue
            if use_case and template.get("use_case") != use_case:
                continue
            templates.append({"id": path.stem, "file": path.name, **template})
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error searching block templates: {e}")
        return {"found": False, "templates": [], "error": str(e)}

    return {"found": bool(templates), "templates": templates, "count": len(templates)}
