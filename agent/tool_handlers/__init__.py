from __future__ import annotations
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from agent.tool_registry import ToolContext

ToolHandler = Callable[["ToolContext", dict], Any]

TOOL_REGISTRY: dict[str, ToolHandler] = {}

# ── Content API ──
from agent.tool_handlers.content import (
    handle_discover_available_blocks,
    handle_get_page_summary,
    handle_inspect_block_schema,
    handle_get_block_attributes_group,
    handle_get_theme_design_system,
    handle_get_patterns,
    handle_get_pattern_details,
    handle_create_post,
    handle_update_post_title,
    handle_search_block_templates,
)

# ── Site structure ──
from agent.tool_handlers.site import (
    handle_get_site_templates,
    handle_get_template_parts,
    handle_update_global_styles,
    handle_get_theme_info,
)

# ── Live editor ──
from agent.tool_handlers.editor import (
    handle_get_blocks_structure,
    handle_insert_block_realtime,
    handle_update_block_by_clientid,
    handle_update_block_by_agent_id,
    handle_remove_block_realtime,
    handle_replace_block_realtime,
    handle_replace_block_by_agent_id,
    handle_insert_pattern,
    handle_swap_pattern,
)

# ── Delegation ──
from agent.tool_handlers.delegation import handle_delegate_to_subagent

TOOL_REGISTRY.update({
    # Content API
    "discover_available_blocks": handle_discover_available_blocks,
    "get_page_summary": handle_get_page_summary,
    "inspect_block_schema": handle_inspect_block_schema,
    "get_block_attributes_group": handle_get_block_attributes_group,
    "get_theme_design_system": handle_get_theme_design_system,
    "get_patterns": handle_get_patterns,
    "get_pattern_details": handle_get_pattern_details,
    "create_post": handle_create_post,
    "update_post_title": handle_update_post_title,
    "search_block_templates": handle_search_block_templates,
    # Site structure
    "get_site_templates": handle_get_site_templates,
    "get_template_parts": handle_get_template_parts,
    "update_global_styles": handle_update_global_styles,
    "get_theme_info": handle_get_theme_info,
    # Live editor
    "get_blocks_structure": handle_get_blocks_structure,
    "insert_block_realtime": handle_insert_block_realtime,
    "update_block_by_clientid": handle_update_block_by_clientid,
    "update_block_by_agent_id": handle_update_block_by_agent_id,
    "remove_block_realtime": handle_remove_block_realtime,
    "replace_block_realtime": handle_replace_block_realtime,
    "replace_block_by_agent_id": handle_replace_block_by_agent_id,
    "insert_pattern": handle_insert_pattern,
    "swap_pattern": handle_swap_pattern,
    # Delegation
    "delegate_to_subagent": handle_delegate_to_subagent,
})
