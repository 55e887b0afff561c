"""Live editor tool handlers.

The editor runs in the user's browser, so these handlers never touch it
directly. Each one registers a pending request with the broker and returns a
:class:`Deferred` carrying the command; the tool loop forwards the command to
the stream and waits for ``POST /agent/editor-response`` to settle it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from agent.tool_registry import Deferred

if TYPE_CHECKING:
    from agent.tool_registry import ToolContext


def new_request_id() -> str:
    return f"req_{uuid4().hex}"


def editor_command(ctx: "ToolContext", action: str, fields: dict, message: str) -> Deferred:
    """Register a pending reply and build the command sent to the editor."""
    request_id = new_request_id()
    future = ctx.broker.create(request_id, ctx.editor_timeout_ms)
    command = {
        "command": "editor_action",
        "action": action,
        "requestId": request_id,
        **fields,
        "success": True,
        "message": message,
    }
    return Deferred(command=command, future=future)


def _pick(tool_args: dict, *keys: str) -> dict:
    return {k: tool_args[k] for k in keys if tool_args.get(k) is not None}


def handle_get_blocks_structure(ctx: "ToolContext", tool_args: dict) -> Deferred:
    return editor_command(ctx, "get_blocks_structure", {}, "Reading the editor block tree")


def handle_insert_block_realtime(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "block_name", "attributes", "inner_blocks", "position", "agent_id")
    return editor_command(
        ctx, "insert_block", fields, f"Inserting {tool_args['block_name']} block"
    )


def handle_update_block_by_clientid(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "client_id", "attributes")
    return editor_command(
        ctx, "update_block", fields, f"Updating block {tool_args['client_id']}"
    )


def handle_update_block_by_agent_id(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "agent_id", "attributes")
    return editor_command(
        ctx, "update_block_by_agent_id", fields, f"Updating block {tool_args['agent_id']}"
    )


def handle_remove_block_realtime(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "client_id")
    return editor_command(
        ctx, "remove_block", fields, f"Removing block {tool_args['client_id']}"
    )


def handle_replace_block_realtime(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "client_id", "block_name", "attributes", "inner_blocks")
    return editor_command(
        ctx,
        "replace_block",
        fields,
        f"Replacing block {tool_args['client_id']} with {tool_args['block_name']}",
    )


def handle_replace_block_by_agent_id(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "agent_id", "block_name", "attributes", "inner_blocks")
    return editor_command(
        ctx,
        "replace_block_by_agent_id",
        fields,
        f"Replacing block {tool_args['agent_id']} with {tool_args['block_name']}",
    )


def handle_insert_pattern(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "pattern_name", "position")
    return editor_command(
        ctx, "insert_pattern", fields, f"Inserting pattern {tool_args['pattern_name']}"
    )


def handle_swap_pattern(ctx: "ToolContext", tool_args: dict) -> Deferred:
    fields = _pick(tool_args, "client_id", "pattern_name")
    return editor_command(
        ctx,
        "swap_pattern",
        fields,
        f"Swapping block {tool_args['client_id']} for pattern {tool_args['pattern_name']}",
    )
