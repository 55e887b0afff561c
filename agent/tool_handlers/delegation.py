"""Delegation tool handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from agent.agent_registry import get_role
from agent.errors import validation_error
from agent.sub_agent import SubAgent

if TYPE_CHECKING:
    from agent.tool_registry import ToolContext

logger = logging.getLogger("gutenberg_agent")


async def handle_delegate_to_subagent(ctx: "ToolContext", tool_args: dict) -> dict:
    if ctx.depth >= 1:
        raise validation_error(
            "Sub-agents cannot delegate to other sub-agents", depth=ctx.depth
        )
    role = get_role(tool_args["agent"])
    logger.info(f"[Router] Delegating to {role.display_name}")
    agent = SubAgent(role, ctx)
    return await agent.run(tool_args["task"], tool_args.get("context") or {})
