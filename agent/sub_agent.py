"""
Sub-agent runner for delegated tasks.

A sub-agent is the orchestrator's tool loop with three things swapped out:
its role's system prompt, its role's tool list, and a shorter iteration
ceiling. The delegate tool runs one to completion and hands the summary back
to the orchestrator as that call's tool result.

Key concepts:
    - **Restricted catalog**: the model only ever sees the role's tools, and
      dispatch rejects anything else even if the shared registry has it.
    - **One level deep**: ``delegate_to_subagent`` is never in a sub-agent's
      catalog, and the tool context carries ``depth`` so the handler refuses
      nested delegation outright.
    - **Shared editor channel**: the sub-agent reuses the turn's tool
      context, so its live-editor commands reach the same stream and broker
      as the orchestrator's.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import time

import config
from .agent_registry import AgentRole, sub_agent_tools
from .errors import AgentError
from .logging import log_error
from .prompts import build_sub_agent_task
from .tool_loop import LoopCallbacks, run_tool_loop
from .tool_registry import ToolContext
from .turn_limits import get_limit

logger = logging.getLogger("gutenberg_agent")


class AgentState(enum.Enum):
    """Lifecycle state of a sub-agent.

    SLEEPING ──(run)──► ACTIVE ──(loop done)──► SLEEPING
                          └──(gateway failure)──► FAILED
    """
    SLEEPING = "sleeping"
    ACTIVE = "active"
    FAILED = "failed"


class SubAgent:
    """One specialised agent bound to a role and the turn's tool context.

    Args:
        role: Role definition (prompt + allowed tools).
        ctx: Tool context of the delegating turn.
        max_iterations: Loop ceiling; defaults to ``sub_agent.max_iterations``.
        max_tokens: Output token ceiling per model call.
        model: Model override for this agent.
        callbacks: Progress hooks forwarded to the loop.
    """

    def __init__(
        self,
        role: AgentRole,
        ctx: ToolContext,
        *,
        max_iterations: int | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        callbacks: LoopCallbacks | None = None,
    ):
        self.role = role
        self.ctx = dataclasses.replace(ctx, depth=ctx.depth + 1)
        self.max_iterations = max_iterations or get_limit("sub_agent.max_iterations")
        self.max_tokens = max_tokens or config.SUB_AGENT_MAX_TOKENS
        self.model = model or config.SUB_AGENT_MODEL
        self.callbacks = callbacks
        self.state = AgentState.SLEEPING
        self.allowed_tools = sub_agent_tools(role.key)

    def catalog(self):
        """Provider-facing schemas this agent is offered."""
        return self.ctx.registry.catalog(self.allowed_tools)

    async def run(self, task: str, context: dict | None = None) -> dict:
        """Run the task to completion and return the delegation result.

        Gateway failures are reported in the result (``success: False``)
        rather than raised, so the orchestrator's model can react to them.
        """
        self.state = AgentState.ACTIVE
        started = time.monotonic()
        logger.info(
            f"[{self.role.display_name}] Starting task: {task[:100]} "
            f"({len(self.allowed_tools)} tools)"
        )
        messages = [{"role": "user", "content": build_sub_agent_task(task, context)}]

        try:
            result = await run_tool_loop(
                self.ctx.gateway,
                self.ctx.registry,
                self.ctx,
                system_prompt=self.role.prompt,
                messages=messages,
                max_iterations=self.max_iterations,
                max_tokens=self.max_tokens,
                allowed_tools=self.allowed_tools,
                model=self.model,
                agent_name=self.role.display_name,
                callbacks=self.callbacks,
            )
        except AgentError as e:
            self.state = AgentState.FAILED
            log_error(f"[{self.role.display_name}] Task failed", e, {"task": task[:200]})
            return {
                "success": False,
                "agent": self.role.key,
                "agentName": self.role.display_name,
                "error": e.message,
                "message": f"{self.role.display_name} encountered an error: {e.message}",
            }

        self.state = AgentState.SLEEPING
        elapsed = time.monotonic() - started
        logger.info(
            f"[{self.role.display_name}] Completed in {result.iterations} iteration(s), "
            f"{len(result.tools_executed)} tool call(s), {elapsed:.1f}s"
        )
        return {
            "success": True,
            "agent": self.role.key,
            "agentName": self.role.display_name,
            "message": result.text,
            "iterations": result.iterations,
            "toolsExecuted": [t["tool"] for t in result.tools_executed],
            "usage": result.usage.to_dict(),
        }
