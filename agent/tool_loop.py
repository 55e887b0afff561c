"""
Reusable tool-calling loop shared by the orchestrator and the sub-agents.

One iteration = one model call. When the model stops for ``tool_use`` the
assistant content is appended to the history, every requested call is
dispatched through the registry, and all results go back as a single user
message of ``tool_result`` blocks, one per ``tool_use`` id. Any other stop
reason ends the loop. The loop also ends at ``max_iterations`` even if the
model keeps asking for tools; the last response's text is still returned.

Tool failures never end the loop: they become ``is_error`` results the model
can react to. Gateway failures propagate to the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .errors import ErrorKind, AgentError, not_found
from .llm.base import LLMAdapter, LLMResponse, ToolCall, UsageMetadata
from .logging import log_error, log_tool_call, log_tool_result, tagged
from .tool_registry import Deferred, ToolContext, ToolRegistry

logger = logging.getLogger("gutenberg_agent")

NO_RESPONSE = "No response generated"


async def emit(callback: Callable | None, *args) -> None:
    """Invoke an optional callback, awaiting it if it is a coroutine function."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


@dataclass
class LoopCallbacks:
    """Optional progress hooks. Each may be a plain function or a coroutine."""
    on_iteration_start: Callable[[int, int], Any] | None = None
    on_tool_call: Callable[[str, dict], Any] | None = None
    on_tool_result: Callable[[str, bool, Any], Any] | None = None


@dataclass
class LoopResult:
    text: str
    iterations: int
    usage: UsageMetadata
    messages: list[dict]
    tools_executed: list[dict] = field(default_factory=list)
    stop_reason: str | None = None
    hit_iteration_limit: bool = False
    last_response: LLMResponse | None = None


def _succeeded(result: Any) -> bool:
    return not (isinstance(result, dict) and (result.get("success") is False or result.get("error") is True))


async def await_deferred(outcome: Deferred, ctx: ToolContext) -> dict:
    """Forward a deferred command to the live editor and wait for its reply.

    The command goes out before the wait starts, since the editor can only
    reply to a command it has received. When the reply never comes (timeout,
    rejection, broker teardown) the result is the original command with
    ``success: False`` so the caller can replay it by hand.
    """
    command = outcome.command
    await emit(ctx.on_editor_command, command)
    logger.debug(
        f"Editor command {command.get('action')} sent ({command.get('requestId')})",
        extra=tagged("editor_command"),
    )
    try:
        data = await outcome.future
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        err = AgentError.wrap(exc)
        logger.warning(f"Editor command {command.get('requestId')} failed: {err.message}")
        fallback = dict(command)
        fallback.update(
            success=False,
            timeout=err.kind == ErrorKind.TIMEOUT,
            error=err.message,
            message=f"The editor did not confirm '{command.get('action')}': {err.message}",
        )
        return fallback
    return {
        "action": command.get("action"),
        "requestId": command.get("requestId"),
        "success": True,
        "data": data,
    }


async def execute_tool_call(
    call: ToolCall,
    registry: ToolRegistry,
    ctx: ToolContext,
    *,
    allowed: set[str] | None = None,
    agent_name: str = "Agent",
    callbacks: LoopCallbacks | None = None,
) -> tuple[Any, bool]:
    """Run one tool call with per-call error containment.

    Returns ``(result, is_error)``. ``is_error`` is True only when the call
    raised; a handler returning ``success: False`` is a normal result.
    """
    callbacks = callbacks or LoopCallbacks()
    await emit(callbacks.on_tool_call, call.name, call.input)
    log_tool_call(agent_name, call.name, call.input)

    is_error = False
    try:
        if allowed is not None and call.name not in allowed:
            raise not_found(f"Tool {call.name} is not available to {agent_name}", tool=call.name)
        outcome = await registry.dispatch(call.name, dict(call.input), ctx)
        if isinstance(outcome, Deferred):
            result = await await_deferred(outcome, ctx)
        else:
            result = outcome.value
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        err = AgentError.wrap(exc, message=str(exc) or type(exc).__name__)
        if err.kind in (ErrorKind.VALIDATION, ErrorKind.NOT_FOUND):
            logger.warning(f"[{agent_name}] {call.name} rejected: {err.message}")
        else:
            log_error(f"[{agent_name}] Tool {call.name} failed", exc, {"input": call.input})
        result = {"error": True, "message": err.message}
        is_error = True

    success = not is_error and _succeeded(result)
    error_msg = ""
    if not success and isinstance(result, dict):
        error_msg = str(result.get("message") or result.get("error") or "")
    log_tool_result(agent_name, call.name, success, error_msg)
    await emit(callbacks.on_tool_result, call.name, success, result)
    return result, is_error


async def run_tool_loop(
    gateway: LLMAdapter,
    registry: ToolRegistry,
    ctx: ToolContext,
    *,
    system_prompt: str,
    messages: list[dict],
    max_iterations: int,
    max_tokens: int = 8192,
    allowed_tools: Iterable[str] | None = None,
    extended_thinking: bool = False,
    model: str | None = None,
    agent_name: str = "Agent",
    callbacks: LoopCallbacks | None = None,
) -> LoopResult:
    """Drive model calls and tool dispatch until the model stops or the ceiling hits.

    Args:
        gateway: Model gateway.
        registry: Tools the model may call.
        ctx: Handed to every handler.
        system_prompt: System instruction for every call.
        messages: History to extend in place; must end with the user turn.
        max_iterations: Hard ceiling on model calls.
        max_tokens: Output token ceiling per call.
        allowed_tools: If given, only these tools are offered and dispatchable.
        extended_thinking: Forwarded to the gateway.
        model: Overrides the gateway's default model.
        agent_name: Label for log messages.
        callbacks: Progress hooks.

    Returns:
        LoopResult with the final text, usage totals and the mutated history.
    """
    callbacks = callbacks or LoopCallbacks()
    catalog = registry.catalog(allowed_tools)
    allowed = {s.name for s in catalog}

    usage = UsageMetadata()
    tools_executed: list[dict] = []
    response: LLMResponse | None = None
    iterations = 0
    finished = False

    while iterations < max_iterations:
        iterations += 1
        await emit(callbacks.on_iteration_start, iterations, max_iterations)
        logger.debug(f"[{agent_name}] Iteration {iterations}/{max_iterations}")

        response = await gateway.send_message(
            system_prompt,
            messages,
            catalog,
            max_tokens=max_tokens,
            extended_thinking=extended_thinking,
            model=model,
        )
        usage.add(response.usage)

        tool_calls = gateway.extract_tool_calls(response)
        if not tool_calls:
            finished = True
            break

        messages.append({"role": "assistant", "content": response.content})

        # Every tool_use id gets exactly one tool_result in the next user message
        results: list[dict] = []
        for call in tool_calls:
            result, is_error = await execute_tool_call(
                call, registry, ctx, allowed=allowed, agent_name=agent_name, callbacks=callbacks
            )
            tools_executed.append({"tool": call.name, "input": call.input, "result": result})
            results.append(gateway.make_tool_result_message(call.id, result, is_error=is_error))

        logger.debug(f"[{agent_name}] Sending {len(results)} tool result(s) back...")
        messages.append({"role": "user", "content": results})

    if not finished:
        logger.warning(f"[{agent_name}] Stopped at iteration ceiling ({max_iterations})")

    text = gateway.extract_text(response) if response is not None else ""
    return LoopResult(
        text=text or NO_RESPONSE,
        iterations=iterations,
        usage=usage,
        messages=messages,
        tools_executed=tools_executed,
        stop_reason=response.stop_reason if response is not None else None,
        hit_iteration_limit=not finished,
        last_response=response,
    )
