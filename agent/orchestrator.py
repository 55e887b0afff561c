"""
Orchestrator - one conversation turn from user message to final answer.

A turn checks out the conversation history, injects the editor document
context once per document, optionally stops to propose a plan, then drives
the shared tool loop and writes the whole history back. Both entry points
share the same turn; they differ only in whether a conversation is created
when none is given and in the callbacks the caller passes.

    process_request         blocking; stateless unless a conversation_id is given
    process_request_stream  streaming; always bound to a conversation
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import config
from .conversation_store import ConversationStore
from .errors import AgentError, ErrorKind, external_service_error, not_found, validation_error
from .llm.base import LLMAdapter, UsageMetadata
from .logging import set_conversation_id
from .pending_requests import PendingRequestBroker
from .planner import KeywordPlanPolicy, PlanPolicy, format_plan_for_display, generate_plan
from .prompts import build_document_context, get_system_prompt, has_document_context
from .tasks import TaskPlan
from .tool_loop import LoopCallbacks, await_deferred, emit, run_tool_loop
from .tool_registry import Deferred, ToolContext, ToolRegistry
from .turn_limits import get_limit

if TYPE_CHECKING:
    from content_api.wordpress import WordPressClient

logger = logging.getLogger("gutenberg_agent")


@dataclass
class StreamCallbacks:
    """Progress hooks of a turn. Each may be a plain function or a coroutine."""
    on_iteration_start: Callable[[int, int], Any] | None = None
    on_tool_call: Callable[[str, dict], Any] | None = None
    on_tool_result: Callable[[str, bool, Any], Any] | None = None
    on_editor_command: Callable[[dict], Any] | None = None
    on_final_response: Callable[[str, dict, str | None], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None
    on_plan: Callable[[dict], Any] | None = None


@dataclass
class TurnOptions:
    conversation_id: str | None = None
    wordpress_context: dict | None = None
    max_iterations: int | None = None
    max_tokens: int | None = None
    allowed_tools: list[str] | None = None
    extended_thinking: bool = False
    plan_mode: bool | None = None
    plan_approved: bool = False
    plan: dict | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "TurnOptions":
        """Build options from a request payload; camelCase keys are accepted too."""
        data = data or {}

        def pick(snake: str, camel: str | None = None):
            if data.get(snake) is not None:
                return data[snake]
            return data.get(camel) if camel else None

        return cls(
            conversation_id=pick("conversation_id", "conversationId"),
            wordpress_context=pick("wordpress_context", "wordpressContext"),
            max_iterations=pick("max_iterations", "maxIterations"),
            max_tokens=pick("max_tokens", "maxTokens"),
            allowed_tools=pick("allowed_tools", "allowedTools"),
            extended_thinking=bool(pick("extended_thinking", "extendedThinking")),
            plan_mode=pick("plan_mode", "planMode"),
            plan_approved=bool(pick("plan_approved", "planApproved")),
            plan=pick("plan"),
        )


@dataclass
class TurnResult:
    response: str
    iterations: int
    usage: UsageMetadata
    conversation_id: str | None = None
    tools_executed: list[dict] = field(default_factory=list)
    hit_iteration_limit: bool = False
    plan: dict | None = None
    awaiting_approval: bool = False

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "response": self.response,
            "iterations": self.iterations,
            "usage": self.usage.to_dict(),
        }
        if self.conversation_id:
            data["conversation_id"] = self.conversation_id
        if self.plan is not None:
            data["plan"] = self.plan
            data["awaiting_approval"] = self.awaiting_approval
        return data


class Orchestrator:
    """Main agent. Owns no conversation state of its own; every turn checks
    history out of the store and commits it back.

    Args:
        gateway: Model gateway.
        registry: Full tool registry.
        broker: Pending-request broker for live editor replies.
        conversations: Conversation store.
        content: WordPress client handed to content tools.
        templates_dir: Root of the block template JSON files.
        plan_policy: Decides which requests get a plan first.
        model: Model override for the orchestrator.
        max_tokens: Default output token ceiling per model call.
    """

    def __init__(
        self,
        gateway: LLMAdapter,
        registry: ToolRegistry,
        broker: PendingRequestBroker,
        conversations: ConversationStore,
        *,
        content: "WordPressClient | None" = None,
        templates_dir: Path | None = None,
        plan_policy: PlanPolicy | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.broker = broker
        self.conversations = conversations
        self.plan_policy = plan_policy or KeywordPlanPolicy()
        self.model = model
        self.max_tokens = max_tokens or config.MAX_TOKENS
        self.ctx = ToolContext(
            gateway=gateway,
            registry=registry,
            broker=broker,
            content=content,
            templates_dir=templates_dir,
            editor_timeout_ms=get_limit("editor.reply_timeout_ms"),
        )

    # ---- Entry points ----

    async def process_request(
        self,
        message: str,
        options: TurnOptions | dict | None = None,
        callbacks: StreamCallbacks | None = None,
    ) -> TurnResult:
        """Run one blocking turn."""
        return await self._run_turn(message, _coerce(options), callbacks, create_conversation=False)

    async def process_request_stream(
        self,
        message: str,
        options: TurnOptions | dict | None = None,
        callbacks: StreamCallbacks | None = None,
    ) -> TurnResult:
        """Run one turn reporting progress through ``callbacks``.

        A new conversation is created when ``options`` carries no id; its id
        comes back in the result and in ``on_final_response``.
        """
        return await self._run_turn(message, _coerce(options), callbacks, create_conversation=True)

    # ---- Turn ----

    async def _run_turn(
        self,
        message: str,
        options: TurnOptions,
        callbacks: StreamCallbacks | None,
        *,
        create_conversation: bool,
    ) -> TurnResult:
        callbacks = callbacks or StreamCallbacks()
        if not isinstance(message, str) or not message.strip():
            raise validation_error("Message is required and must be a non-empty string")

        conversation_id = options.conversation_id
        if conversation_id and not self.conversations.exists(conversation_id):
            raise not_found(
                f"Conversation {conversation_id} not found", conversation_id=conversation_id
            )

        try:
            if not conversation_id and create_conversation:
                conversation_id = self.conversations.create(
                    {"wordpress_context": options.wordpress_context, "created_by": "user"}
                )
                logger.info(f"New conversation created: {conversation_id}")
            set_conversation_id(conversation_id)
            logger.info(
                f"Processing request ({'new' if not options.conversation_id else conversation_id}): "
                f"{message[:100]}"
            )

            history = self.conversations.get_history(conversation_id) if conversation_id else []
            logger.debug(f"Conversation history loaded: {len(history)} message(s)")

            if self._should_plan(message, options):
                return await self._propose_plan(message, conversation_id, callbacks)

            self._inject_context(history, options)
            history.append({"role": "user", "content": message})

            ctx = dataclasses.replace(self.ctx, on_editor_command=callbacks.on_editor_command)
            result = await run_tool_loop(
                self.gateway,
                self.registry,
                ctx,
                system_prompt=get_system_prompt(),
                messages=history,
                max_iterations=options.max_iterations or get_limit("orchestrator.max_iterations"),
                max_tokens=options.max_tokens or self.max_tokens,
                allowed_tools=options.allowed_tools,
                extended_thinking=options.extended_thinking,
                model=self.model,
                agent_name="Orchestrator",
                callbacks=LoopCallbacks(
                    on_iteration_start=callbacks.on_iteration_start,
                    on_tool_call=callbacks.on_tool_call,
                    on_tool_result=callbacks.on_tool_result,
                ),
            )

            # Final assistant reply as text only; an unanswered tool_use must not be saved
            final = result.last_response
            if final is not None and not result.hit_iteration_limit:
                content = [
                    b for b in final.content
                    if b.get("type") == "text" and b.get("text")
                ]
                if content:
                    history.append({"role": "assistant", "content": content})

            if conversation_id:
                self.conversations.replace_history(conversation_id, history)
                logger.debug(
                    f"Conversation history saved: {len(history)} message(s), "
                    f"{result.iterations} iteration(s)"
                )

            turn = TurnResult(
                response=result.text,
                iterations=result.iterations,
                usage=result.usage,
                conversation_id=conversation_id,
                tools_executed=result.tools_executed,
                hit_iteration_limit=result.hit_iteration_limit,
            )
            await emit(callbacks.on_final_response, turn.response, turn.usage.to_dict(), conversation_id)
            return turn
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error processing request: {e}")
            await emit(callbacks.on_error, e)
            raise
        finally:
            set_conversation_id(None)

    def _inject_context(self, history: list[dict], options: TurnOptions) -> None:
        wp = options.wordpress_context
        context_message = build_document_context(wp)
        if context_message and not has_document_context(history, wp["current_post_id"]):
            history.append({"role": "user", "content": context_message})
            logger.info(
                f"WordPress context injected: post {wp['current_post_id']} "
                f"({wp.get('post_title') or 'untitled'})"
            )
        if options.plan_approved and options.plan:
            plan = TaskPlan.from_dict(options.plan)
            history.append({"role": "user", "content": plan.to_prompt()})
            logger.info(f"Approved plan {plan.id[:8]} injected ({len(plan.tasks)} step(s))")

    def _should_plan(self, message: str, options: TurnOptions) -> bool:
        plan_mode = config.PLAN_MODE if options.plan_mode is None else options.plan_mode
        if not plan_mode or options.plan_approved:
            return False
        return self.plan_policy.needs_plan(message)

    async def _propose_plan(
        self, message: str, conversation_id: str | None, callbacks: StreamCallbacks
    ) -> TurnResult:
        plan = await generate_plan(self.gateway, message, model=self.model)
        plan_dict = plan.to_dict()
        await emit(callbacks.on_plan, plan_dict)
        return TurnResult(
            response=format_plan_for_display(plan),
            iterations=0,
            usage=UsageMetadata(),
            conversation_id=conversation_id,
            plan=plan_dict,
            awaiting_approval=True,
        )

    # ---- Single tool calls ----

    async def execute_tool(
        self, tool_name: str, tool_input: dict, ctx: ToolContext | None = None
    ) -> Any:
        """Dispatch one tool outside the loop; deferred outcomes are awaited."""
        ctx = ctx or self.ctx
        outcome = await self.registry.dispatch(tool_name, dict(tool_input), ctx)
        if isinstance(outcome, Deferred):
            return await await_deferred(outcome, ctx)
        return outcome.value

    async def validate_and_retry(
        self,
        tool_name: str,
        tool_input: dict,
        max_retries: int | None = None,
        *,
        backoff_ms: int | None = None,
    ) -> Any:
        """Run a tool, retrying failures with exponential backoff.

        Validation and not-found errors are raised on the first attempt.

        Raises:
            AgentError: ``external_service`` once every attempt failed.
        """
        attempts = max_retries or get_limit("tool_retry.max_attempts")
        backoff_ms = get_limit("tool_retry.backoff_ms") if backoff_ms is None else backoff_ms
        last_error: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                logger.info(f"Tool {tool_name} - attempt {attempt}/{attempts}")
                return await self.execute_tool(tool_name, tool_input)
            except AgentError as e:
                if e.kind in (ErrorKind.VALIDATION, ErrorKind.NOT_FOUND):
                    raise
                last_error = e
            except Exception as e:
                last_error = e
            logger.warning(f"Tool {tool_name} failed, attempt {attempt}/{attempts}: {last_error}")
            if attempt < attempts:
                await asyncio.sleep(backoff_ms * 2 ** (attempt - 1) / 1000.0)

        raise external_service_error(
            f"Tool {tool_name} failed after {attempts} attempts: {last_error}",
            tool=tool_name,
            attempts=attempts,
        )


def _coerce(options: TurnOptions | dict | None) -> TurnOptions:
    if isinstance(options, TurnOptions):
        return options
    return TurnOptions.from_dict(options)
