"""SSE bridge: orchestrator callbacks → async event stream."""

import asyncio
import json
from typing import Any, AsyncIterator

from agent.errors import AgentError
from agent.orchestrator import StreamCallbacks

RESULT_SUMMARY_CHARS = 200


def summarize_result(result: Any, limit: int = RESULT_SUMMARY_CHARS) -> str:
    """Short, single-line rendering of a tool result for the stream."""
    if isinstance(result, dict) and isinstance(result.get("message"), str):
        text = result["message"]
    elif isinstance(result, str):
        text = result
    else:
        text = json.dumps(result, default=str)
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


class SSEBridge:
    """Bridge between orchestrator callbacks and an SSE event stream.

    Usage:
        bridge = SSEBridge()
        task = asyncio.create_task(bridge.run(orchestrator.process_request_stream(
            message, options, bridge.callbacks())))
        # In async endpoint:
        async for event in bridge.events():
            yield event
    """

    def __init__(self):
        self._queue: asyncio.Queue[dict | None] = asyncio.Queue()
        self.error_sent = False

    def emit(self, event_type: str, **data) -> None:
        self._queue.put_nowait({"type": event_type, **data})

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_iteration_start=lambda i, n: self.emit(
                "iteration_start", iteration=i, maxIterations=n
            ),
            on_tool_call=lambda name, tool_input: self.emit(
                "tool_call", toolName=name, input=tool_input
            ),
            on_tool_result=lambda name, success, result: self.emit(
                "tool_result",
                toolName=name,
                success=success,
                resultSummary=summarize_result(result),
            ),
            on_editor_command=lambda command: self.emit("editor_command", **command),
            on_final_response=lambda text, usage, cid: self.emit(
                "final_response", response=text, usage=usage, conversation_id=cid
            ),
            on_error=self.error,
            on_plan=lambda plan: self.emit("plan", plan=plan, awaiting_approval=True),
        )

    def error(self, exc: BaseException | str) -> None:
        """Push a single error event; later calls are ignored."""
        if self.error_sent:
            return
        self.error_sent = True
        if isinstance(exc, AgentError):
            self.emit("error", message=exc.message, kind=exc.kind.value)
        else:
            self.emit("error", message=str(exc) or type(exc).__name__)

    def finish(self) -> None:
        """Signal the stream is complete."""
        self._queue.put_nowait(None)

    async def run(self, turn) -> None:
        """Await a turn coroutine, reporting failures on the stream, then close it."""
        try:
            await turn
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error(e)
        finally:
            self.finish()

    async def events(self) -> AsyncIterator[dict]:
        """Async generator yielding events until the stream ends."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
