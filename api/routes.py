"""All REST + SSE endpoints for the FastAPI backend."""

import asyncio
import json
import time
from datetime import datetime, timezone

import config
from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from agent.conversation_store import ConversationStore
from agent.errors import not_found
from agent.orchestrator import Orchestrator, TurnOptions
from agent.pending_requests import PendingRequestBroker

from .models import (
    ConversationDetail,
    ConversationSummary,
    EditorResponse,
    HealthStatus,
    ProcessRequest,
    ServerStats,
)
from .streaming import SSEBridge

router = APIRouter()

# These are injected by app.py lifespan
orchestrator: Orchestrator = None  # type: ignore[assignment]
conversations: ConversationStore = None  # type: ignore[assignment]
broker: PendingRequestBroker = None  # type: ignore[assignment]
_start_time: float = 0.0

# Keeps streaming turns alive after the client disconnects so history is still saved
_background_turns: set[asyncio.Task] = set()


# ---- Health ----


@router.get("/health")
async def health():
    return HealthStatus(
        status="ok",
        environment=config.APP_ENV,
        timestamp=datetime.now(timezone.utc).isoformat(),
    ).model_dump()


# ---- Agent turns ----


@router.post("/agent/process")
async def process(req: ProcessRequest):
    """Run one blocking turn and return the final answer."""
    result = await orchestrator.process_request(
        req.message, TurnOptions.from_dict(req.turn_options())
    )
    return {"success": True, "result": result.to_dict()}


@router.post("/agent/process-stream")
async def process_stream(req: ProcessRequest):
    """Run one turn, streaming progress as server-sent events.

    Errors known before the stream opens (unknown conversation) are plain
    HTTP errors; later failures arrive as an ``error`` event.
    """
    options = TurnOptions.from_dict(req.turn_options())
    if options.conversation_id and not conversations.exists(options.conversation_id):
        raise not_found(
            f"Conversation {options.conversation_id} not found",
            conversation_id=options.conversation_id,
        )

    bridge = SSEBridge()
    task = asyncio.create_task(
        bridge.run(orchestrator.process_request_stream(req.message, options, bridge.callbacks()))
    )
    _background_turns.add(task)
    task.add_done_callback(_background_turns.discard)

    async def event_generator():
        async for event in bridge.events():
            yield {"event": event["type"], "data": json.dumps(event, default=str)}

    return EventSourceResponse(event_generator())


@router.post("/agent/editor-response")
async def editor_response(req: EditorResponse):
    """Settle a pending live-editor command."""
    if req.success and not req.error:
        resolved = broker.resolve(req.request_id, req.data)
    else:
        resolved = broker.reject(req.request_id, req.error or "Editor reported a failure")
    if not resolved:
        raise not_found(
            f"No pending request found for {req.request_id}", request_id=req.request_id
        )
    return {"success": True, "resolved": True}


# ---- Conversations ----


@router.get("/agent/conversations")
async def list_conversations():
    items = [ConversationSummary(**c).model_dump() for c in conversations.list_conversations()]
    return {"success": True, "conversations": items, "count": len(items)}


@router.get("/agent/conversations/{conversation_id}")
async def get_conversation(conversation_id: str):
    conv = conversations.get(conversation_id)
    if conv is None:
        raise not_found(
            f"Conversation {conversation_id} not found", conversation_id=conversation_id
        )
    return {"success": True, "conversation": ConversationDetail(**conv).model_dump()}


@router.delete("/agent/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str):
    if not conversations.delete(conversation_id):
        raise not_found(
            f"Conversation {conversation_id} not found", conversation_id=conversation_id
        )
    return {"success": True, "deleted": conversation_id}


@router.get("/agent/stats")
async def stats():
    return {
        "success": True,
        "stats": ServerStats(
            **conversations.stats(),
            pending_requests=broker.pending_count,
            uptime_seconds=round(time.time() - _start_time, 1) if _start_time else 0.0,
        ).model_dump(),
    }
