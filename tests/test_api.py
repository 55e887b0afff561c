"""
Tests for the HTTP surface
"""

import json

import pytest
from fastapi.testclient import TestClient
import sse_starlette.sse as sse_module

from agent.conversation_store import ConversationStore
from agent.orchestrator import Orchestrator
from agent.pending_requests import PendingRequestBroker
from agent.tool_registry import build_tool_registry
from api import routes
from api.app import create_app
from api.streaming import SSEBridge, summarize_result
from tests.conftest import FakeContentClient, FakeGateway, text_response, tool_use_response


class RecordingBroker:
    """Broker stand-in that records editor replies."""

    def __init__(self, known=("req_known",)):
        self.known = set(known)
        self.resolved = {}
        self.rejected = {}
        self.pending_count = len(self.known)

    def resolve(self, request_id, data=None):
        if request_id not in self.known:
            return False
        self.known.discard(request_id)
        self.resolved[request_id] = data
        return True

    def reject(self, request_id, error):
        if request_id not in self.known:
            return False
        self.known.discard(request_id)
        self.rejected[request_id] = error
        return True


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    """sse-starlette caches its shutdown event on the first loop that used it."""
    app_status = getattr(sse_module, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield


@pytest.fixture
def server(monkeypatch):
    """App wired to a fake gateway; the lifespan is not run."""
    gateway = FakeGateway()
    conversations = ConversationStore()
    broker = RecordingBroker()
    orchestrator = Orchestrator(
        gateway,
        build_tool_registry(),
        PendingRequestBroker(),
        conversations,
        content=FakeContentClient(),
    )
    monkeypatch.setattr(routes, "orchestrator", orchestrator)
    monkeypatch.setattr(routes, "conversations", conversations)
    monkeypatch.setattr(routes, "broker", broker)
    monkeypatch.setattr(routes, "_start_time", 0.0)
    client = TestClient(create_app(), raise_server_exceptions=False)
    return client, gateway, conversations, broker


def _sse_events(body: str) -> list[dict]:
    events = []
    for chunk in body.replace("\r\n", "\n").split("\n\n"):
        data = [line[len("data:"):].strip() for line in chunk.splitlines() if line.startswith("data:")]
        if data:
            events.append(json.loads("\n".join(data)))
    return events


class TestHealthAndStats:
    """Health and stats endpoints."""

    def test_health(self, server):
        client, *_ = server
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert "timestamp" in body

    def test_stats(self, server):
        client, _, conversations, _ = server
        conversations.create()
        resp = client.get("/agent/stats")
        stats = resp.json()["stats"]
        assert stats["total_conversations"] == 1
        assert stats["pending_requests"] == 1


class TestProcess:
    """Blocking turns."""

    def test_process(self, server):
        client, gateway, _, _ = server
        gateway.responses = [text_response("Hello from the agent")]

        resp = client.post("/agent/process", json={"message": "Hi"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["result"]["response"] == "Hello from the agent"

    def test_empty_message_is_400(self, server):
        client, gateway, _, _ = server
        resp = client.post("/agent/process", json={"message": ""})
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert gateway.calls == []

    def test_unknown_conversation_is_404(self, server):
        client, *_ = server
        resp = client.post("/agent/process", json={"message": "Hi", "conversation_id": "missing"})
        assert resp.status_code == 404
        body = resp.json()
        assert body == {
            "success": False,
            "error": "Conversation missing not found",
            "kind": "not_found",
            "details": {"conversation_id": "missing"},
        }

    def test_gateway_failure_is_502(self, server):
        from agent.errors import external_service_error

        client, gateway, _, _ = server
        gateway.error = external_service_error("provider down")
        resp = client.post("/agent/process", json={"message": "Hi"})
        assert resp.status_code == 502
        assert resp.json()["error"] == "provider down"


class TestProcessStream:
    """Streaming turns over SSE."""

    def test_stream_events(self, server):
        client, gateway, conversations, _ = server
        gateway.responses = [
            tool_use_response(("toolu_1", "get_patterns", {})),
            text_response("Two patterns found"),
        ]

        resp = client.post("/agent/process-stream", json={"message": "List patterns"})

        assert resp.status_code == 200
        events = _sse_events(resp.text)
        types = [e["type"] for e in events]
        assert types == [
            "iteration_start",
            "tool_call",
            "tool_result",
            "iteration_start",
            "final_response",
        ]
        final = events[-1]
        assert final["response"] == "Two patterns found"
        assert conversations.exists(final["conversation_id"])
        assert events[2]["toolName"] == "get_patterns"
        assert events[2]["success"] is True

    def test_stream_unknown_conversation_is_404(self, server):
        client, *_ = server
        resp = client.post(
            "/agent/process-stream", json={"message": "Hi", "conversation_id": "missing"}
        )
        assert resp.status_code == 404

    def test_stream_failure_sends_error_event(self, server):
        from agent.errors import external_service_error

        client, gateway, _, _ = server
        gateway.error = external_service_error("provider down")

        resp = client.post("/agent/process-stream", json={"message": "Hi"})

        events = _sse_events(resp.text)
        errors = [e for e in events if e["type"] == "error"]
        assert len(errors) == 1
        assert errors[0]["message"] == "provider down"
        assert errors[0]["kind"] == "external_service"


class TestEditorResponse:
    """Replies from the live editor."""

    def test_resolve(self, server):
        client, _, _, broker = server
        resp = client.post(
            "/agent/editor-response",
            json={"requestId": "req_known", "success": True, "data": {"clientId": "abc"}},
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "resolved": True}
        assert broker.resolved == {"req_known": {"clientId": "abc"}}

    def test_reject(self, server):
        client, _, _, broker = server
        resp = client.post(
            "/agent/editor-response",
            json={"requestId": "req_known", "success": False, "error": "Block locked"},
        )
        assert resp.status_code == 200
        assert broker.rejected == {"req_known": "Block locked"}

    def test_unknown_request(self, server):
        client, *_ = server
        resp = client.post("/agent/editor-response", json={"requestId": "req_other"})
        assert resp.status_code == 404


class TestConversations:
    """Conversation admin endpoints."""

    def test_list_get_delete(self, server):
        client, _, conversations, _ = server
        cid = conversations.create({"created_by": "user"})
        conversations.add_message(cid, {"role": "user", "content": "hello"})

        listed = client.get("/agent/conversations").json()
        assert listed["count"] == 1
        assert listed["conversations"][0]["message_count"] == 1

        detail = client.get(f"/agent/conversations/{cid}").json()["conversation"]
        assert detail["history"] == [{"role": "user", "content": "hello"}]

        assert client.delete(f"/agent/conversations/{cid}").json() == {"success": True, "deleted": cid}
        assert client.get(f"/agent/conversations/{cid}").status_code == 404
        assert client.delete(f"/agent/conversations/{cid}").status_code == 404


class TestSSEBridge:
    """SSE bridge without HTTP."""

    @pytest.mark.asyncio
    async def test_single_error_event(self):
        bridge = SSEBridge()
        bridge.error(RuntimeError("first"))
        bridge.error(RuntimeError("second"))
        bridge.finish()

        events = [e async for e in bridge.events()]
        assert events == [{"type": "error", "message": "first"}]

    @pytest.mark.asyncio
    async def test_run_closes_stream(self):
        bridge = SSEBridge()

        async def turn():
            bridge.emit("iteration_start", iteration=1, maxIterations=2)
            raise ValueError("bad")

        await bridge.run(turn())
        events = [e async for e in bridge.events()]
        assert [e["type"] for e in events] == ["iteration_start", "error"]

    def test_summarize_result(self):
        assert summarize_result({"message": "Inserted   block"}) == "Inserted block"
        long = summarize_result({"data": "x" * 500}, limit=50)
        assert len(long) == 50
        assert long.endswith("...")
