"""
Tests for the conversation store
"""

from datetime import timedelta

import pytest

from agent.conversation_store import ConversationStore
from agent.errors import AgentError, ErrorKind


class TestReadWriteAsymmetry:
    """Reads tolerate unknown ids, writes do not."""

    def test_unknown_id(self):
        """Test get_history returns [] while add_message raises not_found."""
        store = ConversationStore()

        assert store.get_history("missing") == []
        with pytest.raises(AgentError) as exc_info:
            store.add_message("missing", {"role": "user", "content": "hi"})
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_get_unknown_returns_none(self):
        store = ConversationStore()
        assert store.get("missing") is None
        assert store.delete("missing") is False


class TestHistory:
    """History checkout and commit."""

    def test_write_back_round_trip(self):
        """Test n=2 seeded messages plus k=3 appended ones come back as 5 in order."""
        store = ConversationStore()
        cid = store.create()
        seeded = [
            {"role": "user", "content": "Add a heading"},
            {"role": "assistant", "content": "Done."},
        ]
        store.add_messages(cid, seeded)

        history = store.get_history(cid)
        history.extend(
            [
                {"role": "user", "content": "Now a paragraph"},
                {"role": "assistant", "content": [{"type": "tool_use", "id": "t1", "name": "x", "input": {}}]},
                {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "{}"}]},
            ]
        )
        store.replace_history(cid, history)

        final = store.get_history(cid)
        assert len(final) == 5
        assert final[:2] == seeded
        assert final == history

    def test_history_is_a_copy(self):
        """Test mutating a checked-out history does not touch the store."""
        store = ConversationStore()
        cid = store.create()
        store.add_message(cid, {"role": "user", "content": "hello"})

        history = store.get_history(cid)
        history.append({"role": "assistant", "content": "mutated"})
        history[0]["content"] = "changed"

        assert store.get_history(cid) == [{"role": "user", "content": "hello"}]

    def test_invalid_message_rejected(self):
        """Test a bad role is a validation error and leaves the history intact."""
        store = ConversationStore()
        cid = store.create()
        store.add_message(cid, {"role": "user", "content": "keep me"})

        with pytest.raises(AgentError) as exc_info:
            store.replace_history(cid, [{"role": "system", "content": "nope"}])
        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert len(store.get_history(cid)) == 1

    def test_clear_keeps_metadata(self):
        store = ConversationStore()
        cid = store.create({"created_by": "user"})
        store.add_message(cid, {"role": "user", "content": "hello"})

        store.clear_history(cid)

        conv = store.get(cid)
        assert conv["history"] == []
        assert conv["metadata"] == {"created_by": "user"}


class TestAdmin:
    """Listing, stats and eviction."""

    def test_stats(self):
        store = ConversationStore()
        a = store.create()
        store.create()
        store.add_messages(a, [{"role": "user", "content": "1"}, {"role": "assistant", "content": "2"}])

        stats = store.stats()
        assert stats["total_conversations"] == 2
        assert stats["total_messages"] == 2
        assert stats["average_messages_per_conversation"] == 1.0
        summaries = {c["id"]: c for c in store.list_conversations()}
        assert len(summaries) == 2
        assert summaries[a]["message_count"] == 2

    def test_sweep_idle(self):
        """Test conversations idle past max_age are evicted."""
        store = ConversationStore(max_age_hours=1)
        old = store.create()
        fresh = store.create()
        store._conversations[old].updated_at -= timedelta(hours=2)

        assert store.sweep_idle() == 1
        assert not store.exists(old)
        assert store.exists(fresh)

    @pytest.mark.asyncio
    async def test_cleanup_loop_start_stop(self):
        store = ConversationStore(sweep_interval_seconds=3600)
        await store.start_cleanup_loop()
        assert store._cleanup_task is not None
        await store.stop_cleanup_loop()
        assert store._cleanup_task is None
