"""In-memory conversation store with idle eviction.

Each conversation holds an ordered message history plus free-form metadata.
Reads are tolerant: ``get_history`` on an unknown id returns ``[]``. Writes
are strict: appending to an unknown id raises a ``not_found`` error, since it
means the caller lost track of which conversation it is working on.

History handed out by the store is always a deep copy, and history handed in
is copied too, so a turn can mutate its snapshot freely and commit it with
``replace_history`` at the end.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import not_found, validation_error


logger = logging.getLogger("gutenberg_agent")

_ROLES = ("user", "assistant")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Conversation:
    id: str
    metadata: dict = field(default_factory=dict)
    history: list[dict] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def touch(self) -> None:
        self.updated_at = _now()

    def summary(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": copy.deepcopy(self.metadata),
            "message_count": len(self.history),
        }

    def to_dict(self) -> dict:
        data = self.summary()
        data["history"] = copy.deepcopy(self.history)
        return data


def _check_message(message: dict) -> dict:
    if not isinstance(message, dict) or message.get("role") not in _ROLES:
        raise validation_error("Message must be a dict with role 'user' or 'assistant'")
    if "content" not in message:
        raise validation_error("Message is missing 'content'")
    return copy.deepcopy(message)


class ConversationStore:
    """Process-lifetime conversation map with a background idle sweep.

    Args:
        max_age_hours: Conversations idle longer than this are deleted by the sweep.
        sweep_interval_seconds: Period of the background sweep task.
    """

    def __init__(self, max_age_hours: float = 24, sweep_interval_seconds: float = 3600):
        self._conversations: dict[str, Conversation] = {}
        self.max_age = timedelta(hours=max_age_hours)
        self.sweep_interval_seconds = sweep_interval_seconds
        self._cleanup_task: Optional[asyncio.Task] = None

    # ---- Lifecycle ----

    def create(self, metadata: dict | None = None) -> str:
        """Create an empty conversation and return its id."""
        conversation_id = str(uuid.uuid4())
        self._conversations[conversation_id] = Conversation(
            id=conversation_id, metadata=copy.deepcopy(metadata or {})
        )
        logger.debug(f"[Conversations] Created {conversation_id}")
        return conversation_id

    def exists(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def get(self, conversation_id: str) -> dict | None:
        """Snapshot of a conversation (metadata + history), or None."""
        conv = self._conversations.get(conversation_id)
        if conv is None:
            return None
        conv.touch()
        return conv.to_dict()

    def delete(self, conversation_id: str) -> bool:
        deleted = self._conversations.pop(conversation_id, None) is not None
        if deleted:
            logger.debug(f"[Conversations] Deleted {conversation_id}")
        return deleted

    def _require(self, conversation_id: str) -> Conversation:
        conv = self._conversations.get(conversation_id)
        if conv is None:
            raise not_found(
                f"Conversation {conversation_id} not found", conversation_id=conversation_id
            )
        return conv

    # ---- History ----

    def get_history(self, conversation_id: str) -> list[dict]:
        """Deep copy of the history; ``[]`` for an unknown id."""
        conv = self._conversations.get(conversation_id)
        if conv is None:
            return []
        conv.touch()
        return copy.deepcopy(conv.history)

    def add_message(self, conversation_id: str, message: dict) -> None:
        conv = self._require(conversation_id)
        conv.history.append(_check_message(message))
        conv.touch()

    def add_messages(self, conversation_id: str, messages: list[dict]) -> None:
        conv = self._require(conversation_id)
        checked = [_check_message(m) for m in messages]
        conv.history.extend(checked)
        conv.touch()

    def clear_history(self, conversation_id: str) -> None:
        """Empty the history; identity and metadata are kept."""
        conv = self._require(conversation_id)
        conv.history.clear()
        conv.touch()

    def replace_history(self, conversation_id: str, messages: list[dict]) -> None:
        """Commit a turn's history: clear, then append everything."""
        # Validate first so a bad message doesn't leave the history empty
        checked = [_check_message(m) for m in messages]
        self.clear_history(conversation_id)
        self._conversations[conversation_id].history.extend(checked)

    def update_metadata(self, conversation_id: str, metadata: dict) -> None:
        """Merge ``metadata`` into the conversation's metadata."""
        conv = self._require(conversation_id)
        conv.metadata.update(copy.deepcopy(metadata))
        conv.touch()

    # ---- Admin ----

    def list_conversations(self) -> list[dict]:
        return [c.summary() for c in self._conversations.values()]

    def stats(self) -> dict:
        total = len(self._conversations)
        messages = sum(len(c.history) for c in self._conversations.values())
        return {
            "total_conversations": total,
            "total_messages": messages,
            "average_messages_per_conversation": round(messages / total, 2) if total else 0,
        }

    def __len__(self) -> int:
        return len(self._conversations)

    # ---- Idle sweep ----

    def sweep_idle(self, now: datetime | None = None) -> int:
        """Delete conversations idle past ``max_age``. Returns the count."""
        now = now or _now()
        stale = [
            cid for cid, conv in self._conversations.items()
            if now - conv.updated_at > self.max_age
        ]
        for cid in stale:
            del self._conversations[cid]
        if stale:
            logger.info(f"[Conversations] Evicted {len(stale)} idle conversation(s)")
        return len(stale)

    async def start_cleanup_loop(self) -> None:
        """Start a background task that evicts idle conversations."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup_loop(self) -> None:
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep_idle()
