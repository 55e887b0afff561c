"""Pending-request broker - awaitable replies from the live editor.

The live editor runs in the user's browser and only talks back over a
separate HTTP callback, so a tool handler that sends it a command has no
reply to wait on. The broker hands out a future per correlation id and
settles it when ``resolve``/``reject`` is called with that id, when the
per-request timer fires, or when the periodic sweep finds it too old.

Entries are single-shot: the first settlement removes the entry and every
later ``resolve``/``reject`` for the same id returns False.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from .errors import (
    ErrorKind,
    AgentError,
    conflict,
    external_service_error,
    rate_limited,
    timeout_error,
)
from .turn_limits import get_limit

logger = logging.getLogger("gutenberg_agent")


@dataclass
class _PendingEntry:
    future: asyncio.Future
    timer: asyncio.TimerHandle
    created: float  # time.monotonic()
    timeout_ms: int


class PendingRequestBroker:
    """Correlation-id keyed registry of futures awaiting an editor reply.

    Args:
        default_timeout_ms: Timeout applied when ``create`` gets none.
        max_pending: Concurrent entry ceiling; beyond it ``create`` first
            sweeps stale entries, then refuses with a ``rate_limit`` error.
        max_age_ms: Entries older than this are rejected by the sweep.
        sweep_interval_ms: Period of the background sweep task.
    """

    def __init__(
        self,
        *,
        default_timeout_ms: int | None = None,
        max_pending: int | None = None,
        max_age_ms: int | None = None,
        sweep_interval_ms: int | None = None,
    ):
        self.default_timeout_ms = default_timeout_ms or get_limit("editor.reply_timeout_ms")
        self.max_pending = max_pending or get_limit("broker.max_pending")
        self.max_age_ms = max_age_ms or get_limit("broker.max_age_ms")
        self.sweep_interval_ms = sweep_interval_ms or get_limit("broker.sweep_interval_ms")
        self._pending: dict[str, _PendingEntry] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    # ---- Lifecycle of a single request ----

    def create(self, request_id: str, timeout_ms: int | None = None) -> asyncio.Future:
        """Register ``request_id`` and return the future of its reply.

        The future fails with a ``timeout`` error after ``timeout_ms``, or
        right away with a ``rate_limit`` error when the registry is full.

        Raises:
            AgentError: ``conflict`` if ``request_id`` is already pending.
        """
        if request_id in self._pending:
            raise conflict(f"Request {request_id} is already pending", request_id=request_id)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        if len(self._pending) >= self.max_pending:
            swept = self.sweep_stale()
            logger.warning(
                f"[Broker] Pending ceiling {self.max_pending} reached, swept {swept} stale request(s)"
            )
            if len(self._pending) >= self.max_pending:
                future.set_exception(
                    rate_limited(
                        f"Too many pending requests ({len(self._pending)})",
                        request_id=request_id,
                        max_pending=self.max_pending,
                    )
                )
                return future

        timeout_ms = timeout_ms or self.default_timeout_ms
        timer = loop.call_later(timeout_ms / 1000.0, self._expire, request_id)
        self._pending[request_id] = _PendingEntry(
            future=future, timer=timer, created=time.monotonic(), timeout_ms=timeout_ms
        )
        logger.debug(f"[Broker] Created pending request {request_id} (timeout {timeout_ms}ms)")
        return future

    def resolve(self, request_id: str, data: Any = None) -> bool:
        """Fulfil the request. False if the id is unknown or already settled."""
        entry = self._pending.pop(request_id, None)
        if entry is None:
            logger.warning(f"[Broker] No pending request found for {request_id}")
            return False
        entry.timer.cancel()
        if entry.future.done():
            return False
        entry.future.set_result(data)
        logger.debug(f"[Broker] Resolved pending request {request_id}")
        return True

    def reject(self, request_id: str, error: BaseException | str) -> bool:
        """Fail the request. False if the id is unknown or already settled."""
        entry = self._pending.pop(request_id, None)
        if entry is None:
            logger.warning(f"[Broker] No pending request found for {request_id}")
            return False
        entry.timer.cancel()
        if entry.future.done():
            return False
        if isinstance(error, str):
            error = external_service_error(error, request_id=request_id)
        entry.future.set_exception(AgentError.wrap(error))
        logger.debug(f"[Broker] Rejected pending request {request_id}: {error}")
        return True

    def _expire(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None or entry.future.done():
            return
        entry.future.set_exception(
            timeout_error(
                f"Request {request_id} timed out after {entry.timeout_ms}ms",
                request_id=request_id,
                timeout_ms=entry.timeout_ms,
            )
        )
        logger.warning(f"[Broker] Request {request_id} timed out after {entry.timeout_ms}ms")

    # ---- Observability ----

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    # ---- Sweep ----

    def sweep_stale(self) -> int:
        """Reject and drop entries older than ``max_age_ms``. Returns the count."""
        now = time.monotonic()
        stale = [
            rid for rid, entry in self._pending.items()
            if (now - entry.created) * 1000 > self.max_age_ms
        ]
        for rid in stale:
            entry = self._pending.pop(rid)
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(
                    AgentError(
                        ErrorKind.TIMEOUT,
                        f"Request {rid} expired after {self.max_age_ms}ms without a reply",
                        {"request_id": rid},
                    )
                )
        if stale:
            logger.debug(f"[Broker] Swept {len(stale)} stale request(s)")
        return len(stale)

    async def start_cleanup_loop(self) -> None:
        """Start a background task that sweeps stale requests."""
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
            await asyncio.sleep(self.sweep_interval_ms / 1000.0)
            self.sweep_stale()

    async def destroy(self) -> None:
        """Stop the sweep and reject every outstanding request."""
        await self.stop_cleanup_loop()
        pending, self._pending = self._pending, {}
        for rid, entry in pending.items():
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(
                    external_service_error(
                        "PendingRequestBroker destroyed", request_id=rid, reason="destroyed"
                    )
                )
        logger.debug(f"[Broker] Destroyed, rejected {len(pending)} pending request(s)")
