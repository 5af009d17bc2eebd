"""Per-session push channel for pipeline progress events.

Delivery is best-effort and at-most-once: each session has at most one live
sink, and events published while nobody is subscribed are dropped. A client
that reconnects only sees events from that moment on. Each sink holds at
most ``max_pending`` undelivered events; on overflow the oldest is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

_CLOSED = object()
DEFAULT_MAX_PENDING = 1000


class ProgressSink:
    def __init__(self, session_id: str, *, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.session_id = session_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, int(max_pending)))
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: dict[str, Any]) -> bool:
        if self._closed:
            return False
        self._put(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._put(_CLOSED)

    def _put(self, item: Any) -> None:
        # A reader that falls behind loses the oldest events first.
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                logger.warning("Progress subscriber %s is lagging; dropped %d events", self.session_id, self.dropped)
        self._queue.put_nowait(item)

    def pending(self) -> list[dict[str, Any]]:
        """Drain queued events without waiting."""
        drained = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                break
            drained.append(item)
        return drained

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class ProgressBroadcaster:
    def __init__(self, *, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.max_pending = max_pending
        self._lock = threading.Lock()
        self._sinks: dict[str, ProgressSink] = {}

    def subscribe(self, session_id: str) -> ProgressSink:
        sink = ProgressSink(session_id, max_pending=self.max_pending)
        with self._lock:
            previous = self._sinks.get(session_id)
            self._sinks[session_id] = sink
        if previous is not None:
            previous.close()
            logger.debug("Replaced progress subscriber for session %s", session_id)
        return sink

    def unsubscribe(self, session_id: str, sink: ProgressSink | None = None) -> None:
        with self._lock:
            current = self._sinks.get(session_id)
            if current is None or (sink is not None and current is not sink):
                return
            del self._sinks[session_id]
        current.close()

    def publish(self, session_id: str, event: dict[str, Any]) -> bool:
        with self._lock:
            sink = self._sinks.get(session_id)
        if sink is None:
            return False
        return sink.push(event)

    def is_subscribed(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sinks

    def close_all(self) -> None:
        with self._lock:
            sinks = list(self._sinks.values())
            self._sinks.clear()
        for sink in sinks:
            sink.close()
