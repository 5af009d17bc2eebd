"""Durable cache of destination-catalog search outcomes.

Entries are keyed on the normalized artist set plus the normalized title, so
``["B", "A"]`` and ``["a ", "b"]`` share an entry. Titles are only lowercased
and trimmed: ``"Song (Live)"`` and ``"Song - Live"`` stay distinct keys.

A stored ``None`` is a confirmed "no match" and is returned as ``None``;
a key that was never stored (or has expired) yields :data:`MISS`.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Callable, Iterable

from engine.models import Match

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60
DEFAULT_FLUSH_EVERY = 10
SNAPSHOT_VERSION = 1


class _Miss:
    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


def cache_key(artists: Iterable[str], title: str) -> str:
    normalized_artists = sorted(str(artist or "").strip().lower() for artist in artists or [])
    normalized_title = str(title or "").strip().lower()
    return f"{'|'.join(normalized_artists)}::{normalized_title}"


class SearchCache:
    def __init__(
        self,
        path: str | None,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        flush_every: int = DEFAULT_FLUSH_EVERY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.ttl_seconds = float(ttl_seconds)
        self.flush_every = max(1, int(flush_every))
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, Any]] = {}
        self._loaded = False
        self._pending_inserts = 0

    def _load_locked(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError):
            logger.exception("Failed to load search cache from %s", self.path)
            return
        entries = payload.get("entries") if isinstance(payload, dict) else None
        if isinstance(entries, dict):
            self._entries = {k: v for k, v in entries.items() if isinstance(v, dict)}
        logger.info("Loaded %d cached search results", len(self._entries))

    def _persist_locked(self) -> bool:
        if not self.path:
            return False
        payload = {"version": SNAPSHOT_VERSION, "entries": self._entries}
        tmp_path = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=True, separators=(",", ":"))
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception("Failed to save search cache to %s", self.path)
            return False
        self._pending_inserts = 0
        return True

    def _is_expired(self, entry: dict[str, Any], now: float) -> bool:
        try:
            ts = float(entry.get("ts"))
        except (TypeError, ValueError):
            return True
        return now - ts > self.ttl_seconds

    def lookup(self, artists: Iterable[str], title: str) -> Match | None | _Miss:
        key = cache_key(artists, title)
        with self._lock:
            self._load_locked()
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            if self._is_expired(entry, self._clock()):
                self._entries.pop(key, None)
                return MISS
            value = entry.get("value")
        if value is None:
            return None
        match = Match.from_dict(value)
        return match if match is not None else MISS

    def store(self, artists: Iterable[str], title: str, match: Match | None) -> None:
        key = cache_key(artists, title)
        value = match.to_dict() if match is not None else None
        with self._lock:
            self._load_locked()
            self._entries[key] = {"ts": self._clock(), "value": value}
            self._pending_inserts += 1
            if self._pending_inserts >= self.flush_every:
                self._persist_locked()

    def flush(self) -> bool:
        with self._lock:
            self._load_locked()
            return self._persist_locked()

    def sweep(self) -> int:
        """Drop every expired entry; flush when anything was removed."""
        with self._lock:
            self._load_locked()
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
            if expired:
                self._persist_locked()
        if expired:
            logger.info("Cleaned up %d expired search cache entries", len(expired))
        return len(expired)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            self._load_locked()
            return {"entries": len(self._entries), "path": self.path}

    def __len__(self) -> int:
        with self._lock:
            self._load_locked()
            return len(self._entries)
