"""Sequential track matching for a single analysis job."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from engine.catalog import DestinationCatalog
from engine.errors import JobNotFoundError
from engine.job_store import JobStore
from engine.models import (
    JOB_ANALYZING,
    JOB_COMPLETE,
    JOB_ERROR,
    TRACK_FOUND,
    TRACK_NOT_FOUND,
    Match,
    TrackState,
)
from engine.progress import ProgressBroadcaster
from engine.search_cache import MISS, SearchCache

logger = logging.getLogger(__name__)


def _track_label(track: TrackState) -> dict[str, Any]:
    return {"name": track.name, "artists": list(track.artists)}


class MatchingPipeline:
    def __init__(
        self,
        job_store: JobStore,
        search_cache: SearchCache,
        broadcaster: ProgressBroadcaster,
        catalog: DestinationCatalog,
        *,
        rate_limit_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.job_store = job_store
        self.search_cache = search_cache
        self.broadcaster = broadcaster
        self.catalog = catalog
        self.rate_limit_delay = max(0.0, float(rate_limit_delay))
        self._sleep = sleep

    async def _find_match(self, track: TrackState) -> Match | None:
        cached = self.search_cache.lookup(track.artists, track.name)
        if cached is not MISS:
            logger.info("Cache hit: %s - %s", ", ".join(track.artists), track.name)
            return cached
        try:
            match = await self.catalog.search_match(list(track.artists), track.name)
        except Exception:
            logger.exception("Search failed for %s - %s", ", ".join(track.artists), track.name)
            return None
        self.search_cache.store(track.artists, track.name, match)
        logger.info(
            "API search: %s - %s -> %s",
            ", ".join(track.artists),
            track.name,
            "found" if match else "not found",
        )
        return match

    async def run(self, job_id: str) -> dict[str, int] | None:
        """Match every track of ``job_id``; return final stats or ``None`` on error."""
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        session_id = job.session_id
        total = len(job.tracks)
        self.job_store.set_status(job_id, JOB_ANALYZING)
        try:
            for index, track in enumerate(job.tracks):
                self.job_store.mark_searching(job_id, index)
                self.broadcaster.publish(
                    session_id,
                    {
                        "type": "analysis_progress",
                        "job_id": job_id,
                        "current": index + 1,
                        "total": total,
                        "track": _track_label(track),
                        "status": "searching",
                    },
                )

                match = await self._find_match(track)
                status = TRACK_FOUND if match else TRACK_NOT_FOUND
                self.job_store.record_match(job_id, index, match, status)
                self.broadcaster.publish(
                    session_id,
                    {
                        "type": "analysis_match",
                        "job_id": job_id,
                        "current": index + 1,
                        "total": total,
                        "track": _track_label(track),
                        "match": match.to_dict() if match else None,
                        "status": status,
                    },
                )

                if index < total - 1 and self.rate_limit_delay > 0:
                    await self._sleep(self.rate_limit_delay)
        except Exception as exc:
            logger.exception("Analysis failed for job %s", job_id)
            message = str(exc) or exc.__class__.__name__
            self.job_store.set_status(job_id, JOB_ERROR, message)
            self.broadcaster.publish(
                session_id,
                {"type": "analysis_error", "job_id": job_id, "message": message},
            )
            return None

        completed = self.job_store.set_status(job_id, JOB_COMPLETE)
        stats = completed.stats() if completed is not None else {}
        self.broadcaster.publish(
            session_id,
            {"type": "analysis_complete", "job_id": job_id, "stats": stats},
        )
        logger.info("Analysis complete for job %s: %s", job_id, stats)
        return stats
