"""Materialize an analyzed job as a playlist in the destination catalog."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from engine.catalog import DestinationCatalog
from engine.errors import AnalysisIncompleteError, JobNotFoundError, TransferError
from engine.job_store import JobStore
from engine.models import JOB_COMPLETE
from engine.progress import ProgressBroadcaster

logger = logging.getLogger(__name__)

DEFAULT_PLAYLIST_DESCRIPTION = "Migrated from Spotify"

RESULT_SUCCESS = "success"
RESULT_ERROR = "error"
RESULT_SKIPPED = "skipped"


@dataclass(frozen=True)
class TrackTransferResult:
    track: str
    status: str
    video_id: str | None = None
    error: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"track": self.track, "status": self.status}
        if self.video_id:
            payload["video_id"] = self.video_id
        if self.error:
            payload["error"] = self.error
        if self.reason:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class TransferResult:
    playlist_id: str
    playlist_url: str | None
    success_count: int
    skip_count: int
    total: int
    results: list[TrackTransferResult] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for result in self.results if result.status == RESULT_ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "playlist_id": self.playlist_id,
            "playlist_url": self.playlist_url,
            "success_count": self.success_count,
            "skip_count": self.skip_count,
            "error_count": self.error_count,
            "total": self.total,
            "results": [result.to_dict() for result in self.results],
        }


class TransferPipeline:
    def __init__(
        self,
        job_store: JobStore,
        broadcaster: ProgressBroadcaster,
        catalog: DestinationCatalog,
        *,
        add_delay: float = 0.3,
        description: str = DEFAULT_PLAYLIST_DESCRIPTION,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.job_store = job_store
        self.broadcaster = broadcaster
        self.catalog = catalog
        self.add_delay = max(0.0, float(add_delay))
        self.description = description
        self._sleep = sleep

    async def run(self, job_id: str, session_id: str) -> TransferResult:
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != JOB_COMPLETE:
            raise AnalysisIncompleteError(job_id, job.status)

        publish = self.broadcaster.publish
        total = len(job.tracks)
        publish(session_id, {"type": "status", "message": "Creating YouTube playlist..."})
        try:
            playlist_id = await self.catalog.create_playlist(job.playlist.name, self.description)
        except Exception as exc:
            logger.exception("Failed to create destination playlist for job %s", job_id)
            message = str(exc) or "Migration failed"
            publish(session_id, {"type": "error", "message": message})
            raise TransferError(message) from exc

        playlist_url = self.catalog.playlist_url(playlist_id)
        publish(
            session_id,
            {"type": "playlist_created", "playlist_id": playlist_id, "playlist_url": playlist_url},
        )

        success_count = 0
        skip_count = 0
        results: list[TrackTransferResult] = []
        for index, track in enumerate(job.tracks):
            current = index + 1
            publish(
                session_id,
                {
                    "type": "processing",
                    "current": current,
                    "total": total,
                    "track": {"name": track.name, "artists": list(track.artists)},
                },
            )
            video_id = track.effective_id
            if not video_id:
                skip_count += 1
                results.append(TrackTransferResult(track=track.name, status=RESULT_SKIPPED, reason="No video ID"))
                publish(
                    session_id,
                    {"type": "track_skipped", "current": current, "total": total, "track": track.name},
                )
                continue

            try:
                await self.catalog.add_item(playlist_id, video_id)
            except Exception as exc:
                logger.warning("Failed to add %s (%s) to playlist %s: %s", track.name, video_id, playlist_id, exc)
                results.append(TrackTransferResult(track=track.name, status=RESULT_ERROR, error=str(exc)))
                publish(
                    session_id,
                    {
                        "type": "track_failed",
                        "current": current,
                        "total": total,
                        "track": track.name,
                        "error": str(exc),
                        "success": False,
                    },
                )
            else:
                success_count += 1
                results.append(TrackTransferResult(track=track.name, status=RESULT_SUCCESS, video_id=video_id))
                publish(
                    session_id,
                    {
                        "type": "track_added",
                        "current": current,
                        "total": total,
                        "track": track.name,
                        "success": True,
                    },
                )
            if self.add_delay > 0:
                await self._sleep(self.add_delay)

        result = TransferResult(
            playlist_id=playlist_id,
            playlist_url=playlist_url,
            success_count=success_count,
            skip_count=skip_count,
            total=total,
            results=results,
        )
        publish(
            session_id,
            {
                "type": "complete",
                "playlist_id": playlist_id,
                "playlist_url": playlist_url,
                "success_count": success_count,
                "skip_count": skip_count,
                "total": total,
            },
        )
        logger.info(
            "Transfer for job %s finished: %d added, %d skipped, %d failed",
            job_id,
            success_count,
            skip_count,
            result.error_count,
        )
        return result
