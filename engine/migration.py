"""Job lifecycle operations exposed to the HTTP layer."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from config.settings import Settings
from engine.catalog import DestinationCatalog
from engine.errors import AnalysisIncompleteError, JobBusyError, JobNotFoundError, ValidationError
from engine.job_store import JobStore
from engine.matching import MatchingPipeline
from engine.models import JOB_COMPLETE, Job
from engine.progress import ProgressBroadcaster
from engine.search_cache import SearchCache
from engine.transfer import TransferPipeline, TransferResult
from youtube.urls import extract_video_id

logger = logging.getLogger(__name__)


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=exc)


class MigrationService:
    """Owns the stores and pipelines for one process.

    At most one run (analysis or transfer) is active per job; different jobs
    run concurrently on the event loop.
    """

    def __init__(
        self,
        job_store: JobStore,
        search_cache: SearchCache,
        broadcaster: ProgressBroadcaster,
        catalog: DestinationCatalog,
        settings: Settings,
        *,
        sleep=asyncio.sleep,
    ) -> None:
        self.job_store = job_store
        self.search_cache = search_cache
        self.broadcaster = broadcaster
        self.catalog = catalog
        self.settings = settings
        self.matching = MatchingPipeline(
            job_store,
            search_cache,
            broadcaster,
            catalog,
            rate_limit_delay=settings.rate_limit_delay,
            sleep=sleep,
        )
        self.transfer = TransferPipeline(
            job_store,
            broadcaster,
            catalog,
            add_delay=settings.transfer_add_delay,
            sleep=sleep,
        )
        self._active: set[str] = set()
        self._tasks: dict[str, asyncio.Task] = {}

    def create_job(self, session_id: str, playlist: dict[str, Any] | None, tracks: list[Any] | None) -> Job:
        if not session_id:
            raise ValidationError("Session ID required")
        if not tracks or not isinstance(tracks, list):
            raise ValidationError("No tracks provided")
        return self.job_store.create(session_id, playlist or {}, tracks)

    def get_job(self, job_id: str) -> Job:
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, session_id: str) -> list[Job]:
        return self.job_store.list_for_session(session_id)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._active

    def _claim(self, job_id: str) -> None:
        if job_id in self._active:
            raise JobBusyError(job_id)
        self._active.add(job_id)

    def _release(self, job_id: str) -> None:
        self._active.discard(job_id)
        self._tasks.pop(job_id, None)

    async def analyze(self, job_id: str) -> dict[str, int] | None:
        self._claim(job_id)
        try:
            return await self.matching.run(job_id)
        finally:
            self._release(job_id)

    def start_analysis(self, job_id: str) -> asyncio.Task:
        """Schedule matching for ``job_id`` on the running loop."""
        self.get_job(job_id)
        self._claim(job_id)

        async def _runner():
            try:
                return await self.matching.run(job_id)
            finally:
                self._release(job_id)

        task = asyncio.get_running_loop().create_task(_runner(), name=f"analysis-{job_id}")
        task.add_done_callback(_log_task_failure)
        self._tasks[job_id] = task
        return task

    def set_manual(self, job_id: str, track_index: int, raw_video: str | None) -> str:
        video_id = extract_video_id(raw_video)
        if not video_id:
            raise ValidationError("Video ID required")
        if not self.job_store.set_manual_override(job_id, int(track_index), video_id):
            raise JobNotFoundError(job_id)
        logger.info("Manual override for job %s track %s -> %s", job_id, track_index, video_id)
        return video_id

    async def migrate(self, job_id: str, session_id: str) -> TransferResult:
        job = self.get_job(job_id)
        if job.status != JOB_COMPLETE:
            raise AnalysisIncompleteError(job_id, job.status)
        self._claim(job_id)
        try:
            return await self.transfer.run(job_id, session_id)
        finally:
            self._release(job_id)

    def config_snapshot(self) -> dict[str, Any]:
        return {
            "max_playlist_size": self.settings.max_playlist_size,
            "rate_limit_delay_ms": self.settings.rate_limit_delay_ms,
            "search_cache": self.search_cache.stats(),
        }

    def shutdown(self) -> None:
        if self._active:
            logger.warning("Shutting down with %d job run(s) still active", len(self._active))
        self.search_cache.flush()
        self.broadcaster.close_all()
