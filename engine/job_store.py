"""JSON-file persistence for analysis jobs.

Every job lives in ``<cache_dir>/<job_id>.json``. The in-memory index is a
write-through view of those files: reads hit the index first and hydrate it
from disk on a miss.

Status changes and manual overrides are always written. Track matches are
checkpointed every ``checkpoint_every`` tracks and on the last track, so a
crash can lose at most ``checkpoint_every - 1`` trailing matches; re-running
analysis for the job recovers them.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
import threading
import time
from typing import Any, Callable, Iterable
from uuid import uuid4

from engine.errors import PlaylistTooLargeError
from engine.models import (
    JOB_ANALYZING,
    JOB_STATUSES,
    TERMINAL_JOB_STATUSES,
    TRACK_MANUAL,
    TRACK_SEARCHING,
    Job,
    Match,
    PlaylistSummary,
    TrackState,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PLAYLIST_SIZE = 500
DEFAULT_CHECKPOINT_EVERY = 10
JOB_ID_PREFIX = "job_"
_JOB_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def new_job_id(now: float | None = None) -> str:
    millis = int((time.time() if now is None else now) * 1000)
    return f"{JOB_ID_PREFIX}{millis}_{uuid4().hex[:9]}"


def is_valid_job_id(job_id: Any) -> bool:
    return isinstance(job_id, str) and bool(_JOB_ID_RE.match(job_id))


class JobStore:
    def __init__(
        self,
        cache_dir: str,
        *,
        max_playlist_size: int = DEFAULT_MAX_PLAYLIST_SIZE,
        checkpoint_every: int = DEFAULT_CHECKPOINT_EVERY,
        clock: Callable[[], float] = time.time,
        load_existing: bool = True,
    ) -> None:
        self.cache_dir = str(cache_dir)
        self.max_playlist_size = int(max_playlist_size)
        self.checkpoint_every = max(1, int(checkpoint_every))
        self._clock = clock
        self._lock = threading.RLock()
        self._jobs: dict[str, Job] = {}
        os.makedirs(self.cache_dir, exist_ok=True)
        if load_existing:
            self.load_all()

    def _job_path(self, job_id: str) -> str:
        return os.path.join(self.cache_dir, f"{job_id}.json")

    def _write_locked(self, job: Job) -> bool:
        path = self._job_path(job.id)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(job.to_dict(), handle, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save job %s to disk", job.id)
            return False
        return True

    def _read(self, job_id: str) -> Job | None:
        path = self._job_path(job_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
            if not isinstance(payload, dict):
                logger.warning("Ignoring job file %s: not a JSON object", path)
                return None
            return Job.from_dict(payload)
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            logger.exception("Failed to load job %s from disk", job_id)
            return None

    def load_all(self) -> int:
        """Index every job record already present in ``cache_dir``."""
        loaded = 0
        try:
            names = sorted(os.listdir(self.cache_dir))
        except OSError:
            logger.exception("Failed to list job directory %s", self.cache_dir)
            return 0
        for name in names:
            if not name.startswith(JOB_ID_PREFIX) or not name.endswith(".json"):
                continue
            job_id = name[: -len(".json")]
            if not is_valid_job_id(job_id):
                continue
            job = self._read(job_id)
            if job is None:
                continue
            with self._lock:
                self._jobs.setdefault(job.id, job)
            loaded += 1
        logger.info("Loaded %d cached jobs from %s", loaded, self.cache_dir)
        return loaded

    def _get_locked(self, job_id: str) -> Job | None:
        if not is_valid_job_id(job_id):
            return None
        job = self._jobs.get(job_id)
        if job is not None:
            return job
        job = self._read(job_id)
        if job is not None:
            self._jobs[job_id] = job
        return job

    def create(
        self,
        session_id: str,
        playlist: PlaylistSummary | dict[str, Any],
        tracks: Iterable[Any],
    ) -> Job:
        track_list = list(tracks or [])
        if len(track_list) > self.max_playlist_size:
            raise PlaylistTooLargeError(self.max_playlist_size, len(track_list))
        summary = playlist if isinstance(playlist, PlaylistSummary) else PlaylistSummary.from_dict(playlist)
        now = self._clock()
        job = Job(
            id=new_job_id(now),
            session_id=str(session_id),
            playlist=summary,
            tracks=[t if isinstance(t, TrackState) else TrackState.from_source(t) for t in track_list],
            created_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
            self._write_locked(job)
        logger.info("Created job %s (%d tracks) for session %s", job.id, len(job.tracks), job.session_id)
        return copy.deepcopy(job)

    def get(self, job_id: str) -> Job | None:
        """Return a snapshot of the job, hydrating the index from disk on a miss."""
        with self._lock:
            job = self._get_locked(job_id)
            return copy.deepcopy(job) if job is not None else None

    def list_for_session(self, session_id: str) -> list[Job]:
        with self._lock:
            jobs = [copy.deepcopy(job) for job in self._jobs.values() if job.session_id == session_id]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)

    def set_status(self, job_id: str, status: str, error: str | None = None) -> Job | None:
        if status not in JOB_STATUSES:
            raise ValueError(f"unknown job status: {status}")
        with self._lock:
            job = self._get_locked(job_id)
            if job is None:
                return None
            job.status = status
            if status == JOB_ANALYZING:
                job.progress_current = 0
                job.completed_at = None
                job.error = None
            elif status in TERMINAL_JOB_STATUSES:
                job.completed_at = self._clock()
            if error:
                job.error = error
            self._write_locked(job)
            return copy.deepcopy(job)

    def mark_searching(self, job_id: str, track_index: int) -> bool:
        with self._lock:
            job = self._get_locked(job_id)
            if job is None or not 0 <= track_index < len(job.tracks):
                return False
            track = job.tracks[track_index]
            if track.status != TRACK_MANUAL:
                track.status = TRACK_SEARCHING
            return True

    def record_match(self, job_id: str, track_index: int, match: Match | None, status: str) -> bool:
        with self._lock:
            job = self._get_locked(job_id)
            if job is None or not 0 <= track_index < len(job.tracks):
                return False
            track = job.tracks[track_index]
            track.match = match
            track.status = TRACK_MANUAL if track.manual_id else status
            job.progress_current = max(job.progress_current, track_index + 1)
            position = track_index + 1
            if position % self.checkpoint_every == 0 or track_index == len(job.tracks) - 1:
                self._write_locked(job)
            return True

    def set_manual_override(self, job_id: str, track_index: int, external_id: str) -> bool:
        with self._lock:
            job = self._get_locked(job_id)
            if job is None or not 0 <= track_index < len(job.tracks):
                return False
            track = job.tracks[track_index]
            track.manual_id = external_id
            track.status = TRACK_MANUAL
            self._write_locked(job)
            return True

    def delete(self, job_id: str) -> bool:
        with self._lock:
            removed = self._jobs.pop(job_id, None) is not None
            if not is_valid_job_id(job_id):
                return removed
            path = self._job_path(job_id)
            try:
                if os.path.exists(path):
                    os.remove(path)
                    removed = True
            except OSError:
                logger.exception("Failed to delete job file %s", path)
            return removed

    def purge_older_than(self, max_age_seconds: float) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if now - job.created_at > max_age_seconds
            ]
            for job_id in expired:
                self.delete(job_id)
        if expired:
            logger.info("Purged %d jobs older than %ss", len(expired), int(max_age_seconds))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return isinstance(job_id, str) and job_id in self._jobs
