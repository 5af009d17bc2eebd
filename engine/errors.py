from __future__ import annotations


class MigrationError(Exception):
    """Base class for job pipeline failures surfaced to callers."""


class ValidationError(MigrationError):
    pass


class PlaylistTooLargeError(ValidationError):
    def __init__(self, max_size: int, track_count: int) -> None:
        super().__init__(f"Playlist exceeds maximum size of {max_size} tracks")
        self.max_size = max_size
        self.track_count = track_count


class JobNotFoundError(MigrationError):
    def __init__(self, job_id: str) -> None:
        super().__init__("Analysis job not found")
        self.job_id = job_id


class AnalysisIncompleteError(MigrationError):
    def __init__(self, job_id: str, status: str) -> None:
        super().__init__("Analysis not complete")
        self.job_id = job_id
        self.status = status


class JobBusyError(MigrationError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} already has a run in progress")
        self.job_id = job_id


class TransferError(MigrationError):
    """Raised when the destination playlist cannot be created."""
