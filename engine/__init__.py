from .errors import (
    AnalysisIncompleteError,
    JobBusyError,
    JobNotFoundError,
    MigrationError,
    PlaylistTooLargeError,
    TransferError,
    ValidationError,
)
from .job_store import JobStore
from .paths import EnginePaths
from .progress import ProgressBroadcaster
from .search_cache import MISS, SearchCache

__all__ = [
    "AnalysisIncompleteError",
    "EnginePaths",
    "JobBusyError",
    "JobNotFoundError",
    "JobStore",
    "MISS",
    "MigrationError",
    "PlaylistTooLargeError",
    "ProgressBroadcaster",
    "SearchCache",
    "TransferError",
    "ValidationError",
]
