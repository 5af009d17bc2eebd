"""Application settings resolved from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from engine.paths import CACHE_DIR, LOG_DIR, TOKENS_DIR

logger = logging.getLogger(__name__)

DEFAULT_MAX_PLAYLIST_SIZE = 500
DEFAULT_RATE_LIMIT_DELAY_MS = 2000
# Pause after every playlist insert during transfer.
DEFAULT_TRANSFER_ADD_DELAY_MS = 300
DEFAULT_SEARCH_CACHE_TTL_DAYS = 30
DEFAULT_SEARCH_CACHE_FLUSH_EVERY = 10
DEFAULT_JOB_RETENTION_DAYS = 7
DEFAULT_JOB_CHECKPOINT_EVERY = 10
DEFAULT_CACHE_SWEEP_INTERVAL_HOURS = 24
DEFAULT_JOB_SWEEP_INTERVAL_MINUTES = 60

_DAY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class Settings:
    cache_dir: str
    log_dir: str
    youtube_token_path: str
    max_playlist_size: int = DEFAULT_MAX_PLAYLIST_SIZE
    rate_limit_delay_ms: int = DEFAULT_RATE_LIMIT_DELAY_MS
    transfer_add_delay_ms: int = DEFAULT_TRANSFER_ADD_DELAY_MS
    search_cache_ttl_days: int = DEFAULT_SEARCH_CACHE_TTL_DAYS
    search_cache_flush_every: int = DEFAULT_SEARCH_CACHE_FLUSH_EVERY
    job_retention_days: int = DEFAULT_JOB_RETENTION_DAYS
    job_checkpoint_every: int = DEFAULT_JOB_CHECKPOINT_EVERY
    cache_sweep_interval_hours: int = DEFAULT_CACHE_SWEEP_INTERVAL_HOURS
    job_sweep_interval_minutes: int = DEFAULT_JOB_SWEEP_INTERVAL_MINUTES

    @property
    def rate_limit_delay(self) -> float:
        return self.rate_limit_delay_ms / 1000.0

    @property
    def transfer_add_delay(self) -> float:
        return self.transfer_add_delay_ms / 1000.0

    @property
    def search_cache_ttl_seconds(self) -> float:
        return float(self.search_cache_ttl_days * _DAY_SECONDS)

    @property
    def job_retention_seconds(self) -> float:
        return float(self.job_retention_days * _DAY_SECONDS)


def _env_int(environ, key: str, default: int, *, minimum: int = 0) -> int:
    raw = environ.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning("Invalid integer for %s=%r; using default %s", key, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%s below minimum %s; using default %s", key, value, minimum, default)
        return default
    return value


def load_settings(environ=None) -> Settings:
    """Build settings from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    cache_dir = env.get("CACHE_PATH") or str(CACHE_DIR)
    log_dir = env.get("MIGRATR_LOG_DIR") or str(LOG_DIR)
    token_path = env.get("YOUTUBE_TOKEN_PATH") or str(TOKENS_DIR / "youtube.json")
    return Settings(
        cache_dir=os.path.abspath(cache_dir),
        log_dir=os.path.abspath(log_dir),
        youtube_token_path=os.path.abspath(token_path),
        max_playlist_size=_env_int(env, "MAX_PLAYLIST_SIZE", DEFAULT_MAX_PLAYLIST_SIZE, minimum=1),
        rate_limit_delay_ms=_env_int(env, "RATE_LIMIT_DELAY_MS", DEFAULT_RATE_LIMIT_DELAY_MS),
        transfer_add_delay_ms=_env_int(env, "TRANSFER_ADD_DELAY_MS", DEFAULT_TRANSFER_ADD_DELAY_MS),
        search_cache_ttl_days=_env_int(env, "SEARCH_CACHE_TTL_DAYS", DEFAULT_SEARCH_CACHE_TTL_DAYS, minimum=1),
        search_cache_flush_every=_env_int(
            env, "SEARCH_CACHE_FLUSH_EVERY", DEFAULT_SEARCH_CACHE_FLUSH_EVERY, minimum=1
        ),
        job_retention_days=_env_int(env, "JOB_RETENTION_DAYS", DEFAULT_JOB_RETENTION_DAYS, minimum=1),
        job_checkpoint_every=_env_int(env, "JOB_CHECKPOINT_EVERY", DEFAULT_JOB_CHECKPOINT_EVERY, minimum=1),
        cache_sweep_interval_hours=_env_int(
            env, "CACHE_SWEEP_INTERVAL_HOURS", DEFAULT_CACHE_SWEEP_INTERVAL_HOURS, minimum=1
        ),
        job_sweep_interval_minutes=_env_int(
            env, "JOB_SWEEP_INTERVAL_MINUTES", DEFAULT_JOB_SWEEP_INTERVAL_MINUTES, minimum=1
        ),
    )
