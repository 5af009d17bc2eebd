"""Periodic sweeps for expired cache entries and aged jobs."""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import Settings
from engine.job_store import JobStore
from engine.search_cache import SearchCache

logger = logging.getLogger(__name__)

SEARCH_CACHE_SWEEP_JOB_ID = "search_cache_sweep"
JOB_PURGE_JOB_ID = "job_purge"


def sweep_search_cache(search_cache: SearchCache) -> int:
    try:
        return search_cache.sweep()
    except Exception:
        logger.exception("Search cache sweep failed")
        return 0


def purge_jobs(job_store: JobStore, max_age_seconds: float) -> int:
    try:
        return job_store.purge_older_than(max_age_seconds)
    except Exception:
        logger.exception("Job purge failed")
        return 0


def run_maintenance_once(job_store: JobStore, search_cache: SearchCache, settings: Settings) -> dict[str, int]:
    return {
        "cache_entries_removed": sweep_search_cache(search_cache),
        "jobs_purged": purge_jobs(job_store, settings.job_retention_seconds),
    }


def build_maintenance_scheduler(
    job_store: JobStore,
    search_cache: SearchCache,
    settings: Settings,
) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        sweep_search_cache,
        trigger=IntervalTrigger(hours=settings.cache_sweep_interval_hours),
        args=[search_cache],
        id=SEARCH_CACHE_SWEEP_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )
    scheduler.add_job(
        purge_jobs,
        trigger=IntervalTrigger(minutes=settings.job_sweep_interval_minutes),
        args=[job_store, settings.job_retention_seconds],
        id=JOB_PURGE_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )
    return scheduler
