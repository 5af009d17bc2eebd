from engine.job_store import JobStore
from engine.maintenance import (
    JOB_PURGE_JOB_ID,
    SEARCH_CACHE_SWEEP_JOB_ID,
    build_maintenance_scheduler,
    purge_jobs,
    run_maintenance_once,
    sweep_search_cache,
)
from engine.search_cache import SearchCache

DAY = 24 * 60 * 60


def test_run_maintenance_once_sweeps_both_stores(settings, clock):
    store = JobStore(settings.cache_dir, clock=clock)
    cache = SearchCache(f"{settings.cache_dir}/search_cache.json", ttl_seconds=DAY, clock=clock)
    old_job = store.create("session-1", {"name": "Old"}, [{"name": "Song", "artists": ["A"]}])
    cache.store(["A"], "Song", None)

    clock.advance(settings.job_retention_seconds + 1)
    fresh_job = store.create("session-1", {"name": "New"}, [{"name": "Song", "artists": ["A"]}])

    summary = run_maintenance_once(store, cache, settings)

    assert summary == {"cache_entries_removed": 1, "jobs_purged": 1}
    assert store.get(old_job.id) is None
    assert store.get(fresh_job.id) is not None


def test_sweep_failures_are_logged_not_raised(caplog):
    class _Broken:
        def sweep(self):
            raise RuntimeError("disk gone")

        def purge_older_than(self, _age):
            raise RuntimeError("disk gone")

    assert sweep_search_cache(_Broken()) == 0
    assert purge_jobs(_Broken(), DAY) == 0
    assert "Search cache sweep failed" in caplog.text
    assert "Job purge failed" in caplog.text


def test_scheduler_registers_interval_jobs(settings, clock):
    store = JobStore(settings.cache_dir, clock=clock)
    cache = SearchCache(f"{settings.cache_dir}/search_cache.json", clock=clock)

    scheduler = build_maintenance_scheduler(store, cache, settings)

    job_ids = {job.id for job in scheduler.get_jobs()}
    assert job_ids == {SEARCH_CACHE_SWEEP_JOB_ID, JOB_PURGE_JOB_ID}
    assert scheduler.running is False
