from __future__ import annotations

import asyncio

import pytest

from engine.errors import AnalysisIncompleteError, JobNotFoundError, TransferError
from engine.job_store import JobStore
from engine.models import JOB_COMPLETE, TRACK_FOUND, TRACK_NOT_FOUND, Match
from engine.progress import ProgressBroadcaster
from engine.transfer import TransferPipeline

PLAYLIST = {"id": "sp-9", "name": "Evening Chill", "image": None}


def _analyzed_job(store: JobStore, matches: list[str | None]):
    job = store.create(
        "session-1",
        PLAYLIST,
        [{"id": f"t{i}", "name": f"Song {i}", "artists": ["Artist"]} for i in range(len(matches))],
    )
    for index, video_id in enumerate(matches):
        if video_id:
            store.record_match(job.id, index, Match(id=video_id), TRACK_FOUND)
        else:
            store.record_match(job.id, index, None, TRACK_NOT_FOUND)
    store.set_status(job.id, JOB_COMPLETE)
    return job


def _build(tmp_path, clock, catalog, sleep, *, add_delay=0.3):
    store = JobStore(str(tmp_path), clock=clock)
    broadcaster = ProgressBroadcaster()
    pipeline = TransferPipeline(store, broadcaster, catalog, add_delay=add_delay, sleep=sleep)
    return store, broadcaster, pipeline


def test_transfers_matched_tracks_and_skips_unmatched(tmp_path, clock, make_catalog, sleep_recorder) -> None:
    catalog = make_catalog()
    store, broadcaster, pipeline = _build(tmp_path, clock, catalog, sleep_recorder)
    job = _analyzed_job(store, ["v0", None, "v2"])
    sink = broadcaster.subscribe("session-1")

    result = asyncio.run(pipeline.run(job.id, "session-1"))

    assert catalog.created == [("Evening Chill", "Migrated from Spotify")]
    assert catalog.added == [("PLfake123", "v0"), ("PLfake123", "v2")]
    assert result.success_count == 2
    assert result.skip_count == 1
    assert result.total == 3
    assert result.playlist_url == "https://music.youtube.com/playlist?list=PLfake123"
    assert [r.status for r in result.results] == ["success", "skipped", "success"]
    assert result.results[1].reason == "No video ID"
    # no pause after a skipped track
    assert sleep_recorder.calls == [0.3, 0.3]

    types = [event["type"] for event in sink.pending()]
    assert types == [
        "status",
        "playlist_created",
        "processing",
        "track_added",
        "processing",
        "track_skipped",
        "processing",
        "track_added",
        "complete",
    ]


def test_manual_override_is_transferred_instead_of_match(tmp_path, clock, make_catalog, sleep_recorder) -> None:
    catalog = make_catalog()
    store, _broadcaster, pipeline = _build(tmp_path, clock, catalog, sleep_recorder)
    job = _analyzed_job(store, ["auto0", None])
    store.set_manual_override(job.id, 0, "manual0")
    store.set_manual_override(job.id, 1, "manual1")

    result = asyncio.run(pipeline.run(job.id, "session-1"))

    assert [video for _playlist, video in catalog.added] == ["manual0", "manual1"]
    assert result.skip_count == 0


def test_add_failure_is_recorded_and_transfer_continues(tmp_path, clock, make_catalog, sleep_recorder) -> None:
    catalog = make_catalog(add_errors={"bad"})
    store, broadcaster, pipeline = _build(tmp_path, clock, catalog, sleep_recorder)
    job = _analyzed_job(store, ["bad", "good"])
    sink = broadcaster.subscribe("session-1")

    result = asyncio.run(pipeline.run(job.id, "session-1"))

    assert result.success_count == 1
    assert result.skip_count == 0
    assert result.error_count == 1
    assert result.results[0].status == "error"
    assert "unavailable" in result.results[0].error
    assert sleep_recorder.calls == [0.3, 0.3]

    events = sink.pending()
    failed = [event for event in events if event["type"] == "track_failed"]
    assert len(failed) == 1
    assert failed[0]["success"] is False
    assert events[-1]["type"] == "complete"
    assert events[-1]["success_count"] == 1

    payload = result.to_dict()
    assert payload["success"] is True
    assert payload["results"][1] == {"track": "Song 1", "status": "success", "video_id": "good"}


def test_create_playlist_failure_aborts_before_any_add(tmp_path, clock, make_catalog, sleep_recorder) -> None:
    catalog = make_catalog(create_error=RuntimeError("quotaExceeded"))
    store, broadcaster, pipeline = _build(tmp_path, clock, catalog, sleep_recorder)
    job = _analyzed_job(store, ["v0"])
    sink = broadcaster.subscribe("session-1")

    with pytest.raises(TransferError, match="quotaExceeded"):
        asyncio.run(pipeline.run(job.id, "session-1"))

    assert catalog.added == []
    assert sink.pending()[-1] == {"type": "error", "message": "quotaExceeded"}


def test_requires_completed_analysis(tmp_path, clock, make_catalog, sleep_recorder) -> None:
    catalog = make_catalog()
    store, _broadcaster, pipeline = _build(tmp_path, clock, catalog, sleep_recorder)
    job = store.create("session-1", PLAYLIST, [{"name": "Song", "artists": ["A"]}])

    with pytest.raises(AnalysisIncompleteError):
        asyncio.run(pipeline.run(job.id, "session-1"))
    with pytest.raises(JobNotFoundError):
        asyncio.run(pipeline.run("job_0_missing", "session-1"))

    assert catalog.created == []
