from __future__ import annotations

import itertools
import json

from engine.models import Match
from engine.search_cache import MISS, SearchCache, cache_key

DAY = 24 * 60 * 60


def _match(video_id: str = "dQw4w9WgXcQ") -> Match:
    return Match(id=video_id, title="Song (Official Video)", channel="ArtistVEVO", thumbnail=None)


def test_cache_key_is_artist_order_insensitive() -> None:
    artists = ["Daft Punk", "Pharrell Williams", "Nile Rodgers"]
    keys = {cache_key(list(perm), "Get Lucky") for perm in itertools.permutations(artists)}
    assert len(keys) == 1


def test_cache_key_normalizes_case_and_whitespace() -> None:
    assert cache_key(["  B ", "a"], " Title ") == cache_key(["A", "b"], "title")
    assert cache_key(["A", "B"], "Title") == "a|b::title"


def test_cache_key_keeps_title_punctuation_distinct() -> None:
    assert cache_key(["A"], "Song (Live)") != cache_key(["A"], "Song - Live")


def test_lookup_distinguishes_miss_from_confirmed_no_match(tmp_path, clock) -> None:
    cache = SearchCache(str(tmp_path / "search_cache.json"), clock=clock)

    assert cache.lookup(["A"], "Unknown") is MISS

    cache.store(["A"], "Nothing", None)
    assert cache.lookup(["A"], "Nothing") is None

    cache.store(["B", "A"], "Song", _match())
    assert cache.lookup(["A", "B"], "song") == _match()


def test_expired_entry_is_a_miss_and_removed(tmp_path, clock) -> None:
    cache = SearchCache(str(tmp_path / "search_cache.json"), ttl_seconds=30 * DAY, clock=clock)
    cache.store(["A"], "Old", _match())

    clock.advance(30 * DAY + 1)

    assert cache.lookup(["A"], "Old") is MISS
    assert len(cache) == 0


def test_store_refreshes_timestamp(tmp_path, clock) -> None:
    cache = SearchCache(str(tmp_path / "search_cache.json"), ttl_seconds=10 * DAY, clock=clock)
    cache.store(["A"], "Song", None)
    clock.advance(8 * DAY)
    cache.store(["A"], "Song", _match())
    clock.advance(8 * DAY)

    assert cache.lookup(["A"], "Song") == _match()


def test_flushes_every_nth_insert(tmp_path, clock) -> None:
    path = tmp_path / "search_cache.json"
    cache = SearchCache(str(path), flush_every=3, clock=clock)

    cache.store(["A"], "One", None)
    cache.store(["A"], "Two", None)
    assert not path.exists()

    cache.store(["A"], "Three", _match())
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert set(payload["entries"]) == {"a::one", "a::two", "a::three"}


def test_snapshot_reloads_into_new_instance(tmp_path, clock) -> None:
    path = tmp_path / "search_cache.json"
    cache = SearchCache(str(path), clock=clock)
    cache.store(["A"], "Song", _match("abc123"))
    cache.store(["A"], "Missing", None)
    assert cache.flush() is True

    reloaded = SearchCache(str(path), clock=clock)
    assert reloaded.lookup(["a"], "SONG") == _match("abc123")
    assert reloaded.lookup(["a"], "missing") is None
    assert reloaded.stats() == {"entries": 2, "path": str(path)}


def test_sweep_removes_expired_entries_and_flushes(tmp_path, clock) -> None:
    path = tmp_path / "search_cache.json"
    cache = SearchCache(str(path), ttl_seconds=DAY, flush_every=100, clock=clock)
    cache.store(["A"], "Old", _match())
    clock.advance(DAY + 5)
    cache.store(["A"], "Fresh", None)

    removed = cache.sweep()

    assert removed == 1
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert list(payload["entries"]) == ["a::fresh"]


def test_sweep_without_expired_entries_does_not_write(tmp_path, clock) -> None:
    path = tmp_path / "search_cache.json"
    cache = SearchCache(str(path), flush_every=100, clock=clock)
    cache.store(["A"], "Fresh", None)

    assert cache.sweep() == 0
    assert not path.exists()


def test_corrupt_snapshot_starts_empty(tmp_path, clock) -> None:
    path = tmp_path / "search_cache.json"
    path.write_text("{not json", encoding="utf-8")

    cache = SearchCache(str(path), clock=clock)

    assert cache.lookup(["A"], "Song") is MISS
    assert len(cache) == 0


def test_unwritable_snapshot_keeps_memory_state(tmp_path, clock) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    cache = SearchCache(str(blocker / "search_cache.json"), flush_every=1, clock=clock)

    cache.store(["A"], "Song", _match())

    assert cache.flush() is False
    assert cache.lookup(["A"], "Song") == _match()
