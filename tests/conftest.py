import sys
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from config.settings import Settings  # noqa: E402
from engine.catalog import DestinationCatalog  # noqa: E402
from youtube.urls import playlist_url  # noqa: E402


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeCatalog(DestinationCatalog):
    source = "fake"

    def __init__(
        self,
        matches=None,
        *,
        search_errors=(),
        add_errors=(),
        create_error: Exception | None = None,
        playlist_id: str = "PLfake123",
    ) -> None:
        self.matches = dict(matches or {})
        self.search_errors = set(search_errors)
        self.add_errors = set(add_errors)
        self.create_error = create_error
        self.playlist_id = playlist_id
        self.search_calls: list[tuple[tuple[str, ...], str]] = []
        self.created: list[tuple[str, str]] = []
        self.added: list[tuple[str, str]] = []

    async def search_match(self, artists, title):
        self.search_calls.append((tuple(artists), title))
        if title in self.search_errors:
            raise RuntimeError("quotaExceeded")
        return self.matches.get(title)

    async def create_playlist(self, title, description):
        if self.create_error is not None:
            raise self.create_error
        self.created.append((title, description))
        return self.playlist_id

    async def add_item(self, playlist_id, external_id):
        if external_id in self.add_errors:
            raise RuntimeError(f"video {external_id} unavailable")
        self.added.append((playlist_id, external_id))

    def playlist_url(self, playlist_id):
        return playlist_url(playlist_id)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_catalog():
    return FakeCatalog


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        cache_dir=str(tmp_path / "cache"),
        log_dir=str(tmp_path / "logs"),
        youtube_token_path=str(tmp_path / "tokens" / "youtube.json"),
        rate_limit_delay_ms=0,
        transfer_add_delay_ms=0,
    )
