from __future__ import annotations

import asyncio

import pytest

from engine.models import Match
from youtube.client import YouTubeAuthError, YouTubeCatalog, build_search_query


class _Request:
    def __init__(self, response):
        self._response = response

    def execute(self):
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


class _Resource:
    def __init__(self, name, service):
        self._name = name
        self._service = service

    def list(self, **kwargs):
        self._service.calls.append((self._name, "list", kwargs))
        return _Request(self._service.responses[(self._name, "list")])

    def insert(self, **kwargs):
        self._service.calls.append((self._name, "insert", kwargs))
        return _Request(self._service.responses[(self._name, "insert")])


class _FakeYouTube:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def search(self):
        return _Resource("search", self)

    def playlists(self):
        return _Resource("playlists", self)

    def playlistItems(self):
        return _Resource("playlistItems", self)


def test_build_search_query_joins_artists():
    assert build_search_query(["Daft Punk", "Pharrell Williams"], "Get Lucky") == "Daft Punk, Pharrell Williams - Get Lucky"


def test_search_match_returns_top_music_video():
    service = _FakeYouTube(
        {
            ("search", "list"): {
                "items": [
                    {
                        "id": {"videoId": "vid123"},
                        "snippet": {
                            "title": "Get Lucky (Official Audio)",
                            "channelTitle": "Daft Punk",
                            "thumbnails": {"default": {"url": "https://i.ytimg.com/vi/vid123/default.jpg"}},
                        },
                    }
                ]
            }
        }
    )
    catalog = YouTubeCatalog(service=service)

    match = asyncio.run(catalog.search_match(["Daft Punk"], "Get Lucky"))

    assert match == Match(
        id="vid123",
        title="Get Lucky (Official Audio)",
        channel="Daft Punk",
        thumbnail="https://i.ytimg.com/vi/vid123/default.jpg",
    )
    _name, _method, kwargs = service.calls[0]
    assert kwargs["q"] == "Daft Punk - Get Lucky"
    assert kwargs["type"] == "video"
    assert kwargs["videoCategoryId"] == "10"
    assert kwargs["maxResults"] == 1


def test_search_match_without_results_is_none():
    catalog = YouTubeCatalog(service=_FakeYouTube({("search", "list"): {"items": []}}))
    assert asyncio.run(catalog.search_match(["Nobody"], "Nothing")) is None


def test_create_playlist_is_private_and_add_item_targets_video():
    service = _FakeYouTube(
        {
            ("playlists", "insert"): {"id": "PL42"},
            ("playlistItems", "insert"): {},
        }
    )
    catalog = YouTubeCatalog(service=service)

    playlist_id = asyncio.run(catalog.create_playlist("Mix", "Migrated from Spotify"))
    asyncio.run(catalog.add_item(playlist_id, "vid9"))

    assert playlist_id == "PL42"
    create_body = service.calls[0][2]["body"]
    assert create_body["status"] == {"privacyStatus": "private"}
    assert create_body["snippet"]["title"] == "Mix"
    add_body = service.calls[1][2]["body"]
    assert add_body["snippet"] == {
        "playlistId": "PL42",
        "resourceId": {"kind": "youtube#video", "videoId": "vid9"},
    }
    assert catalog.playlist_url("PL42") == "https://music.youtube.com/playlist?list=PL42"


def test_add_item_propagates_api_errors():
    service = _FakeYouTube({("playlistItems", "insert"): RuntimeError("videoNotFound")})
    catalog = YouTubeCatalog(service=service)

    with pytest.raises(RuntimeError, match="videoNotFound"):
        asyncio.run(catalog.add_item("PL1", "gone"))


def test_missing_token_is_not_authenticated(tmp_path):
    catalog = YouTubeCatalog(str(tmp_path / "missing.json"))

    assert catalog.is_authenticated() is False
    with pytest.raises(YouTubeAuthError):
        asyncio.run(catalog.search_match(["A"], "B"))
