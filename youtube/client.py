"""YouTube Data API adapter used as the destination catalog."""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any

import anyio
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from engine.catalog import DestinationCatalog
from engine.models import Match
from youtube.urls import playlist_url

logger = logging.getLogger(__name__)

MUSIC_CATEGORY_ID = "10"


class YouTubeAuthError(RuntimeError):
    pass


def load_credentials(token_path):
    with open(token_path, "r") as f:
        data = json.load(f)
    return Credentials(
        token=data.get("token"),
        refresh_token=data.get("refresh_token"),
        token_uri=data.get("token_uri"),
        client_id=data.get("client_id"),
        client_secret=data.get("client_secret"),
        scopes=data.get("scopes"),
    )


def youtube_service(creds):
    return build("youtube", "v3", credentials=creds, cache_discovery=False)


def build_search_query(artists: list[str], title: str) -> str:
    return f"{', '.join(artists)} - {title}"


def _thumbnail(snippet: dict[str, Any]) -> str | None:
    thumbnails = snippet.get("thumbnails") or {}
    default = thumbnails.get("default") or {}
    return default.get("url")


class YouTubeCatalog(DestinationCatalog):
    source = "youtube"

    def __init__(self, token_path: str | None = None, *, service: Any = None) -> None:
        self.token_path = token_path
        self._service = service
        self._lock = threading.Lock()

    def is_authenticated(self) -> bool:
        if self._service is not None:
            return True
        return bool(self.token_path) and os.path.exists(self.token_path)

    def _youtube(self):
        with self._lock:
            if self._service is None:
                if not self.is_authenticated():
                    raise YouTubeAuthError("Not authenticated with YouTube")
                self._service = youtube_service(load_credentials(self.token_path))
            return self._service

    def _search_sync(self, artists: list[str], title: str) -> Match | None:
        response = self._youtube().search().list(
            part="snippet",
            q=build_search_query(artists, title),
            type="video",
            videoCategoryId=MUSIC_CATEGORY_ID,
            maxResults=1,
        ).execute()
        items = response.get("items") or []
        if not items:
            return None
        video = items[0]
        snippet = video.get("snippet") or {}
        video_id = (video.get("id") or {}).get("videoId")
        if not video_id:
            return None
        return Match(
            id=video_id,
            title=snippet.get("title"),
            channel=snippet.get("channelTitle"),
            thumbnail=_thumbnail(snippet),
        )

    def _create_playlist_sync(self, title: str, description: str) -> str:
        response = self._youtube().playlists().insert(
            part="snippet,status",
            body={
                "snippet": {"title": title, "description": description},
                "status": {"privacyStatus": "private"},
            },
        ).execute()
        playlist_id = response.get("id")
        if not playlist_id:
            raise RuntimeError("YouTube playlist response missing id")
        return playlist_id

    def _add_item_sync(self, playlist_id: str, video_id: str) -> None:
        self._youtube().playlistItems().insert(
            part="snippet",
            body={
                "snippet": {
                    "playlistId": playlist_id,
                    "resourceId": {"kind": "youtube#video", "videoId": video_id},
                }
            },
        ).execute()

    def _list_playlists_sync(self) -> list[dict[str, Any]]:
        response = self._youtube().playlists().list(
            part="snippet,contentDetails",
            mine=True,
            maxResults=50,
        ).execute()
        playlists = []
        for item in response.get("items", []):
            snippet = item.get("snippet") or {}
            details = item.get("contentDetails") or {}
            playlists.append(
                {
                    "id": item.get("id"),
                    "name": snippet.get("title"),
                    "description": snippet.get("description"),
                    "track_count": details.get("itemCount"),
                    "image": _thumbnail(snippet),
                }
            )
        return playlists

    async def search_match(self, artists: list[str], title: str) -> Match | None:
        return await anyio.to_thread.run_sync(self._search_sync, artists, title)

    async def create_playlist(self, title: str, description: str) -> str:
        return await anyio.to_thread.run_sync(self._create_playlist_sync, title, description)

    async def add_item(self, playlist_id: str, external_id: str) -> None:
        await anyio.to_thread.run_sync(self._add_item_sync, playlist_id, external_id)

    async def list_playlists(self) -> list[dict[str, Any]]:
        return await anyio.to_thread.run_sync(self._list_playlists_sync)

    def playlist_url(self, playlist_id: str) -> str | None:
        return playlist_url(playlist_id)
