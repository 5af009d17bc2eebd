"""Spotify Web API client for listing the user's playlists and their tracks."""

from __future__ import annotations

import urllib.parse
from typing import Any, TypedDict

import requests


class SpotifyAPIError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlaylistInfo(TypedDict):
    """Normalized Spotify playlist summary."""

    id: str
    name: str
    description: str | None
    track_count: int
    image: str | None
    owner: str | None


class SourceTrack(TypedDict):
    """Normalized Spotify track, in playlist order."""

    id: str | None
    name: str
    artists: list[str]
    album: str | None
    duration: int | None


def _first_image(payload: dict[str, Any]) -> str | None:
    images = payload.get("images") or []
    if images and isinstance(images[0], dict):
        return images[0].get("url")
    return None


class SpotifyCatalogClient:
    """Read-only client authenticated with a user access token."""

    _API_ROOT = "https://api.spotify.com/v1"
    _PLAYLISTS_PAGE_SIZE = 50
    _TRACKS_PAGE_SIZE = 100
    _TRACK_FIELDS = "items(track(id,name,artists,album,duration_ms)),next"

    def __init__(self, access_token: str, *, timeout_sec: int = 20, session: Any = None) -> None:
        token = (access_token or "").strip()
        if not token:
            raise ValueError("Spotify access token is required")
        self._access_token = token
        self.timeout_sec = timeout_sec
        self._session = session or requests

    def _request_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        response = self._session.get(url, params=params, headers=headers, timeout=self.timeout_sec)
        if response.status_code == 401:
            raise SpotifyAPIError("Not authenticated with Spotify", status_code=401)
        if response.status_code != 200:
            raise SpotifyAPIError(
                f"Spotify request failed ({response.status_code})",
                status_code=response.status_code,
            )
        return response.json()

    def get_user_playlists(self) -> list[PlaylistInfo]:
        playlists: list[PlaylistInfo] = []
        offset = 0
        while True:
            payload = self._request_json(
                f"{self._API_ROOT}/me/playlists",
                params={"limit": self._PLAYLISTS_PAGE_SIZE, "offset": offset},
            )
            for item in payload.get("items") or []:
                if not isinstance(item, dict):
                    continue
                tracks = item.get("tracks") or {}
                owner = item.get("owner") or {}
                playlists.append(
                    {
                        "id": item.get("id"),
                        "name": item.get("name"),
                        "description": item.get("description"),
                        "track_count": int(tracks.get("total") or 0),
                        "image": _first_image(item),
                        "owner": owner.get("display_name"),
                    }
                )
            if not payload.get("next"):
                break
            offset += self._PLAYLISTS_PAGE_SIZE
        return playlists

    def get_playlist(self, playlist_id: str) -> PlaylistInfo:
        playlist_id = (playlist_id or "").strip()
        if not playlist_id:
            raise ValueError("playlist_id is required")
        encoded_id = urllib.parse.quote(playlist_id, safe="")
        payload = self._request_json(f"{self._API_ROOT}/playlists/{encoded_id}")
        tracks = payload.get("tracks") or {}
        owner = payload.get("owner") or {}
        return {
            "id": payload.get("id"),
            "name": payload.get("name"),
            "description": payload.get("description"),
            "track_count": int(tracks.get("total") or 0),
            "image": _first_image(payload),
            "owner": owner.get("display_name"),
        }

    def get_playlist_tracks(self, playlist_id: str) -> list[SourceTrack]:
        """Fetch every track in playlist order, skipping unavailable (null) entries."""
        playlist_id = (playlist_id or "").strip()
        if not playlist_id:
            raise ValueError("playlist_id is required")
        encoded_id = urllib.parse.quote(playlist_id, safe="")

        tracks: list[SourceTrack] = []
        offset = 0
        while True:
            payload = self._request_json(
                f"{self._API_ROOT}/playlists/{encoded_id}/tracks",
                params={
                    "limit": self._TRACKS_PAGE_SIZE,
                    "offset": offset,
                    "fields": self._TRACK_FIELDS,
                },
            )
            for raw in payload.get("items") or []:
                track = raw.get("track") if isinstance(raw, dict) else None
                if not isinstance(track, dict):
                    continue
                artists = [
                    str(artist.get("name")).strip()
                    for artist in track.get("artists") or []
                    if isinstance(artist, dict) and artist.get("name")
                ]
                album = track.get("album") or {}
                tracks.append(
                    {
                        "id": track.get("id"),
                        "name": track.get("name") or "",
                        "artists": artists,
                        "album": album.get("name"),
                        "duration": track.get("duration_ms"),
                    }
                )
            if not payload.get("next"):
                break
            offset += self._TRACKS_PAGE_SIZE
        return tracks
