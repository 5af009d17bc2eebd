"""Job, track and match records shared by the stores and pipelines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TRACK_PENDING = "pending"
TRACK_SEARCHING = "searching"
TRACK_FOUND = "found"
TRACK_NOT_FOUND = "not_found"
TRACK_MANUAL = "manual"
TRACK_STATUSES = (TRACK_PENDING, TRACK_SEARCHING, TRACK_FOUND, TRACK_NOT_FOUND, TRACK_MANUAL)

JOB_PENDING = "pending"
JOB_ANALYZING = "analyzing"
JOB_COMPLETE = "complete"
JOB_ERROR = "error"
JOB_STATUSES = (JOB_PENDING, JOB_ANALYZING, JOB_COMPLETE, JOB_ERROR)
TERMINAL_JOB_STATUSES = frozenset({JOB_COMPLETE, JOB_ERROR})


def _clean_str(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None


@dataclass(frozen=True)
class Match:
    """A candidate video in the destination catalog."""

    id: str
    title: str | None = None
    channel: str | None = None
    thumbnail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "channel": self.channel,
            "thumbnail": self.thumbnail,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> Match | None:
        if not isinstance(payload, dict):
            return None
        match_id = _clean_str(payload.get("id"))
        if not match_id:
            return None
        return cls(
            id=match_id,
            title=payload.get("title"),
            channel=payload.get("channel"),
            thumbnail=payload.get("thumbnail"),
        )


@dataclass(frozen=True)
class PlaylistSummary:
    id: str | None
    name: str
    image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "image": self.image}

    @classmethod
    def from_dict(cls, payload: Any) -> PlaylistSummary:
        data = payload if isinstance(payload, dict) else {}
        return cls(
            id=_clean_str(data.get("id")),
            name=_clean_str(data.get("name")) or "Untitled playlist",
            image=_clean_str(data.get("image")),
        )


@dataclass
class TrackState:
    source_id: str | None
    name: str
    artists: list[str]
    album: str | None = None
    match: Match | None = None
    manual_id: str | None = None
    status: str = TRACK_PENDING

    @property
    def effective_id(self) -> str | None:
        """Destination id to transfer: the manual override wins over the match."""
        if self.manual_id:
            return self.manual_id
        if self.match is not None:
            return self.match.id
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "name": self.name,
            "artists": list(self.artists),
            "album": self.album,
            "match": self.match.to_dict() if self.match else None,
            "manual_id": self.manual_id,
            "status": self.status,
        }

    @classmethod
    def from_source(cls, payload: Any) -> TrackState:
        """Build a pending track from a source-catalog track record."""
        data = payload if isinstance(payload, dict) else {}
        raw_artists = data.get("artists") or []
        if isinstance(raw_artists, str):
            raw_artists = [raw_artists]
        artists = []
        for artist in raw_artists:
            if isinstance(artist, dict):
                artist = artist.get("name")
            name = _clean_str(artist)
            if name:
                artists.append(name)
        return cls(
            source_id=_clean_str(data.get("id") or data.get("source_id")),
            name=str(data.get("name") or "").strip(),
            artists=artists,
            album=_clean_str(data.get("album")),
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TrackState:
        status = payload.get("status")
        if status not in TRACK_STATUSES:
            status = TRACK_PENDING
        return cls(
            source_id=payload.get("source_id"),
            name=str(payload.get("name") or ""),
            artists=[str(a) for a in payload.get("artists") or []],
            album=payload.get("album"),
            match=Match.from_dict(payload.get("match")),
            manual_id=_clean_str(payload.get("manual_id")),
            status=status,
        )


@dataclass
class Job:
    id: str
    session_id: str
    playlist: PlaylistSummary
    tracks: list[TrackState]
    created_at: float
    status: str = JOB_PENDING
    progress_current: int = 0
    completed_at: float | None = None
    error: str | None = None

    @property
    def progress_total(self) -> int:
        return len(self.tracks)

    def stats(self) -> dict[str, int]:
        """Count final track outcomes. A manual override outranks any automatic status."""
        found = not_found = manual = 0
        for track in self.tracks:
            if track.manual_id or track.status == TRACK_MANUAL:
                manual += 1
            elif track.status == TRACK_FOUND:
                found += 1
            elif track.status == TRACK_NOT_FOUND:
                not_found += 1
        return {
            "found": found,
            "not_found": not_found,
            "manual": manual,
            "total": len(self.tracks),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "playlist": self.playlist.to_dict(),
            "tracks": [track.to_dict() for track in self.tracks],
            "status": self.status,
            "progress": {"current": self.progress_current, "total": self.progress_total},
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "error": self.error,
        }

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "playlist": self.playlist.to_dict(),
            "status": self.status,
            "progress": {"current": self.progress_current, "total": self.progress_total},
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Job:
        progress = payload.get("progress")
        if not isinstance(progress, dict):
            progress = {}
        status = payload.get("status")
        if status not in JOB_STATUSES:
            status = JOB_ERROR
        completed_at = payload.get("completed_at")
        return cls(
            id=str(payload["id"]),
            session_id=str(payload.get("session_id") or ""),
            playlist=PlaylistSummary.from_dict(payload.get("playlist")),
            tracks=[TrackState.from_dict(t) for t in payload.get("tracks") or [] if isinstance(t, dict)],
            created_at=float(payload.get("created_at") or 0.0),
            status=status,
            progress_current=int(progress.get("current") or 0),
            completed_at=float(completed_at) if completed_at is not None else None,
            error=payload.get("error"),
        )
