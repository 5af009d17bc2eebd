from __future__ import annotations

import re

_VIDEO_ID_PATTERN = re.compile(
    r"(?:youtube\.com/watch\?(?:[^#\s]*&)?v=|youtu\.be/|youtube\.com/embed/)([^&?#/\s]+)"
)

PLAYLIST_URL_TEMPLATE = "https://music.youtube.com/playlist?list={playlist_id}"


def extract_video_id(value):
    """Return the bare video id from a pasted URL, or the stripped input unchanged."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = _VIDEO_ID_PATTERN.search(text)
    if match:
        return match.group(1)
    return text


def playlist_url(playlist_id):
    if not playlist_id:
        return None
    return PLAYLIST_URL_TEMPLATE.format(playlist_id=playlist_id)
