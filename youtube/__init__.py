"""YouTube destination-catalog integration."""

from youtube.urls import extract_video_id, playlist_url

__all__ = ["extract_video_id", "playlist_url"]
