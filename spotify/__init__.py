"""Spotify integration modules."""

from spotify.client import SpotifyAPIError, SpotifyCatalogClient

__all__ = ["SpotifyAPIError", "SpotifyCatalogClient"]
