from __future__ import annotations

from engine.models import Match


class DestinationCatalog:
    """Destination-catalog operations the pipelines depend on.

    ``search_match`` may raise; the matching pipeline treats that as "no
    match" for the one track. ``create_playlist`` failures abort a transfer;
    ``add_item`` failures are recorded per track.
    """

    source = ""

    async def search_match(self, artists: list[str], title: str) -> Match | None:
        raise NotImplementedError

    async def create_playlist(self, title: str, description: str) -> str:
        raise NotImplementedError

    async def add_item(self, playlist_id: str, external_id: str) -> None:
        raise NotImplementedError

    def playlist_url(self, playlist_id: str) -> str | None:
        return None
