"""
Radarr client: movie lookup and deletion.
"""

from typing import Optional

from shelflife.clients.base import ServiceClient


class RadarrClient(ServiceClient):
    service_name = "radarr"
    display_name = "Radarr"

    async def lookup_by_tmdb_id(self, tmdb_id: int) -> Optional[dict]:
        """Return the Radarr movie record, or None if Radarr doesn't track it."""
        data = await self._request(
            "GET", "/api/v3/movie", params={"tmdbId": tmdb_id}, operation="lookup"
        )
        if not isinstance(data, list) or not data:
            return None
        return data[0]

    async def delete_movie(self, radarr_id: int, delete_files: bool) -> None:
        await self._request(
            "DELETE",
            f"/api/v3/movie/{radarr_id}",
            params={
                "deleteFiles": str(delete_files).lower(),
                "addImportExclusion": "true",
            },
            operation="delete",
        )
