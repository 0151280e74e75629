"""
Sonarr client: series lookup and deletion.
"""

from typing import Optional

from shelflife.clients.base import ServiceClient


class SonarrClient(ServiceClient):
    service_name = "sonarr"
    display_name = "Sonarr"

    async def lookup_by_tvdb_id(self, tvdb_id: int) -> Optional[dict]:
        """Return the Sonarr series record, or None if Sonarr doesn't track it."""
        data = await self._request(
            "GET", "/api/v3/series", params={"tvdbId": tvdb_id}, operation="lookup"
        )
        if not isinstance(data, list) or not data:
            return None
        return data[0]

    async def delete_series(self, sonarr_id: int, delete_files: bool) -> None:
        await self._request(
            "DELETE",
            f"/api/v3/series/{sonarr_id}",
            params={
                "deleteFiles": str(delete_files).lower(),
                "addImportListExclusion": "true",
            },
            operation="delete",
        )
