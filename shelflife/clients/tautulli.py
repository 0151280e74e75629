"""
Tautulli client: watch history and user listing.
Tautulli takes its API key as a query parameter and wraps every payload in
{"response": {"result": ..., "message": ..., "data": ...}}.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel

from shelflife.clients.base import ServiceClient, ServiceError


class TautulliHistoryRecord(BaseModel):
    reference_id: Optional[int] = None
    user_id: Optional[int] = None
    user: Optional[str] = None
    rating_key: Optional[Union[str, int]] = None
    title: Optional[str] = None
    watched_status: Optional[float] = None
    play_count: Optional[int] = None
    stopped: Optional[int] = None


class TautulliUser(BaseModel):
    user_id: int
    username: str
    friendly_name: Optional[str] = None
    email: Optional[str] = None
    thumb: Optional[str] = None


class TautulliClient(ServiceClient):
    service_name = "tautulli"
    display_name = "Tautulli"
    api_key_header = None

    def __init__(self, *args, history_length: int = 1000, **kwargs):
        super().__init__(*args, **kwargs)
        self.history_length = history_length

    async def _command(self, cmd: str, **params: Any) -> Any:
        query = {"apikey": self.api_key, "cmd": cmd}
        query.update({k: str(v) for k, v in params.items() if v is not None})
        payload = await self._request("GET", "/api/v2", params=query, operation=cmd)

        response = (payload or {}).get("response") or {}
        if response.get("result") != "success":
            raise ServiceError(
                self.service_name, f"Tautulli error: {response.get('message')}"
            )
        return response.get("data")

    async def get_history(self, rating_key: str) -> list[TautulliHistoryRecord]:
        data = await self._command(
            "get_history", rating_key=rating_key, length=self.history_length
        )
        if not data or not data.get("data"):
            return []
        return [TautulliHistoryRecord.model_validate(r) for r in data["data"]]

    async def get_users(self) -> list[TautulliUser]:
        data = await self._command("get_users")
        if not isinstance(data, list):
            return []
        return [TautulliUser.model_validate(u) for u in data]
