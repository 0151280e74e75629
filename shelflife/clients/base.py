"""
Base class for all external service clients.
Each client wraps one long-lived httpx.AsyncClient built at startup.
"""

import time
from typing import Any, Optional

import httpx
import structlog

from shelflife.observability.metrics import external_api_latency_seconds

logger = structlog.get_logger(__name__)


class ServiceError(Exception):
    """Raised when an external service call fails."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ServiceClient:
    """
    Thin async HTTP client for an *arr-style API.

    Subclasses set `service_name` and `display_name` and build on `_request`.
    Every failure (transport or non-2xx) surfaces as ServiceError; callers
    decide whether that is fatal.
    """

    service_name: str = "service"
    display_name: str = "Service"
    api_key_header: Optional[str] = "X-Api-Key"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        headers = {"Accept": "application/json"}
        if self.api_key_header:
            headers[self.api_key_header] = api_key
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        operation: Optional[str] = None,
    ) -> Any:
        """Issue a request; returns parsed JSON, or None for non-JSON bodies."""
        started = time.perf_counter()
        try:
            response = await self._http.request(method, path, params=params)
        except httpx.HTTPError as e:
            raise ServiceError(
                self.service_name, f"{self.display_name} request failed: {e}"
            ) from e
        finally:
            external_api_latency_seconds.labels(
                service=self.service_name, operation=operation or method.lower()
            ).observe(time.perf_counter() - started)

        if response.is_error:
            raise ServiceError(
                self.service_name,
                f"{self.display_name} API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return None

    async def aclose(self) -> None:
        await self._http.aclose()
