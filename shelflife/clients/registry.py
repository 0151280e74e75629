"""
Explicitly constructed service clients, built once at startup and injected.
A client is None when its service is not configured.
"""

from dataclasses import dataclass, fields
from typing import Optional

import structlog

from shelflife.clients.overseerr import OverseerrClient
from shelflife.clients.radarr import RadarrClient
from shelflife.clients.sonarr import SonarrClient
from shelflife.clients.tautulli import TautulliClient
from shelflife.config import Settings

logger = structlog.get_logger(__name__)


@dataclass
class ServiceClients:
    overseerr: Optional[OverseerrClient] = None
    radarr: Optional[RadarrClient] = None
    sonarr: Optional[SonarrClient] = None
    tautulli: Optional[TautulliClient] = None

    def configured(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) is not None for f in fields(self)}

    async def aclose(self) -> None:
        for f in fields(self):
            client = getattr(self, f.name)
            if client is not None:
                await client.aclose()


def build_service_clients(settings: Settings) -> ServiceClients:
    """Build a client for every service whose URL and API key are both set."""
    timeout = settings.HTTP_TIMEOUT_SECONDS
    clients = ServiceClients()

    if settings.OVERSEERR_URL and settings.OVERSEERR_API_KEY:
        clients.overseerr = OverseerrClient(
            settings.OVERSEERR_URL,
            settings.OVERSEERR_API_KEY,
            timeout=timeout,
            page_size=settings.OVERSEERR_PAGE_SIZE,
        )
    if settings.RADARR_URL and settings.RADARR_API_KEY:
        clients.radarr = RadarrClient(settings.RADARR_URL, settings.RADARR_API_KEY, timeout=timeout)
    if settings.SONARR_URL and settings.SONARR_API_KEY:
        clients.sonarr = SonarrClient(settings.SONARR_URL, settings.SONARR_API_KEY, timeout=timeout)
    if settings.TAUTULLI_URL and settings.TAUTULLI_API_KEY:
        clients.tautulli = TautulliClient(
            settings.TAUTULLI_URL,
            settings.TAUTULLI_API_KEY,
            timeout=timeout,
            history_length=settings.TAUTULLI_HISTORY_LENGTH,
        )

    logger.info("service_clients_built", **clients.configured())
    return clients
