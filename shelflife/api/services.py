"""
/api/v1/admin/services endpoints.
"""

from fastapi import APIRouter, Depends

from shelflife.auth import SessionUser
from shelflife.clients.registry import ServiceClients
from shelflife.deletion.orchestrator import service_status
from shelflife.dependencies import get_service_clients, require_admin, verify_api_key
from shelflife.schemas.deletion import ServiceStatusResponse

router = APIRouter(prefix="/api/v1/admin/services", tags=["services"], dependencies=[Depends(verify_api_key)])


@router.get("/status", response_model=ServiceStatusResponse)
async def get_service_status(
    admin: SessionUser = Depends(require_admin),
    clients: ServiceClients = Depends(get_service_clients),
):
    """Which deletion targets are configured."""
    return service_status(clients)
