"""
Zones Router

Public zone reads and admin zone management.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from core.auth import AuthUser, verify_admin
from core.services.domains import ZoneService

from .deps import get_zone_service
from .models import CreateZoneRequest, UpdateZoneRequest

router = APIRouter(prefix="/zones", tags=["zones"])


# ==================== PUBLIC ====================

@router.get("")
async def list_zones(service: ZoneService = Depends(get_zone_service)):
    return await service.find_all()


@router.get("/{zone_id}")
async def get_zone(zone_id: UUID, service: ZoneService = Depends(get_zone_service)):
    return await service.find_one(str(zone_id))


# ==================== ADMIN ====================

@router.post("/admin", status_code=status.HTTP_201_CREATED)
async def create_zone(
    request: CreateZoneRequest,
    admin: AuthUser = Depends(verify_admin),
    service: ZoneService = Depends(get_zone_service),
):
    return await service.create_zone(request.zone_name, request.zip_codes, request.delivery_charges)


@router.put("/admin/{zone_id}")
async def update_zone(
    zone_id: UUID,
    request: UpdateZoneRequest,
    admin: AuthUser = Depends(verify_admin),
    service: ZoneService = Depends(get_zone_service),
):
    return await service.update_zone(
        str(zone_id),
        request.zip_codes,
        zone_name=request.zone_name,
        delivery_charges=request.delivery_charges,
    )


@router.delete("/admin/{zone_id}")
async def delete_zone(
    zone_id: UUID,
    admin: AuthUser = Depends(verify_admin),
    service: ZoneService = Depends(get_zone_service),
):
    return await service.remove_zone(str(zone_id))
