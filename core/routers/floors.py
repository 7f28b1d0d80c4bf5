"""
Floors Router

Public floor reads and admin floor management.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from core.auth import AuthUser, verify_admin
from core.services.domains import FloorService

from .deps import get_floor_service
from .models import CreateFloorRequest, UpdateFloorRequest

router = APIRouter(prefix="/floors", tags=["floors"])


@router.get("")
async def list_floors(service: FloorService = Depends(get_floor_service)):
    return await service.find_all()


@router.get("/{floor_id}")
async def get_floor(floor_id: UUID, service: FloorService = Depends(get_floor_service)):
    return await service.find_one(str(floor_id))


@router.post("/admin", status_code=status.HTTP_201_CREATED)
async def create_floor(
    request: CreateFloorRequest,
    admin: AuthUser = Depends(verify_admin),
    service: FloorService = Depends(get_floor_service),
):
    return await service.create(request.name, request.charges)


@router.put("/admin/{floor_id}")
async def update_floor(
    floor_id: UUID,
    request: UpdateFloorRequest,
    admin: AuthUser = Depends(verify_admin),
    service: FloorService = Depends(get_floor_service),
):
    return await service.update(str(floor_id), name=request.name, charges=request.charges)


@router.delete("/admin/{floor_id}")
async def delete_floor(
    floor_id: UUID,
    admin: AuthUser = Depends(verify_admin),
    service: FloorService = Depends(get_floor_service),
):
    return await service.remove(str(floor_id))
