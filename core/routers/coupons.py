"""
Coupons Router

Admin coupon management plus the user-facing list and apply endpoints.
Static paths are declared before `/{coupon_id}`.
"""
from uuid import UUID

from fastapi import APIRouter, Depends

from core.auth import AuthUser, verify_admin, verify_user
from core.services.domains import CouponService

from .deps import get_coupon_service
from .models import ApplyCouponRequest, CreateCouponRequest, UpdateCouponRequest

router = APIRouter(prefix="/coupons", tags=["coupons"])


# ==================== USER ====================

@router.get("/user/my-coupons")
async def my_coupons(
    user: AuthUser = Depends(verify_user),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.find_available()


@router.post("/apply")
async def apply_coupon(
    request: ApplyCouponRequest,
    user: AuthUser = Depends(verify_user),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.apply(request.code)


# ==================== ADMIN ====================

@router.post("")
async def create_coupon(
    request: CreateCouponRequest,
    admin: AuthUser = Depends(verify_admin),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.create(request.model_dump(), admin.id)


@router.get("")
async def list_coupons(
    admin: AuthUser = Depends(verify_admin),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.find_all()


@router.get("/{coupon_id}")
async def get_coupon(
    coupon_id: UUID,
    admin: AuthUser = Depends(verify_admin),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.find_one(str(coupon_id))


@router.patch("/{coupon_id}")
async def update_coupon(
    coupon_id: UUID,
    request: UpdateCouponRequest,
    admin: AuthUser = Depends(verify_admin),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.update(str(coupon_id), request.model_dump(exclude_unset=True))


@router.delete("/{coupon_id}")
async def delete_coupon(
    coupon_id: UUID,
    admin: AuthUser = Depends(verify_admin),
    service: CouponService = Depends(get_coupon_service),
):
    return await service.remove(str(coupon_id))
