"""
Shared Dependencies for Routers

Domain services resolved from the Database singleton. Tests override
these with `app.dependency_overrides`.
"""

from core.services.database import get_database
from core.services.domains import CartService, CouponService, FloorService, ZoneService


def get_cart_service() -> CartService:
    return get_database().cart


def get_zone_service() -> ZoneService:
    return get_database().zones


def get_coupon_service() -> CouponService:
    return get_database().coupons


def get_floor_service() -> FloorService:
    return get_database().floors
