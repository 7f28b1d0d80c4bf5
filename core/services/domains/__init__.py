"""Domain services wrapping repositories."""
from .cart import CartService
from .zones import ZoneService
from .coupons import CouponService
from .floors import FloorService

__all__ = [
    "CartService",
    "ZoneService",
    "CouponService",
    "FloorService",
]
