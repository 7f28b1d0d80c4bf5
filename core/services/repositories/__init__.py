"""
Repository Pattern for Database Operations

Provides clean separation of concerns:
- CartRepository: carts, cart items, purchased-item lookups
- ProductRepository: variant stock
- UserRepository: contact details and roles
- ZoneRepository: zones and zone areas
- CouponRepository: coupons
- FloorRepository: floors
"""
from .base import BaseRepository, is_unique_violation
from .cart_repo import CartRepository
from .product_repo import ProductRepository
from .user_repo import UserRepository
from .zone_repo import ZoneRepository
from .coupon_repo import CouponRepository
from .floor_repo import FloorRepository

__all__ = [
    "BaseRepository",
    "is_unique_violation",
    "CartRepository",
    "ProductRepository",
    "UserRepository",
    "ZoneRepository",
    "CouponRepository",
    "FloorRepository",
]
