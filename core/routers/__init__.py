"""
FastAPI Routers Package

Endpoints grouped by resource. All routers are included in api/index.py.
"""

from core.routers.cart import router as cart_router
from core.routers.zones import router as zones_router
from core.routers.coupons import router as coupons_router
from core.routers.floors import router as floors_router

__all__ = [
    "cart_router",
    "zones_router",
    "coupons_router",
    "floors_router",
]
