"""
Storefront API - Main FastAPI Application

Single entry point for the cart, zone, coupon and floor routes.
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.db import get_redis
from core.errors import ERROR_INTERNAL, ShopError
from core.logging import get_logger
from core.middleware.rate_limit import RateLimitMiddleware
from core.routers import cart_router, coupons_router, floors_router, zones_router
from core.services.database import close_database, init_database

logger = get_logger(__name__)

FRONTEND_URL = os.environ.get("FRONTEND_URL", "")


# ==================== FASTAPI APP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    await init_database()
    yield
    # Shutdown
    await close_database()


app = FastAPI(
    title="Storefront API",
    description="Carts, delivery zones, coupons and floors",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL] if FRONTEND_URL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware, redis_client=get_redis())


# ==================== ERROR HANDLERS ====================

async def shop_error_handler(request: Request, exc: ShopError):
    """Domain errors carry their own status code and payload."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request: {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": ERROR_INTERNAL})


app.add_exception_handler(ShopError, shop_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# ==================== ROUTES ====================

app.include_router(cart_router)
app.include_router(zones_router)
app.include_router(coupons_router)
app.include_router(floors_router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "storefront"}
