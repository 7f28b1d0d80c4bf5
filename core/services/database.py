"""
Supabase Database Service

Wires the async Supabase client into repositories and domain services.

Usage:
    from core.services.database import get_database

    # In async context (after init_database() called at startup):
    db = get_database()
    cart = await db.cart.get_user_cart(user_id)

    # At FastAPI startup (lifespan):
    await init_database()
"""

import asyncio
from typing import Optional

from supabase._async.client import AsyncClient

from core.db import get_supabase, reset_supabase
from core.logging import get_logger
from core.services.domains import CartService, CouponService, FloorService, ZoneService
from core.services.mail import MailService
from core.services.repositories import (
    CartRepository,
    CouponRepository,
    FloorRepository,
    ProductRepository,
    UserRepository,
    ZoneRepository,
)

logger = get_logger(__name__)


class Database:
    """
    Repositories and domain services sharing one Supabase client.

    IMPORTANT: This class uses async Supabase client (AsyncClient).
    Must be initialized via async factory method `create()` or `init_database()`.
    """

    def __init__(self, client: AsyncClient, mail: MailService | None = None):
        """Private constructor. Use Database.create() or init_database() instead."""
        self.client = client
        self.mail = mail or MailService()

        # Repositories
        self.carts_repo = CartRepository(self.client)
        self.products_repo = ProductRepository(self.client)
        self.users_repo = UserRepository(self.client)
        self.zones_repo = ZoneRepository(self.client)
        self.coupons_repo = CouponRepository(self.client)
        self.floors_repo = FloorRepository(self.client)

        # Domains
        self.cart = CartService(self.carts_repo, self.products_repo, self.users_repo, mail=self.mail)
        self.zones = ZoneService(self.zones_repo)
        self.coupons = CouponService(self.coupons_repo)
        self.floors = FloorService(self.floors_repo)

    @classmethod
    async def create(cls) -> "Database":
        """Async factory method: creates the Supabase client and wires everything."""
        client = await get_supabase()
        return cls(client)

    async def get_user_role(self, user_id: str) -> str | None:
        return await self.users_repo.get_role(user_id)

    async def aclose(self) -> None:
        await self.mail.aclose()


# Singleton instance (initialized at startup via init_database())
_db: Database | None = None
_db_lock: Optional[asyncio.Lock] = None


def _get_lock() -> asyncio.Lock:
    """Get or create async lock for initialization."""
    global _db_lock
    if _db_lock is None:
        _db_lock = asyncio.Lock()
    return _db_lock


async def init_database() -> Database:
    """Initialize async database singleton.

    Called at FastAPI startup (lifespan).

    Returns:
        Database instance (also cached as singleton)
    """
    global _db
    if _db is not None:
        return _db

    async with _get_lock():
        # Double-check after acquiring lock
        if _db is None:
            logger.info("Initializing async Supabase client...")
            _db = await Database.create()
            logger.info("Async Supabase client initialized successfully")
    return _db


async def close_database() -> None:
    """Release the mail client and drop the cached Supabase client."""
    global _db
    if _db is not None:
        try:
            await _db.aclose()
        except Exception as e:
            logger.warning(f"Error closing database services: {e}")
        _db = None
        reset_supabase()
        logger.info("Supabase client closed")


def get_database() -> Database:
    """Get database instance (sync accessor).

    Raises:
        RuntimeError: If database not initialized

    """
    if _db is None:
        raise RuntimeError(
            "Database not initialized. Call 'await init_database()' at startup."
        )
    return _db
