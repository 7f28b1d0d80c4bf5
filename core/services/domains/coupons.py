"""Coupon Domain Service.

Admin CRUD plus the user-facing lookups (available coupons, apply,
validate). Codes are stored upper-case and matched case-insensitively.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_random

from core.errors import (
    ERROR_COUPON_CODE_TAKEN,
    ERROR_COUPON_EXHAUSTED,
    ERROR_COUPON_INVALID,
    ERROR_COUPON_NOT_FOUND,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    UniqueViolationError,
)
from core.logging import get_logger, sanitize_id_for_logging
from core.services.models import Coupon
from core.services.repositories import CouponRepository

logger = get_logger(__name__)

USAGE_INCREMENT_ATTEMPTS = 5


class _UsageRace(Exception):
    """used_count changed between read and write."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CouponService:
    """Coupon domain service."""

    def __init__(self, repo: CouponRepository, clock: Callable[[], datetime] = _utcnow) -> None:
        self.repo = repo
        self.clock = clock

    # ==================== Admin ====================

    async def create(self, data: dict[str, Any], admin_id: str) -> Coupon:
        payload = {**data, "code": data["code"].upper(), "used_count": 0, "created_by": admin_id}
        try:
            coupon = await self.repo.insert(payload)
        except UniqueViolationError as e:
            raise InvalidRequestError(ERROR_COUPON_CODE_TAKEN) from e
        logger.info("Coupon %s created by %s", coupon.code, sanitize_id_for_logging(admin_id))
        return coupon

    async def find_all(self) -> list[Coupon]:
        return await self.repo.list_all()

    async def find_one(self, coupon_id: str) -> Coupon:
        coupon = await self.repo.get(coupon_id)
        if not coupon:
            raise NotFoundError(ERROR_COUPON_NOT_FOUND)
        return coupon

    async def update(self, coupon_id: str, data: dict[str, Any]) -> Coupon:
        current = await self.find_one(coupon_id)
        if not data:
            return current
        if data.get("code"):
            data = {**data, "code": data["code"].upper()}
        try:
            coupon = await self.repo.update(coupon_id, data)
        except UniqueViolationError as e:
            raise InvalidRequestError(ERROR_COUPON_CODE_TAKEN) from e
        if not coupon:
            raise NotFoundError(ERROR_COUPON_NOT_FOUND)
        return coupon

    async def remove(self, coupon_id: str) -> dict[str, str]:
        await self.repo.delete(coupon_id)
        return {"message": "Coupon deleted successfully"}

    # ==================== User ====================

    async def find_available(self) -> list[Coupon]:
        """Active, unexpired coupons that still have uses left."""
        # PostgREST can't compare two columns, so the usage filter runs here
        coupons = await self.repo.list_active(self.clock())
        return [coupon for coupon in coupons if not coupon.is_exhausted]

    async def apply(self, code: str) -> Coupon:
        now = self.clock()
        coupon = await self.repo.get_active_by_code(code.strip().upper(), now)
        if not coupon or coupon.is_expired(now):
            raise NotFoundError(ERROR_COUPON_INVALID)
        if coupon.is_exhausted:
            raise InvalidRequestError(ERROR_COUPON_EXHAUSTED)
        return coupon

    async def validate(self, code: str) -> Coupon | None:
        """Like apply() but returns None instead of raising."""
        now = self.clock()
        coupon = await self.repo.get_active_by_code(code.strip().upper(), now)
        if not coupon or coupon.is_expired(now) or coupon.is_exhausted:
            return None
        return coupon

    async def increment_used_count(self, coupon_id: str) -> int:
        """Record one use. Returns the new used_count."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(USAGE_INCREMENT_ATTEMPTS),
                wait=wait_random(0, 0.05),
                retry=retry_if_exception_type(_UsageRace),
            ):
                with attempt:
                    coupon = await self.find_one(coupon_id)
                    new_count = coupon.used_count + 1
                    if not await self.repo.compare_and_set_used_count(
                        coupon_id, coupon.used_count, new_count
                    ):
                        raise _UsageRace()
        except RetryError as e:
            raise ConflictError("Coupon usage is being updated concurrently, please retry") from e
        return new_count
