"""Coupon Repository - coupons table."""

from datetime import UTC, datetime
from typing import Any

from core.services.models import Coupon

from .base import BaseRepository, to_payload


class CouponRepository(BaseRepository):
    """Coupon database operations."""

    async def insert(self, data: dict[str, Any]) -> Coupon:
        row = await self._first(self.client.table("coupons").insert(to_payload(data)), "coupon insert")
        return Coupon(**row)

    async def list_all(self) -> list[Coupon]:
        rows = await self._rows(
            self.client.table("coupons").select("*").order("created_at", desc=True),
            "coupons fetch",
        )
        return [Coupon(**row) for row in rows]

    async def get(self, coupon_id: str) -> Coupon | None:
        row = await self._first(
            self.client.table("coupons").select("*").eq("id", coupon_id).limit(1),
            "coupon fetch",
        )
        return Coupon(**row) if row else None

    async def get_active_by_code(self, code: str, now: datetime) -> Coupon | None:
        """Active, unexpired coupon with this code."""
        row = await self._first(
            self.client.table("coupons")
            .select("*")
            .eq("code", code)
            .eq("is_active", True)
            .gte("expires_at", now.isoformat())
            .limit(1),
            "coupon lookup by code",
        )
        return Coupon(**row) if row else None

    async def list_active(self, now: datetime) -> list[Coupon]:
        rows = await self._rows(
            self.client.table("coupons")
            .select("*")
            .eq("is_active", True)
            .gte("expires_at", now.isoformat())
            .order("created_at", desc=True),
            "active coupons fetch",
        )
        return [Coupon(**row) for row in rows]

    async def update(self, coupon_id: str, fields: dict[str, Any]) -> Coupon | None:
        row = await self._first(
            self.client.table("coupons")
            .update({**to_payload(fields), "updated_at": datetime.now(UTC).isoformat()})
            .eq("id", coupon_id),
            "coupon update",
        )
        return Coupon(**row) if row else None

    async def compare_and_set_used_count(
        self, coupon_id: str, expected: int, new_value: int
    ) -> bool:
        """Bump used_count only if nobody else did since it was read."""
        row = await self._first(
            self.client.table("coupons")
            .update({"used_count": new_value, "updated_at": datetime.now(UTC).isoformat()})
            .eq("id", coupon_id)
            .eq("used_count", expected),
            "coupon usage increment",
        )
        return row is not None

    async def delete(self, coupon_id: str) -> None:
        await self._execute(
            self.client.table("coupons").delete().eq("id", coupon_id),
            "coupon delete",
        )
