"""Floor Repository - floors table."""

from datetime import UTC, datetime
from typing import Any

from core.services.models import Floor

from .base import BaseRepository, to_payload


class FloorRepository(BaseRepository):
    """Floor database operations."""

    async def list_all(self) -> list[Floor]:
        rows = await self._rows(
            self.client.table("floors").select("*").order("name"),
            "floors fetch",
        )
        return [Floor(**row) for row in rows]

    async def get(self, floor_id: str) -> Floor | None:
        row = await self._first(
            self.client.table("floors").select("*").eq("id", floor_id).limit(1),
            "floor fetch",
        )
        return Floor(**row) if row else None

    async def insert(self, data: dict[str, Any]) -> Floor:
        row = await self._first(self.client.table("floors").insert(to_payload(data)), "floor insert")
        return Floor(**row)

    async def update(self, floor_id: str, fields: dict[str, Any]) -> Floor | None:
        row = await self._first(
            self.client.table("floors")
            .update({**to_payload(fields), "updated_at": datetime.now(UTC).isoformat()})
            .eq("id", floor_id),
            "floor update",
        )
        return Floor(**row) if row else None

    async def delete(self, floor_id: str) -> None:
        await self._execute(
            self.client.table("floors").delete().eq("id", floor_id),
            "floor delete",
        )
