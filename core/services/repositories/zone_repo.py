"""Zone Repository - zones and zone_areas tables."""

from datetime import UTC, datetime
from decimal import Decimal

from core.services.models import Zone, ZoneByZipCode

from .base import BaseRepository, to_json_value, to_payload

ZONE_SELECT = "id, zone_name, delivery_charges, created_at, updated_at, zone_areas(zip_code)"


class ZoneRepository(BaseRepository):
    """Zone database operations."""

    async def list_zones(self) -> list[Zone]:
        rows = await self._rows(
            self.client.table("zones").select(ZONE_SELECT).order("zone_name"),
            "zones fetch",
        )
        return [Zone.from_row(row) for row in rows]

    async def get_zone(self, zone_id: str) -> Zone | None:
        row = await self._first(
            self.client.table("zones").select(ZONE_SELECT).eq("id", zone_id).limit(1),
            "zone fetch",
        )
        return Zone.from_row(row) if row else None

    async def insert_zone(self, zone_name: str, delivery_charges: Decimal) -> str:
        row = await self._first(
            self.client.table("zones").insert(
                {"zone_name": zone_name, "delivery_charges": to_json_value(delivery_charges)}
            ),
            "zone insert",
        )
        return row["id"]

    async def update_zone(self, zone_id: str, fields: dict) -> None:
        payload = to_payload(fields)
        payload["updated_at"] = datetime.now(UTC).isoformat()
        await self._execute(
            self.client.table("zones").update(payload).eq("id", zone_id),
            "zone update",
        )

    async def delete_zone(self, zone_id: str) -> None:
        # zone_areas rows go with it (on delete cascade)
        await self._execute(
            self.client.table("zones").delete().eq("id", zone_id),
            "zone delete",
        )

    async def find_existing_zip_codes(self, zip_codes: list[str]) -> list[str]:
        """Zip codes from `zip_codes` already claimed by any zone."""
        if not zip_codes:
            return []
        rows = await self._rows(
            self.client.table("zone_areas").select("zip_code").in_("zip_code", zip_codes),
            "zip code overlap check",
        )
        return [row["zip_code"] for row in rows]

    async def insert_areas(self, zone_id: str, zip_codes: list[str]) -> None:
        """Bulk insert. Raises UniqueViolationError if any zip code is taken."""
        await self._execute(
            self.client.table("zone_areas").insert(
                [{"zone_id": zone_id, "zip_code": zip_code} for zip_code in zip_codes]
            ),
            "zone areas insert",
        )

    async def delete_areas(self, zone_id: str, zip_codes: list[str]) -> None:
        await self._execute(
            self.client.table("zone_areas")
            .delete()
            .eq("zone_id", zone_id)
            .in_("zip_code", zip_codes),
            "zone areas delete",
        )

    async def find_by_zip_code(self, zip_code: str) -> ZoneByZipCode | None:
        row = await self._first(
            self.client.table("zone_areas")
            .select("zip_code, zones(id, zone_name, delivery_charges, created_at, updated_at)")
            .eq("zip_code", zip_code)
            .limit(1),
            "zone lookup by zip code",
        )
        if not row or not row.get("zones"):
            return None
        return ZoneByZipCode(**row["zones"], zip_code=row["zip_code"])
