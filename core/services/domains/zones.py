"""Zone Domain Service.

Delivery zones and the zip codes they claim. A zip code belongs to at most
one zone: zone_areas.zip_code is unique in the database, and the overlap
check below exists to name the offending codes in the error.
"""

from decimal import Decimal
from typing import Any

from core.errors import ERROR_ZIP_CODES_TAKEN, InvalidRequestError, NotFoundError, UniqueViolationError
from core.logging import get_logger, sanitize_id_for_logging
from core.services.models import Zone, ZoneByZipCode
from core.services.repositories import ZoneRepository
from core.services.saga import Saga

logger = get_logger(__name__)


def _unique(codes: list[str]) -> list[str]:
    return list(dict.fromkeys(codes))


def _taken_error(codes: list[str]) -> InvalidRequestError:
    return InvalidRequestError(f"{ERROR_ZIP_CODES_TAKEN}: {', '.join(codes)}", zip_codes=codes)


class ZoneService:
    """Zone domain service."""

    def __init__(self, repo: ZoneRepository) -> None:
        self.repo = repo

    async def find_all(self) -> list[Zone]:
        return await self.repo.list_zones()

    async def find_one(self, zone_id: str) -> Zone:
        zone = await self.repo.get_zone(zone_id)
        if not zone:
            raise NotFoundError(f"Zone with ID {zone_id} not found")
        return zone

    async def zip_codes_exist(self, zip_codes: list[str]) -> tuple[bool, list[str]]:
        """Which of `zip_codes` are already claimed, in the order requested."""
        requested = _unique(zip_codes)
        taken = set(await self.repo.find_existing_zip_codes(requested))
        existing = [code for code in requested if code in taken]
        return bool(existing), existing

    async def _claim(self, zone_id: str, zip_codes: list[str]) -> None:
        """Check then insert. A concurrent claim that slips past the check
        trips the unique constraint and is reported the same way."""
        exists, taken = await self.zip_codes_exist(zip_codes)
        if exists:
            raise _taken_error(taken)
        try:
            await self.repo.insert_areas(zone_id, zip_codes)
        except UniqueViolationError as e:
            _, taken = await self.zip_codes_exist(zip_codes)
            raise _taken_error(taken or zip_codes) from e

    async def create_zone(
        self, zone_name: str, zip_codes: list[str], delivery_charges: Decimal
    ) -> Zone:
        """Create a zone with its zip codes. Nothing is left behind on failure."""
        codes = _unique(zip_codes)

        async def insert_zone(_: dict[str, Any]) -> str:
            return await self.repo.insert_zone(zone_name, delivery_charges)

        async def delete_zone(zone_id: str) -> None:
            await self.repo.delete_zone(zone_id)

        async def claim_codes(results: dict[str, Any]) -> None:
            await self._claim(results["insert_zone"], codes)

        saga = Saga("create_zone")
        saga.add_step("insert_zone", insert_zone, compensate=delete_zone)
        saga.add_step("claim_zip_codes", claim_codes)
        results = await saga.run()

        zone_id = results["insert_zone"]
        logger.info("Zone %s created with %d zip codes", sanitize_id_for_logging(zone_id), len(codes))
        return await self.find_one(zone_id)

    async def update_zone(
        self,
        zone_id: str,
        zip_codes: list[str],
        zone_name: str | None = None,
        delivery_charges: Decimal | None = None,
    ) -> Zone:
        """Update fields and reconcile zip codes against the given list.

        Field changes are kept even if claiming new codes then fails.
        """
        current = await self.find_one(zone_id)

        fields: dict[str, Any] = {}
        if zone_name is not None:
            fields["zone_name"] = zone_name
        if delivery_charges is not None:
            fields["delivery_charges"] = delivery_charges
        if fields:
            await self.repo.update_zone(zone_id, fields)

        wanted = _unique(zip_codes)
        have = set(current.zip_codes)
        to_add = [code for code in wanted if code not in have]
        to_remove = [code for code in current.zip_codes if code not in set(wanted)]

        if to_add:
            await self._claim(zone_id, to_add)
        if to_remove:
            await self.repo.delete_areas(zone_id, to_remove)

        return await self.find_one(zone_id)

    async def remove_zone(self, zone_id: str) -> dict[str, str]:
        await self.repo.delete_zone(zone_id)
        return {"id": zone_id}

    async def find_by_zip_code(self, zip_code: str) -> ZoneByZipCode | None:
        return await self.repo.find_by_zip_code(zip_code)
