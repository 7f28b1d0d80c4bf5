"""Floor Domain Service - floors are a delivery pricing attribute."""

from decimal import Decimal
from typing import Any

from core.errors import NotFoundError
from core.services.models import Floor
from core.services.repositories import FloorRepository


class FloorService:
    """Floor CRUD."""

    def __init__(self, repo: FloorRepository) -> None:
        self.repo = repo

    async def find_all(self) -> list[Floor]:
        return await self.repo.list_all()

    async def find_one(self, floor_id: str) -> Floor:
        floor = await self.repo.get(floor_id)
        if not floor:
            raise NotFoundError(f"Floor with ID {floor_id} not found")
        return floor

    async def create(self, name: str, charges: Decimal) -> Floor:
        return await self.repo.insert({"name": name, "charges": charges})

    async def update(
        self, floor_id: str, name: str | None = None, charges: Decimal | None = None
    ) -> Floor:
        current = await self.find_one(floor_id)
        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if charges is not None:
            fields["charges"] = charges
        if not fields:
            return current
        floor = await self.repo.update(floor_id, fields)
        if not floor:
            raise NotFoundError(f"Floor with ID {floor_id} not found")
        return floor

    async def remove(self, floor_id: str) -> Floor:
        floor = await self.find_one(floor_id)
        await self.repo.delete(floor_id)
        return floor
