"""Product Repository - read-only access to product variants."""
from typing import Optional

from core.services.models import Variant

from .base import BaseRepository


class ProductRepository(BaseRepository):
    """Variant stock lookups for cart operations."""

    async def get_variant(self, variant_id: str) -> Optional[Variant]:
        """Get variant id and stock, None if the variant does not exist."""
        row = await self._first(
            self.client.table("product_variants").select("id, stock").eq("id", variant_id).limit(1),
            "variant lookup",
        )
        return Variant(**row) if row else None

    async def get_variants(self, variant_ids: list[str]) -> dict[str, Variant]:
        """Batch variant lookup keyed by id; missing ids are simply absent."""
        if not variant_ids:
            return {}
        rows = await self._rows(
            self.client.table("product_variants").select("id, stock").in_("id", variant_ids),
            "variants lookup",
        )
        return {row["id"]: Variant(**row) for row in rows}
