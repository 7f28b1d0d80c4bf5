"""Cart Repository - carts and cart_items tables.

All methods use async/await with supabase-py v2.
"""

from datetime import UTC, datetime

from core.services.models import CartItem

from .base import BaseRepository

CART_ITEM_COLUMNS = "id, cart_id, variant_id, quantity, assembly_required, created_at, updated_at"

# Item with variant, product, category and variant-level images embedded
CART_ITEM_DETAIL_SELECT = """
    id,
    quantity,
    assembly_required,
    created_at,
    updated_at,
    variant:product_variants(
        id, product_id, sku, price, size, color, stock, tags, material, brand,
        featured, delivery_time_days, assemble_charges, created_at, updated_at,
        product:products(
            id, name, description, category_id, base_price, delivery_info,
            created_at, updated_at,
            category:categories(
                id, name, slug, parent_id, description, order, image_url,
                featured, created_at, updated_at
            )
        ),
        variant_images:product_images!variant_id(
            id, url, type, order, created_at, updated_at
        )
    )
"""

PRODUCT_IMAGE_COLUMNS = "id, url, type, order, created_at, updated_at"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class CartRepository(BaseRepository):
    """Cart and cart item database operations."""

    # ==================== CARTS ====================

    async def get_cart_id(self, user_id: str) -> str | None:
        row = await self._first(
            self.client.table("carts").select("id").eq("user_id", user_id).limit(1),
            "cart lookup",
        )
        return row["id"] if row else None

    async def create_cart(self, user_id: str) -> str:
        """Insert a cart row. Raises UniqueViolationError if the user has one."""
        row = await self._first(
            self.client.table("carts").insert({"user_id": user_id}),
            "cart creation",
        )
        return row["id"]

    async def touch_cart(self, cart_id: str) -> None:
        await self._execute(
            self.client.table("carts").update({"updated_at": _now_iso()}).eq("id", cart_id),
            "cart timestamp update",
        )

    # ==================== ITEMS: READS ====================

    async def get_item_by_variant(self, cart_id: str, variant_id: str) -> CartItem | None:
        row = await self._first(
            self.client.table("cart_items")
            .select(CART_ITEM_COLUMNS)
            .eq("cart_id", cart_id)
            .eq("variant_id", variant_id)
            .limit(1),
            "cart item lookup",
        )
        return CartItem(**row) if row else None

    async def get_owned_items(self, user_id: str, item_ids: list[str]) -> list[CartItem]:
        """Items among `item_ids` whose cart belongs to `user_id`."""
        rows = await self._rows(
            self.client.table("cart_items")
            .select(f"{CART_ITEM_COLUMNS}, carts!inner(user_id)")
            .in_("id", item_ids)
            .eq("carts.user_id", user_id),
            "cart item ownership check",
        )
        return [CartItem(**row) for row in rows]

    async def get_owned_item(self, user_id: str, item_id: str) -> CartItem | None:
        items = await self.get_owned_items(user_id, [item_id])
        return items[0] if items else None

    async def list_items_detailed(self, cart_id: str) -> list[dict]:
        return await self._rows(
            self.client.table("cart_items")
            .select(CART_ITEM_DETAIL_SELECT)
            .eq("cart_id", cart_id)
            .order("created_at", desc=True),
            "cart items fetch",
        )

    async def list_product_images(self, product_id: str) -> list[dict]:
        """Images attached to the product itself, not to a variant."""
        return await self._rows(
            self.client.table("product_images")
            .select(PRODUCT_IMAGE_COLUMNS)
            .eq("product_id", product_id)
            .is_("variant_id", "null")
            .order("order"),
            "product images fetch",
        )

    async def list_item_timestamps(self, cart_id: str) -> list[dict]:
        return await self._rows(
            self.client.table("cart_items").select("id, created_at").eq("cart_id", cart_id),
            "cart item timestamps fetch",
        )

    async def get_paid_variant_ids(self, user_id: str) -> set[str]:
        """Variant ids appearing in this user's paid orders."""
        rows = await self._rows(
            self.client.table("order_items")
            .select("variant_id, order:orders!inner(id, user_id, status)")
            .eq("order.user_id", user_id)
            .eq("order.status", "paid"),
            "paid order items fetch",
        )
        return {row["variant_id"] for row in rows if row.get("variant_id")}

    # ==================== ITEMS: WRITES ====================

    async def insert_item(
        self,
        cart_id: str,
        variant_id: str,
        quantity: int,
        assembly_required: bool = False,
    ) -> CartItem:
        """Insert a cart item. Raises UniqueViolationError if (cart, variant) exists."""
        row = await self._first(
            self.client.table("cart_items").insert(
                {
                    "cart_id": cart_id,
                    "variant_id": variant_id,
                    "quantity": quantity,
                    "assembly_required": assembly_required,
                }
            ),
            "cart item insert",
        )
        return CartItem(**row)

    async def compare_and_set_quantity(
        self, item_id: str, expected_quantity: int, new_quantity: int
    ) -> CartItem | None:
        """Set quantity only if it still equals `expected_quantity`.

        Returns the updated item, or None when another writer changed the
        row (or deleted it) since it was read.
        """
        row = await self._first(
            self.client.table("cart_items")
            .update({"quantity": new_quantity, "updated_at": _now_iso()})
            .eq("id", item_id)
            .eq("quantity", expected_quantity),
            "cart item quantity swap",
        )
        return CartItem(**row) if row else None

    async def update_item(self, item_id: str, fields: dict) -> CartItem | None:
        row = await self._first(
            self.client.table("cart_items")
            .update({**fields, "updated_at": _now_iso()})
            .eq("id", item_id),
            "cart item update",
        )
        return CartItem(**row) if row else None

    async def delete_items(self, item_ids: list[str]) -> list[CartItem]:
        rows = await self._rows(
            self.client.table("cart_items").delete().in_("id", item_ids),
            "cart items delete",
        )
        return [CartItem(**row) for row in rows]

    async def delete_items_by_variants(self, cart_id: str, variant_ids: list[str]) -> list[CartItem]:
        rows = await self._rows(
            self.client.table("cart_items")
            .delete()
            .eq("cart_id", cart_id)
            .in_("variant_id", variant_ids),
            "purchased cart items delete",
        )
        return [CartItem(**row) for row in rows]

    async def clear_items(self, cart_id: str) -> None:
        await self._execute(
            self.client.table("cart_items").delete().eq("cart_id", cart_id),
            "cart clear",
        )
