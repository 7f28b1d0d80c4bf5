"""Cart Domain Service.

Cart lifecycle and item reconciliation on top of CartRepository:
- one cart per user, created lazily
- stock-aware merge of repeated adds (compare-and-swap on quantity)
- purge of items the user already bought in a paid order
- client sync with the abandoned-cart reminder

There are no multi-statement transactions here. Concurrent writers are
resolved through the unique constraints on carts.user_id and
cart_items(cart_id, variant_id) plus conditional updates.
"""

import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_random

from core.errors import (
    ERROR_CART_CONFLICT,
    ERROR_CART_CREATE_FAILED,
    ERROR_CART_ITEM_NOT_FOUND,
    ERROR_CART_NOT_FOUND,
    ERROR_VARIANT_NOT_FOUND,
    ConflictError,
    InsufficientStockError,
    InvalidRequestError,
    NotFoundError,
    StoreError,
    UnexpectedError,
    UniqueViolationError,
)
from core.logging import get_logger, sanitize_id_for_logging
from core.services.models import CartItem, Variant
from core.services.repositories import CartRepository, ProductRepository, UserRepository

logger = get_logger(__name__)

CART_ITEM_MAX_ATTEMPTS = int(os.environ.get("CART_ITEM_MAX_ATTEMPTS", "3"))
ABANDONED_CART_THRESHOLD_HOURS = float(os.environ.get("ABANDONED_CART_THRESHOLD_HOURS", "24"))
FRONTEND_URL = os.environ.get("FRONTEND_URL", "")

DEFAULT_CUSTOMER_NAME = "Customer"


class _LostUpdate(Exception):
    """Quantity changed between read and conditional write."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class CartService:
    """Cart domain service."""

    def __init__(
        self,
        carts: CartRepository,
        products: ProductRepository,
        users: UserRepository,
        mail=None,
        clock: Callable[[], datetime] = _utcnow,
        max_attempts: int | None = None,
        abandoned_after: timedelta | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self.carts = carts
        self.products = products
        self.users = users
        self.mail = mail
        self.clock = clock
        self.max_attempts = max_attempts or CART_ITEM_MAX_ATTEMPTS
        self.abandoned_after = abandoned_after or timedelta(hours=ABANDONED_CART_THRESHOLD_HOURS)
        self.frontend_url = FRONTEND_URL if frontend_url is None else frontend_url

    # ==================== CART ====================

    async def get_or_create_cart(self, user_id: str) -> str:
        """Return the user's cart id, creating the cart on first use."""
        cart_id = await self.carts.get_cart_id(user_id)
        if cart_id:
            return cart_id

        try:
            return await self.carts.create_cart(user_id)
        except UniqueViolationError:
            # Another request created it first
            cart_id = await self.carts.get_cart_id(user_id)
            if cart_id:
                return cart_id
            raise UnexpectedError(ERROR_CART_CREATE_FAILED)
        except StoreError as e:
            raise UnexpectedError(ERROR_CART_CREATE_FAILED) from e

    async def get_user_cart(self, user_id: str) -> dict[str, Any]:
        """Cart with hydrated items, newest first. Purchased items are purged first."""
        cart_id = await self.get_or_create_cart(user_id)
        await self.purge_fulfilled_items(user_id, cart_id)

        items = await self.carts.list_items_detailed(cart_id)
        for item in items:
            product = (item.get("variant") or {}).get("product")
            if not product:
                continue
            try:
                product["images"] = await self.carts.list_product_images(product["id"])
            except Exception:
                # Item is still shown, without product-level images
                logger.warning("Product images unavailable for %s", sanitize_id_for_logging(product["id"]))

        return {"id": cart_id, "user_id": user_id, "items": items}

    async def purge_fulfilled_items(self, user_id: str, cart_id: str) -> int:
        """Delete cart items whose variant appears in a paid order of this user.

        Best-effort: failures are logged and 0 is returned.
        """
        try:
            paid_variants = await self.carts.get_paid_variant_ids(user_id)
            if not paid_variants:
                return 0
            removed = await self.carts.delete_items_by_variants(cart_id, sorted(paid_variants))
            if removed:
                await self.carts.touch_cart(cart_id)
                logger.info(
                    "Removed %d purchased items from cart %s",
                    len(removed),
                    sanitize_id_for_logging(cart_id),
                )
            return len(removed)
        except Exception:
            logger.error(
                "Failed to purge purchased items for user %s",
                sanitize_id_for_logging(user_id),
                exc_info=True,
            )
            return 0

    # ==================== ADD ====================

    async def add_item(
        self,
        user_id: str,
        variant_id: str,
        quantity: int,
        assembly_required: bool = False,
    ) -> dict[str, Any]:
        """Add a variant to the cart, merging with an existing line.

        Raises:
            NotFoundError: variant does not exist
            InsufficientStockError: stock below the requested (merged) quantity
            ConflictError: concurrent writers kept winning the race

        """
        variant = await self.products.get_variant(variant_id)
        if not variant:
            raise NotFoundError(ERROR_VARIANT_NOT_FOUND)
        if variant.stock < quantity:
            raise InsufficientStockError(
                f"Not enough stock available. Available: {variant.stock}",
                available=variant.stock,
                requested=quantity,
            )

        cart_id = await self.get_or_create_cart(user_id)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_random(0, 0.05),
                retry=retry_if_exception_type((_LostUpdate, UniqueViolationError)),
            ):
                with attempt:
                    item = await self._merge_item(cart_id, variant, quantity, assembly_required)
        except RetryError as e:
            logger.warning(
                "Cart item merge gave up after %d attempts (cart=%s variant=%s)",
                self.max_attempts,
                sanitize_id_for_logging(cart_id),
                sanitize_id_for_logging(variant_id),
            )
            raise ConflictError(ERROR_CART_CONFLICT) from e

        return {"success": True, "message": "Item added to cart", "item": item.model_dump(mode="json")}

    async def _merge_item(
        self, cart_id: str, variant: Variant, quantity: int, assembly_required: bool
    ) -> CartItem:
        existing = await self.carts.get_item_by_variant(cart_id, variant.id)
        if existing is None:
            # UniqueViolationError here means a concurrent insert won
            return await self.carts.insert_item(cart_id, variant.id, quantity, assembly_required)

        total = existing.quantity + quantity
        if variant.stock < total:
            raise InsufficientStockError(
                f"Not enough stock available. Available: {variant.stock}, requested total: {total}",
                available=variant.stock,
                requested=total,
            )

        updated = await self.carts.compare_and_set_quantity(existing.id, existing.quantity, total)
        if updated is None:
            raise _LostUpdate()
        return updated

    # ==================== SYNC ====================

    async def sync_cart(self, user_id: str, items: list[dict[str, Any]]) -> dict[str, Any]:
        """Overwrite cart lines with the client's copy.

        Every line is validated before anything is written. The write loop
        itself is not atomic: a failure midway leaves earlier lines synced.
        """
        variants = await self.products.get_variants(list({item["variant_id"] for item in items}))
        for item in items:
            variant = variants.get(item["variant_id"])
            if variant is None:
                raise InvalidRequestError(f"Stock issue: variant {item['variant_id']} not found")
            if variant.stock < item["quantity"]:
                raise InsufficientStockError(
                    f"Stock issue: variant {variant.id} has {variant.stock} available",
                    available=variant.stock,
                    requested=item["quantity"],
                )

        cart_id = await self.get_or_create_cart(user_id)

        for item in items:
            await self._upsert_line(
                cart_id, item["variant_id"], item["quantity"], bool(item.get("assembly_required", False))
            )

        await self._notify_if_abandoned(user_id, cart_id)
        return {"success": True, "message": "Cart synced successfully"}

    async def _upsert_line(
        self, cart_id: str, variant_id: str, quantity: int, assembly_required: bool
    ) -> None:
        fields = {"quantity": quantity, "assembly_required": assembly_required}
        existing = await self.carts.get_item_by_variant(cart_id, variant_id)
        if existing:
            await self.carts.update_item(existing.id, fields)
            return
        try:
            await self.carts.insert_item(cart_id, variant_id, quantity, assembly_required)
        except UniqueViolationError:
            existing = await self.carts.get_item_by_variant(cart_id, variant_id)
            if existing is None:
                raise
            await self.carts.update_item(existing.id, fields)

    async def _notify_if_abandoned(self, user_id: str, cart_id: str) -> bool:
        """Send the abandoned-cart email when any line is older than the threshold."""
        try:
            rows = await self.carts.list_item_timestamps(cart_id)
            now = self.clock()
            stale = any(
                (created := _parse_timestamp(row.get("created_at"))) is not None
                and now - created >= self.abandoned_after
                for row in rows
            )
            if not stale or self.mail is None:
                return False

            contact = await self.users.get_contact(user_id)
            if not contact or not contact.email:
                return False

            await self.mail.send_abandoned_cart_email(
                contact.email,
                contact.name or DEFAULT_CUSTOMER_NAME,
                f"{self.frontend_url}/cart",
            )
            return True
        except Exception:
            logger.error(
                "Abandoned cart notification failed for user %s",
                sanitize_id_for_logging(user_id),
                exc_info=True,
            )
            return False

    # ==================== UPDATE / REMOVE ====================

    async def update_item(
        self,
        user_id: str,
        item_id: str,
        quantity: int | None = None,
        assembly_required: bool | None = None,
    ) -> dict[str, Any]:
        if quantity is None and assembly_required is None:
            raise InvalidRequestError("Either quantity or assembly_required must be provided")

        item = await self.carts.get_owned_item(user_id, item_id)
        if not item:
            raise NotFoundError(ERROR_CART_ITEM_NOT_FOUND)

        fields: dict[str, Any] = {}
        if quantity is not None:
            variant = await self.products.get_variant(item.variant_id)
            if not variant:
                raise NotFoundError(ERROR_VARIANT_NOT_FOUND)
            if variant.stock < quantity:
                raise InsufficientStockError(
                    f"Requested quantity ({quantity}) exceeds available stock ({variant.stock})",
                    available=variant.stock,
                    requested=quantity,
                )
            fields["quantity"] = quantity
        if assembly_required is not None:
            fields["assembly_required"] = assembly_required

        updated = await self.carts.update_item(item_id, fields)
        if not updated:
            # Deleted between the ownership check and the write
            raise NotFoundError(ERROR_CART_ITEM_NOT_FOUND)
        return {"success": True, "message": "Cart item updated", "item": updated.model_dump(mode="json")}

    async def remove_item(self, user_id: str, item_id: str) -> dict[str, Any]:
        item = await self.carts.get_owned_item(user_id, item_id)
        if not item:
            raise NotFoundError(ERROR_CART_ITEM_NOT_FOUND)
        await self.carts.delete_items([item_id])
        return {"success": True, "message": "Item removed from cart"}

    async def remove_items(self, user_id: str, item_ids: list[str]) -> dict[str, Any]:
        """Delete several items at once. All of them must belong to the user."""
        requested = list(dict.fromkeys(item_ids))
        owned = await self.carts.get_owned_items(user_id, requested)
        owned_ids = {item.id for item in owned}
        missing = [item_id for item_id in requested if item_id not in owned_ids]
        if missing:
            raise NotFoundError(f"Cart items not found: {', '.join(missing)}", missing_ids=missing)

        deleted = await self.carts.delete_items(requested)
        return {
            "success": True,
            "message": f"Successfully removed {len(deleted)} items from cart",
            "deleted_items": [item.model_dump(mode="json") for item in deleted],
        }

    async def clear_cart(self, user_id: str) -> dict[str, Any]:
        cart_id = await self.carts.get_cart_id(user_id)
        if not cart_id:
            raise NotFoundError(ERROR_CART_NOT_FOUND)
        await self.carts.clear_items(cart_id)
        return {"success": True, "message": "Cart cleared successfully"}
