"""
Tests for CartService
"""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from core.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidRequestError,
    NotFoundError,
    UniqueViolationError,
)
from core.services.domains import CartService


@pytest.fixture
def stocked(product_repo):
    product_repo.stock.update({"variant-a": 5, "variant-b": 10})
    return product_repo


class TestGetOrCreateCart:
    """Lazy cart creation."""

    @pytest.mark.asyncio
    async def test_creates_once(self, cart_service, cart_repo):
        first = await cart_service.get_or_create_cart("user-1")
        second = await cart_service.get_or_create_cart("user-1")

        assert first == second
        assert cart_repo.carts == {"user-1": first}

    @pytest.mark.asyncio
    async def test_concurrent_creation_returns_same_cart(self, cart_service, cart_repo):
        ids = await asyncio.gather(*[cart_service.get_or_create_cart("user-1") for _ in range(5)])

        assert len(set(ids)) == 1
        assert len(cart_repo.carts) == 1


class TestAddItem:
    """Stock-aware merge of repeated adds."""

    @pytest.mark.asyncio
    async def test_add_new_item(self, cart_service, cart_repo, stocked):
        result = await cart_service.add_item("user-1", "variant-a", 2)

        assert result["success"] is True
        assert result["message"] == "Item added to cart"
        assert result["item"]["quantity"] == 2
        assert len(cart_repo.rows_for("user-1")) == 1

    @pytest.mark.asyncio
    async def test_unknown_variant(self, cart_service, stocked):
        with pytest.raises(NotFoundError, match="Product variant not found"):
            await cart_service.add_item("user-1", "missing", 1)

    @pytest.mark.asyncio
    async def test_first_add_beyond_stock(self, cart_service, cart_repo, stocked):
        with pytest.raises(InsufficientStockError) as exc_info:
            await cart_service.add_item("user-1", "variant-a", 6)

        assert exc_info.value.available == 5
        assert "Available: 5" in exc_info.value.message
        assert cart_repo.rows_for("user-1") == []

    @pytest.mark.asyncio
    async def test_repeated_adds_merge_until_stock_runs_out(self, cart_service, cart_repo, stocked):
        await cart_service.add_item("user-1", "variant-a", 2)
        await cart_service.add_item("user-1", "variant-a", 2)

        with pytest.raises(InsufficientStockError) as exc_info:
            await cart_service.add_item("user-1", "variant-a", 2)

        assert exc_info.value.available == 5
        assert exc_info.value.requested == 6
        assert exc_info.value.message == (
            "Not enough stock available. Available: 5, requested total: 6"
        )
        rows = cart_repo.rows_for("user-1")
        assert len(rows) == 1
        assert rows[0]["quantity"] == 4

    @pytest.mark.asyncio
    async def test_concurrent_adds_sum_into_one_row(self, cart_repo, stocked, user_repo, mock_mail):
        adders = 5
        service = CartService(cart_repo, stocked, user_repo, mail=mock_mail, max_attempts=adders)

        await asyncio.gather(*[service.add_item("user-1", "variant-b", 1) for _ in range(adders)])

        rows = cart_repo.rows_for("user-1")
        assert len(rows) == 1
        assert rows[0]["quantity"] == adders

    @pytest.mark.asyncio
    async def test_concurrent_adds_never_exceed_stock(self, cart_repo, stocked, user_repo, mock_mail):
        service = CartService(cart_repo, stocked, user_repo, mail=mock_mail, max_attempts=10)

        results = await asyncio.gather(
            *[service.add_item("user-1", "variant-a", 2) for _ in range(4)],
            return_exceptions=True,
        )

        rows = cart_repo.rows_for("user-1")
        assert len(rows) == 1
        assert rows[0]["quantity"] <= 5
        added = sum(1 for r in results if isinstance(r, dict))
        assert rows[0]["quantity"] == 2 * added
        assert all(isinstance(r, (dict, InsufficientStockError)) for r in results)

    @pytest.mark.asyncio
    async def test_lost_races_raise_conflict(self, cart_service, cart_repo, stocked):
        cart_repo.add_row("user-1", "variant-b", 1)

        async def always_lose(item_id, expected, new):
            return None

        cart_repo.compare_and_set_quantity = always_lose

        with pytest.raises(ConflictError):
            await cart_service.add_item("user-1", "variant-b", 1)
        assert cart_repo.rows_for("user-1")[0]["quantity"] == 1


class TestGetUserCart:
    """Cart reads and purchased item purge."""

    @pytest.mark.asyncio
    async def test_purchased_variants_are_purged(self, cart_service, cart_repo):
        cart_repo.add_row("user-1", "variant-a", 1)
        cart_repo.add_row("user-1", "variant-b", 2)
        cart_repo.paid_variants["user-1"] = {"variant-a"}

        cart = await cart_service.get_user_cart("user-1")

        assert [item["variant"]["id"] for item in cart["items"]] == ["variant-b"]
        assert cart_repo.cart_touched[cart["id"]] == 1
        assert all(row["variant_id"] != "variant-a" for row in cart_repo.rows_for("user-1"))

    @pytest.mark.asyncio
    async def test_purge_failure_does_not_break_read(self, cart_service, cart_repo):
        cart_repo.add_row("user-1", "variant-a", 1)
        cart_repo.fail_paid_lookup = True

        cart = await cart_service.get_user_cart("user-1")

        assert len(cart["items"]) == 1

    @pytest.mark.asyncio
    async def test_purge_transport_error_does_not_break_read(self, cart_service, cart_repo):
        cart_repo.add_row("user-1", "variant-a", 1)

        async def timed_out(user_id):
            raise httpx.ReadTimeout("paid orders lookup timed out")

        cart_repo.get_paid_variant_ids = timed_out

        cart = await cart_service.get_user_cart("user-1")

        assert [item["variant"]["id"] for item in cart["items"]] == ["variant-a"]

    @pytest.mark.asyncio
    async def test_image_lookup_error_keeps_item(self, cart_service, cart_repo):
        cart_repo.add_row("user-1", "variant-a", 1)

        async def unreachable(product_id):
            raise httpx.ConnectError("storage unreachable")

        cart_repo.list_product_images = unreachable

        cart = await cart_service.get_user_cart("user-1")

        assert len(cart["items"]) == 1
        assert "images" not in cart["items"][0]["variant"]["product"]

    @pytest.mark.asyncio
    async def test_product_images_attached(self, cart_service, cart_repo):
        cart_repo.add_row("user-1", "variant-a", 1)
        cart_repo.product_images["product-1"] = [{"id": "img-1", "url": "https://cdn/img.png"}]

        cart = await cart_service.get_user_cart("user-1")

        assert cart["user_id"] == "user-1"
        assert cart["items"][0]["variant"]["product"]["images"][0]["id"] == "img-1"

    @pytest.mark.asyncio
    async def test_new_user_gets_empty_cart(self, cart_service, cart_repo):
        cart = await cart_service.get_user_cart("user-2")

        assert cart["items"] == []
        assert cart_repo.carts["user-2"] == cart["id"]


class TestSyncCart:
    """Client sync and abandoned cart reminder."""

    @pytest.mark.asyncio
    async def test_sync_upserts_lines(self, cart_service, cart_repo, stocked, mock_mail):
        cart_repo.add_row("user-1", "variant-a", 1)

        result = await cart_service.sync_cart("user-1", [
            {"variant_id": "variant-a", "quantity": 3, "assembly_required": True},
            {"variant_id": "variant-b", "quantity": 2},
        ])

        assert result == {"success": True, "message": "Cart synced successfully"}
        rows = {row["variant_id"]: row for row in cart_repo.rows_for("user-1")}
        assert rows["variant-a"]["quantity"] == 3
        assert rows["variant-a"]["assembly_required"] is True
        assert rows["variant-b"]["quantity"] == 2
        mock_mail.send_abandoned_cart_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sync_validates_everything_before_writing(self, cart_service, cart_repo, stocked):
        with pytest.raises(InsufficientStockError):
            await cart_service.sync_cart("user-1", [
                {"variant_id": "variant-b", "quantity": 1},
                {"variant_id": "variant-a", "quantity": 9},
            ])

        assert cart_repo.rows_for("user-1") == []

    @pytest.mark.asyncio
    async def test_sync_unknown_variant(self, cart_service, stocked):
        with pytest.raises(InvalidRequestError, match="Stock issue"):
            await cart_service.sync_cart("user-1", [{"variant_id": "missing", "quantity": 1}])

    @pytest.mark.asyncio
    async def test_old_item_sends_one_reminder(self, cart_service, cart_repo, stocked, mock_mail):
        cart_repo.add_row("user-1", "variant-a", 1, created_at=datetime.now(UTC) - timedelta(hours=25))
        cart_repo.add_row("user-1", "variant-b", 1, created_at=datetime.now(UTC) - timedelta(hours=30))

        await cart_service.sync_cart("user-1", [{"variant_id": "variant-a", "quantity": 2}])

        mock_mail.send_abandoned_cart_email.assert_awaited_once_with(
            "buyer@example.com", "Alex", "https://shop.example.com/cart"
        )

    @pytest.mark.asyncio
    async def test_reminder_uses_injected_clock(self, cart_repo, stocked, user_repo, mock_mail):
        created = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        service = CartService(
            cart_repo, stocked, user_repo, mail=mock_mail,
            clock=lambda: created + timedelta(hours=24), frontend_url="https://shop.example.com",
        )
        cart_repo.add_row("user-1", "variant-a", 1, created_at=created)

        await service.sync_cart("user-1", [{"variant_id": "variant-a", "quantity": 1}])

        mock_mail.send_abandoned_cart_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reminder_defaults_customer_name(self, cart_service, cart_repo, stocked, user_repo, mock_mail):
        user_repo.users["user-1"].name = None
        cart_repo.add_row("user-1", "variant-a", 1, created_at=datetime.now(UTC) - timedelta(days=2))

        await cart_service.sync_cart("user-1", [])

        assert mock_mail.send_abandoned_cart_email.await_args.args[1] == "Customer"

    @pytest.mark.asyncio
    async def test_mail_failure_does_not_fail_sync(self, cart_service, cart_repo, stocked, mock_mail):
        mock_mail.send_abandoned_cart_email.side_effect = RuntimeError("SendGrid down")
        cart_repo.add_row("user-1", "variant-a", 1, created_at=datetime.now(UTC) - timedelta(days=2))

        result = await cart_service.sync_cart("user-1", [{"variant_id": "variant-a", "quantity": 1}])

        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_sync_insert_race_becomes_update(self, cart_service, cart_repo, stocked):
        await cart_service.get_or_create_cart("user-1")
        original_insert = cart_repo.insert_item

        async def concurrent_insert(cart_id, variant_id, quantity, assembly_required=False):
            cart_repo.add_row("user-1", variant_id, 1)
            return await original_insert(cart_id, variant_id, quantity, assembly_required)

        cart_repo.insert_item = concurrent_insert

        await cart_service.sync_cart("user-1", [
            {"variant_id": "variant-b", "quantity": 3, "assembly_required": True},
        ])

        rows = cart_repo.rows_for("user-1")
        assert len(rows) == 1
        assert rows[0]["quantity"] == 3
        assert rows[0]["assembly_required"] is True

    @pytest.mark.asyncio
    async def test_sync_insert_conflict_without_row_is_raised(self, cart_service, cart_repo, stocked):
        async def phantom_conflict(cart_id, variant_id, quantity, assembly_required=False):
            raise UniqueViolationError("duplicate key value violates unique constraint")

        cart_repo.insert_item = phantom_conflict

        with pytest.raises(UniqueViolationError):
            await cart_service.sync_cart("user-1", [{"variant_id": "variant-b", "quantity": 1}])
        assert cart_repo.rows_for("user-1") == []


class TestUpdateAndRemove:
    """Ownership checks and removals."""

    @pytest.mark.asyncio
    async def test_update_quantity(self, cart_service, cart_repo, stocked):
        row = cart_repo.add_row("user-1", "variant-a", 1)

        result = await cart_service.update_item("user-1", row["id"], quantity=4)

        assert result["item"]["quantity"] == 4

    @pytest.mark.asyncio
    async def test_update_beyond_stock(self, cart_service, cart_repo, stocked):
        row = cart_repo.add_row("user-1", "variant-a", 1)

        with pytest.raises(InsufficientStockError, match=r"Requested quantity \(7\) exceeds available stock \(5\)"):
            await cart_service.update_item("user-1", row["id"], quantity=7)

    @pytest.mark.asyncio
    async def test_update_requires_a_field(self, cart_service, cart_repo):
        row = cart_repo.add_row("user-1", "variant-a", 1)

        with pytest.raises(InvalidRequestError):
            await cart_service.update_item("user-1", row["id"])

    @pytest.mark.asyncio
    async def test_other_users_item_is_not_found(self, cart_service, cart_repo, stocked):
        row = cart_repo.add_row("user-2", "variant-a", 1)

        with pytest.raises(NotFoundError, match="Cart item not found"):
            await cart_service.update_item("user-1", row["id"], assembly_required=True)
        with pytest.raises(NotFoundError):
            await cart_service.remove_item("user-1", row["id"])
        assert row["id"] in cart_repo.items

    @pytest.mark.asyncio
    async def test_remove_item(self, cart_service, cart_repo):
        row = cart_repo.add_row("user-1", "variant-a", 1)

        result = await cart_service.remove_item("user-1", row["id"])

        assert result["message"] == "Item removed from cart"
        assert cart_repo.items == {}

    @pytest.mark.asyncio
    async def test_remove_items_all_or_nothing(self, cart_service, cart_repo):
        mine = cart_repo.add_row("user-1", "variant-a", 1)
        theirs = cart_repo.add_row("user-2", "variant-b", 1)

        with pytest.raises(NotFoundError) as exc_info:
            await cart_service.remove_items("user-1", [mine["id"], theirs["id"]])

        assert exc_info.value.message == f"Cart items not found: {theirs['id']}"
        assert mine["id"] in cart_repo.items

    @pytest.mark.asyncio
    async def test_remove_items(self, cart_service, cart_repo):
        first = cart_repo.add_row("user-1", "variant-a", 1)
        second = cart_repo.add_row("user-1", "variant-b", 1)

        result = await cart_service.remove_items("user-1", [first["id"], second["id"]])

        assert len(result["deleted_items"]) == 2
        assert result["message"] == "Successfully removed 2 items from cart"
        assert cart_repo.rows_for("user-1") == []

    @pytest.mark.asyncio
    async def test_clear_cart(self, cart_service, cart_repo):
        cart_repo.add_row("user-1", "variant-a", 1)
        other = cart_repo.add_row("user-2", "variant-a", 1)

        result = await cart_service.clear_cart("user-1")

        assert result["message"] == "Cart cleared successfully"
        assert list(cart_repo.items) == [other["id"]]

    @pytest.mark.asyncio
    async def test_clear_missing_cart(self, cart_service):
        with pytest.raises(NotFoundError, match="Cart not found"):
            await cart_service.clear_cart("nobody")
