"""Pytest configuration and fixtures"""
import asyncio
import os
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("SENDGRID_API_KEY", "test_sendgrid_key")
os.environ.setdefault("EMAIL_FROM", "shop@example.com")
os.environ.setdefault("FRONTEND_URL", "https://shop.example.com")

from core.errors import StoreError, UniqueViolationError  # noqa: E402
from core.services.models import CartItem, UserContact, Variant, Zone, ZoneByZipCode  # noqa: E402


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


# ==================== SUPABASE MOCKS ====================

@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client with a chainable query builder"""
    client = Mock()

    table_mock = Mock()
    for method in ("select", "insert", "update", "delete", "upsert", "eq", "in_", "is_",
                   "limit", "order", "gte", "lt"):
        getattr(table_mock, method).return_value = table_mock
    table_mock.execute = AsyncMock(return_value=Mock(data=[]))

    client.table.return_value = table_mock
    client.auth.get_user = AsyncMock()

    return client


# ==================== IN-MEMORY REPOSITORIES ====================
# Each method yields once so that concurrent callers interleave between
# statements, the way they would against a real database.

class FakeCartRepository:
    """CartRepository backed by dicts."""

    def __init__(self):
        self.carts: dict[str, str] = {}  # user_id -> cart_id
        self.cart_touched: dict[str, int] = {}
        self.items: dict[str, dict] = {}
        self.paid_variants: dict[str, set[str]] = {}
        self.product_images: dict[str, list[dict]] = {}
        self.variant_info: dict[str, dict] = {}
        self.fail_paid_lookup = False

    async def get_cart_id(self, user_id):
        await asyncio.sleep(0)
        return self.carts.get(user_id)

    async def create_cart(self, user_id):
        await asyncio.sleep(0)
        if user_id in self.carts:
            raise UniqueViolationError("duplicate key value violates unique constraint")
        cart_id = _new_id()
        self.carts[user_id] = cart_id
        return cart_id

    async def touch_cart(self, cart_id):
        self.cart_touched[cart_id] = self.cart_touched.get(cart_id, 0) + 1

    def _cart_owner(self, cart_id):
        return next((user for user, cid in self.carts.items() if cid == cart_id), None)

    async def get_item_by_variant(self, cart_id, variant_id):
        await asyncio.sleep(0)
        for row in self.items.values():
            if row["cart_id"] == cart_id and row["variant_id"] == variant_id:
                return CartItem(**row)
        return None

    async def get_owned_items(self, user_id, item_ids):
        await asyncio.sleep(0)
        return [
            CartItem(**self.items[item_id])
            for item_id in item_ids
            if item_id in self.items and self._cart_owner(self.items[item_id]["cart_id"]) == user_id
        ]

    async def get_owned_item(self, user_id, item_id):
        items = await self.get_owned_items(user_id, [item_id])
        return items[0] if items else None

    async def list_items_detailed(self, cart_id):
        rows = [row for row in self.items.values() if row["cart_id"] == cart_id]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        result = []
        for row in rows:
            info = self.variant_info.get(row["variant_id"], {})
            result.append({
                "id": row["id"],
                "quantity": row["quantity"],
                "assembly_required": row["assembly_required"],
                "created_at": row["created_at"].isoformat(),
                "updated_at": row["updated_at"].isoformat(),
                "variant": {
                    "id": row["variant_id"],
                    "product": {"id": info.get("product_id", "product-1"), "name": info.get("name", "Sofa")},
                    "variant_images": [],
                },
            })
        return result

    async def list_product_images(self, product_id):
        return self.product_images.get(product_id, [])

    async def list_item_timestamps(self, cart_id):
        return [
            {"id": row["id"], "created_at": row["created_at"].isoformat()}
            for row in self.items.values()
            if row["cart_id"] == cart_id
        ]

    async def get_paid_variant_ids(self, user_id):
        if self.fail_paid_lookup:
            raise StoreError("paid order items fetch failed")
        return set(self.paid_variants.get(user_id, set()))

    async def insert_item(self, cart_id, variant_id, quantity, assembly_required=False):
        await asyncio.sleep(0)
        if any(r["cart_id"] == cart_id and r["variant_id"] == variant_id for r in self.items.values()):
            raise UniqueViolationError("duplicate key value violates unique constraint")
        now = _now()
        row = {
            "id": _new_id(),
            "cart_id": cart_id,
            "variant_id": variant_id,
            "quantity": quantity,
            "assembly_required": assembly_required,
            "created_at": now,
            "updated_at": now,
        }
        self.items[row["id"]] = row
        return CartItem(**row)

    async def compare_and_set_quantity(self, item_id, expected_quantity, new_quantity):
        await asyncio.sleep(0)
        row = self.items.get(item_id)
        if row is None or row["quantity"] != expected_quantity:
            return None
        row["quantity"] = new_quantity
        row["updated_at"] = _now()
        return CartItem(**row)

    async def update_item(self, item_id, fields):
        row = self.items.get(item_id)
        if row is None:
            return None
        row.update(fields)
        row["updated_at"] = _now()
        return CartItem(**row)

    async def delete_items(self, item_ids):
        return [CartItem(**self.items.pop(item_id)) for item_id in item_ids if item_id in self.items]

    async def delete_items_by_variants(self, cart_id, variant_ids):
        doomed = [
            item_id for item_id, row in self.items.items()
            if row["cart_id"] == cart_id and row["variant_id"] in variant_ids
        ]
        return await self.delete_items(doomed)

    async def clear_items(self, cart_id):
        for item_id in [i for i, row in self.items.items() if row["cart_id"] == cart_id]:
            del self.items[item_id]

    # helpers for tests
    def add_row(self, user_id, variant_id, quantity, created_at=None):
        cart_id = self.carts.setdefault(user_id, _new_id())
        created = created_at or _now()
        row = {
            "id": _new_id(),
            "cart_id": cart_id,
            "variant_id": variant_id,
            "quantity": quantity,
            "assembly_required": False,
            "created_at": created,
            "updated_at": created,
        }
        self.items[row["id"]] = row
        return row

    def rows_for(self, user_id):
        cart_id = self.carts.get(user_id)
        return [row for row in self.items.values() if row["cart_id"] == cart_id]


class FakeProductRepository:
    def __init__(self):
        self.stock: dict[str, int] = {}

    async def get_variant(self, variant_id):
        await asyncio.sleep(0)
        if variant_id not in self.stock:
            return None
        return Variant(id=variant_id, stock=self.stock[variant_id])

    async def get_variants(self, variant_ids):
        return {vid: Variant(id=vid, stock=self.stock[vid]) for vid in variant_ids if vid in self.stock}


class FakeUserRepository:
    def __init__(self):
        self.users: dict[str, UserContact] = {}

    async def get_contact(self, user_id):
        return self.users.get(user_id)

    async def get_role(self, user_id):
        user = self.users.get(user_id)
        return user.role if user else None


class FakeZoneRepository:
    """ZoneRepository with the unique(zip_code) constraint enforced."""

    def __init__(self):
        self.zones: dict[str, dict] = {}
        self.areas: dict[str, str] = {}  # zip_code -> zone_id
        self.fail_area_insert = False
        self.before_area_insert = None  # hook to simulate a concurrent writer

    def _zone(self, zone_id):
        row = self.zones[zone_id]
        codes = [code for code, zid in self.areas.items() if zid == zone_id]
        return Zone(**row, zip_codes=codes)

    async def list_zones(self):
        return sorted((self._zone(zid) for zid in self.zones), key=lambda z: z.zone_name)

    async def get_zone(self, zone_id):
        return self._zone(zone_id) if zone_id in self.zones else None

    async def insert_zone(self, zone_name, delivery_charges):
        await asyncio.sleep(0)
        zone_id = _new_id()
        now = _now()
        self.zones[zone_id] = {
            "id": zone_id,
            "zone_name": zone_name,
            "delivery_charges": delivery_charges,
            "created_at": now,
            "updated_at": now,
        }
        return zone_id

    async def update_zone(self, zone_id, fields):
        self.zones[zone_id].update(fields)
        self.zones[zone_id]["updated_at"] = _now()

    async def delete_zone(self, zone_id):
        self.zones.pop(zone_id, None)
        for code in [c for c, zid in self.areas.items() if zid == zone_id]:
            del self.areas[code]

    async def find_existing_zip_codes(self, zip_codes):
        await asyncio.sleep(0)
        return [code for code in zip_codes if code in self.areas]

    async def insert_areas(self, zone_id, zip_codes):
        if self.before_area_insert:
            await self.before_area_insert()
        if self.fail_area_insert:
            raise StoreError("zone areas insert failed")
        if any(code in self.areas for code in zip_codes):
            raise UniqueViolationError("duplicate key value violates unique constraint")
        for code in zip_codes:
            self.areas[code] = zone_id

    async def delete_areas(self, zone_id, zip_codes):
        for code in zip_codes:
            if self.areas.get(code) == zone_id:
                del self.areas[code]

    async def find_by_zip_code(self, zip_code):
        zone_id = self.areas.get(zip_code)
        if zone_id is None:
            return None
        return ZoneByZipCode(**self.zones[zone_id], zip_code=zip_code)


# ==================== FIXTURES ====================

@pytest.fixture
def cart_repo():
    return FakeCartRepository()


@pytest.fixture
def product_repo():
    return FakeProductRepository()


@pytest.fixture
def user_repo():
    repo = FakeUserRepository()
    repo.users["user-1"] = UserContact(id="user-1", email="buyer@example.com", name="Alex", role="user")
    return repo


@pytest.fixture
def zone_repo():
    return FakeZoneRepository()


@pytest.fixture
def mock_mail():
    """Mock MailService"""
    mail = Mock()
    mail.send_abandoned_cart_email = AsyncMock()
    mail.send_email = AsyncMock()
    mail.aclose = AsyncMock()
    return mail


@pytest.fixture
def cart_service(cart_repo, product_repo, user_repo, mock_mail):
    from core.services.domains import CartService

    return CartService(
        cart_repo,
        product_repo,
        user_repo,
        mail=mock_mail,
        frontend_url="https://shop.example.com",
    )


@pytest.fixture
def zone_service(zone_repo):
    from core.services.domains import ZoneService

    return ZoneService(zone_repo)
