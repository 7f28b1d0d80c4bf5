"""Database Models - Pydantic models for rows read from Supabase."""
from decimal import Decimal, InvalidOperation
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_serializer, field_validator


def _to_decimal(value) -> Decimal:
    """Convert numeric column values (int, float, str) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        # via str so 0.1 stays 0.1
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


class CartItem(BaseModel):
    """Row of cart_items as returned by writes."""
    id: str
    cart_id: Optional[str] = None
    variant_id: str
    quantity: int
    assembly_required: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"


class Variant(BaseModel):
    """Stock view of a product variant."""
    id: str
    stock: int = 0

    class Config:
        extra = "ignore"


class UserContact(BaseModel):
    """Fields needed to address a user by email."""
    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None

    class Config:
        extra = "ignore"


class Zone(BaseModel):
    """Delivery zone with the zip codes it claims."""
    id: str
    zone_name: str
    delivery_charges: Decimal
    zip_codes: list[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("delivery_charges", mode="before")
    @classmethod
    def convert_charges_to_decimal(cls, v):
        return _to_decimal(v)

    @field_serializer("delivery_charges")
    def serialize_charges(self, v: Decimal) -> float:
        return float(v)

    @classmethod
    def from_row(cls, row: dict) -> "Zone":
        """Build from a zones row with embedded zone_areas(zip_code)."""
        areas = row.get("zone_areas") or []
        return cls(
            id=row["id"],
            zone_name=row["zone_name"],
            delivery_charges=row.get("delivery_charges"),
            zip_codes=[area["zip_code"] for area in areas],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


class ZoneByZipCode(BaseModel):
    """Reverse lookup result: the zone owning one zip code."""
    id: str
    zone_name: str
    delivery_charges: Decimal
    zip_code: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("delivery_charges", mode="before")
    @classmethod
    def convert_charges_to_decimal(cls, v):
        return _to_decimal(v)

    @field_serializer("delivery_charges")
    def serialize_charges(self, v: Decimal) -> float:
        return float(v)


class Floor(BaseModel):
    """Floor pricing attribute."""
    id: str
    name: str
    charges: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"

    @field_validator("charges", mode="before")
    @classmethod
    def convert_charges_to_decimal(cls, v):
        return _to_decimal(v)

    @field_serializer("charges")
    def serialize_charges(self, v: Decimal) -> float:
        return float(v)


class Coupon(BaseModel):
    """Coupon model."""
    id: str
    name: Optional[str] = None
    code: str
    discount_type: str  # percentage | fixed
    discount_value: Decimal
    expires_at: Optional[datetime] = None
    max_uses: int = 1
    used_count: int = 0
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"

    @field_validator("discount_value", mode="before")
    @classmethod
    def convert_value_to_decimal(cls, v):
        return _to_decimal(v)

    @field_serializer("discount_value")
    def serialize_value(self, v: Decimal) -> float:
        return float(v)

    @field_validator("used_count", mode="before")
    @classmethod
    def default_used_count(cls, v):
        return v or 0

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    @property
    def is_exhausted(self) -> bool:
        return self.used_count >= self.max_uses
