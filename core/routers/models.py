"""
API Pydantic Models

Request bodies shared by the cart, zone, coupon and floor routers.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints, model_validator

ZipCode = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


# ==================== CART MODELS ====================

class CartItemRequest(BaseModel):
    variant_id: UUID
    quantity: int = Field(1, ge=1)
    assembly_required: bool = False


class SyncCartRequest(BaseModel):
    items: list[CartItemRequest]


class UpdateCartItemRequest(BaseModel):
    quantity: Optional[int] = Field(None, ge=1)
    assembly_required: Optional[bool] = None

    @model_validator(mode="after")
    def require_one_field(self):
        if self.quantity is None and self.assembly_required is None:
            raise ValueError("Either quantity or assembly_required must be provided")
        return self


class DeleteCartItemsRequest(BaseModel):
    item_ids: list[UUID] = Field(..., min_length=1)


# ==================== ZONE MODELS ====================

class CreateZoneRequest(BaseModel):
    zone_name: str = Field(..., min_length=1, max_length=100)
    zip_codes: list[ZipCode] = Field(..., min_length=1)
    delivery_charges: Decimal = Field(..., ge=0)


class UpdateZoneRequest(BaseModel):
    zone_name: Optional[str] = Field(None, min_length=1, max_length=100)
    zip_codes: list[ZipCode] = Field(..., min_length=1)
    delivery_charges: Optional[Decimal] = Field(None, ge=0)


# ==================== COUPON MODELS ====================

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CreateCouponRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=20)
    code: str = Field(..., min_length=3, max_length=20)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., ge=0)
    expires_at: datetime
    max_uses: int = Field(1, ge=1)
    is_active: bool = True


class UpdateCouponRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=20)
    code: Optional[str] = Field(None, min_length=3, max_length=20)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1)


# ==================== FLOOR MODELS ====================

class CreateFloorRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    charges: Decimal = Field(..., ge=0)


class UpdateFloorRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    charges: Optional[Decimal] = Field(None, ge=0)
