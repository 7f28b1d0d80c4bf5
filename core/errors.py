"""
Error constants and the exception hierarchy shared by services and routers.

Services raise these; `api/index.py` turns any ShopError into a JSON
response with the matching status code.
"""

from typing import Any

# Cart errors
ERROR_CART_NOT_FOUND = "Cart not found"
ERROR_CART_ITEM_NOT_FOUND = "Cart item not found"
ERROR_VARIANT_NOT_FOUND = "Product variant not found"
ERROR_CART_CREATE_FAILED = "Failed to create cart"
ERROR_CART_CONFLICT = "Cart item is being modified concurrently, please retry"

# Zone errors
ERROR_ZIP_CODES_TAKEN = "The following zip codes already exist in other zones"

# Coupon errors
ERROR_COUPON_NOT_FOUND = "Coupon not found"
ERROR_COUPON_INVALID = "Invalid or expired coupon"
ERROR_COUPON_EXHAUSTED = "Coupon usage limit exceeded"
ERROR_COUPON_CODE_TAKEN = "Coupon code already exists"

# Auth errors
ERROR_UNAUTHORIZED = "Unauthorized"
ERROR_ADMIN_REQUIRED = "Admin access required"

# Generic errors
ERROR_INTERNAL = "Internal server error"


class ShopError(Exception):
    """Base error carrying an HTTP status and a machine-readable code."""

    status_code = 500
    default_code = "INTERNAL"

    def __init__(self, message: str, code: str | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class NotFoundError(ShopError):
    """Entity missing, or owned by another user."""

    status_code = 404
    default_code = "NOT_FOUND"


class InvalidRequestError(ShopError):
    """Validation failure the client can fix."""

    status_code = 400
    default_code = "INVALID_REQUEST"


class InsufficientStockError(InvalidRequestError):
    """Requested quantity exceeds the variant stock."""

    default_code = "INSUFFICIENT_STOCK"

    def __init__(self, message: str, available: int, requested: int) -> None:
        super().__init__(message, available=available, requested=requested)
        self.available = available
        self.requested = requested


class ConflictError(ShopError):
    """Concurrent writers collided and the collision could not be resolved."""

    status_code = 409
    default_code = "CONFLICT"


class UniqueViolationError(ConflictError):
    """Postgres rejected a write on a unique constraint (SQLSTATE 23505)."""

    default_code = "UNIQUE_VIOLATION"


class UnexpectedError(ShopError):
    """Unclassified failure, logged before being raised."""

    status_code = 500
    default_code = "UNEXPECTED"


class StoreError(UnexpectedError):
    """Row store returned an error that is not a known constraint violation."""

    default_code = "STORE_ERROR"

    def __init__(self, message: str, store_code: str | None = None) -> None:
        super().__init__(message)
        self.store_code = store_code

    def to_dict(self) -> dict[str, Any]:
        # Never leak raw database messages to clients
        return {"detail": ERROR_INTERNAL, "code": self.code}
