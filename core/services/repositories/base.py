"""Base repository with shared Supabase client and error translation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from postgrest.exceptions import APIError
from supabase._async.client import AsyncClient

from core.errors import StoreError, UniqueViolationError
from core.logging import get_logger

logger = get_logger(__name__)

UNIQUE_VIOLATION_CODE = "23505"

_DUPLICATE_KEYWORDS = ("23505", "duplicate key", "unique constraint")


def to_json_value(value: Any) -> Any:
    """Make Decimal, datetime and Enum values acceptable to the JSON encoder of postgrest."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def to_payload(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: to_json_value(value) for key, value in fields.items()}


def is_unique_violation(error: Exception) -> bool:
    """Check if a store error is a unique constraint violation."""
    code = getattr(error, "code", None)
    if code is not None and str(code) == UNIQUE_VIOLATION_CODE:
        return True
    message = (getattr(error, "message", None) or str(error)).lower()
    return any(keyword in message for keyword in _DUPLICATE_KEYWORDS)


class BaseRepository:
    """Base class for all repositories.

    Every query goes through `_execute`, so callers only ever see
    `UniqueViolationError` or `StoreError` instead of raw postgrest errors.
    """

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def _execute(self, query: Any, context: str) -> Any:
        """Run a built query and translate store errors.

        Args:
            query: postgrest request builder (anything with `execute()`)
            context: short description used in logs and error messages

        Returns:
            postgrest APIResponse
        """
        try:
            return await query.execute()
        except APIError as e:
            if is_unique_violation(e):
                logger.info("Unique violation during %s", context)
                raise UniqueViolationError(f"Duplicate row during {context}") from e
            logger.error(
                "Store error during %s: code=%s message=%s", context, e.code, e.message
            )
            raise StoreError(f"Store error during {context}", store_code=e.code) from e

    async def _rows(self, query: Any, context: str) -> list[dict]:
        result = await self._execute(query, context)
        return list(result.data or [])

    async def _first(self, query: Any, context: str) -> dict | None:
        rows = await self._rows(query, context)
        return rows[0] if rows else None
