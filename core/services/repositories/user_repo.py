"""User Repository - read-only user lookups.

Users are created by the identity provider; this service only reads
contact details and roles.
"""

from core.services.models import UserContact

from .base import BaseRepository


class UserRepository(BaseRepository):
    """User database operations."""

    async def get_contact(self, user_id: str) -> UserContact | None:
        """Get email and display name for notifications."""
        row = await self._first(
            self.client.table("users").select("id, email, name").eq("id", user_id).limit(1),
            "user contact lookup",
        )
        return UserContact(**row) if row else None

    async def get_role(self, user_id: str) -> str | None:
        """Get the role column ("admin", "user", ...)."""
        row = await self._first(
            self.client.table("users").select("id, role").eq("id", user_id).limit(1),
            "user role lookup",
        )
        return row.get("role") if row else None
