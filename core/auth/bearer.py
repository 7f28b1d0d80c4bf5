"""Bearer token authentication and admin checks.

Tokens are Supabase Auth JWTs; verification is delegated to Supabase
(`auth.get_user`), roles come from the users table.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

from core.errors import ERROR_ADMIN_REQUIRED, ERROR_UNAUTHORIZED
from core.logging import get_logger, sanitize_id_for_logging
from core.services.database import get_database

logger = get_logger(__name__)

ADMIN_ROLE = "admin"


class AuthUser(BaseModel):
    """Authenticated caller."""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


async def verify_user(
    authorization: str = Header(None, alias="Authorization"),
) -> AuthUser:
    """
    Verify `Authorization: Bearer <jwt>` against Supabase Auth.
    Raises 401 when the header is missing or the token is rejected.
    """
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED)

    db = get_database()
    try:
        response = await db.client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"Token verification failed: {type(e).__name__}")
        raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED) from e

    user = getattr(response, "user", None)
    if not user or not user.id:
        raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED)

    return AuthUser(id=str(user.id), email=getattr(user, "email", None))


async def verify_admin(user: AuthUser = Depends(verify_user)) -> AuthUser:
    """
    Verify that the caller has the admin role.
    Returns the AuthUser with its role filled in.
    """
    db = get_database()
    role = await db.get_user_role(user.id)

    if role != ADMIN_ROLE:
        logger.warning(f"Admin access denied for user {sanitize_id_for_logging(user.id)}")
        raise HTTPException(status_code=403, detail=ERROR_ADMIN_REQUIRED)

    return user.model_copy(update={"role": role})
