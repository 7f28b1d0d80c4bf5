"""Authentication package."""
from .bearer import AuthUser, verify_admin, verify_user

__all__ = [
    "AuthUser",
    "verify_user",
    "verify_admin",
]
