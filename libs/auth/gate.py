from __future__ import annotations

from typing import Any, Iterable, Optional

from libs.core.exceptions import PermissionDeniedError
from libs.db import UserRepo, models

from .tokens import ACCESS, decode_token


async def resolve_current_user(
    token: Optional[str], users: UserRepo, expected_type: str = ACCESS
) -> Optional[models.User]:
    """Map a bearer token to its user; ``None`` means unauthenticated."""
    if not token:
        return None
    claims = decode_token(token, expected_type)
    if claims is None or not claims.get("sub"):
        return None
    return await users.get(claims["sub"])


def require_admin(user: Any, admin_emails: Iterable[str]) -> None:
    if getattr(user, "email", None) not in set(admin_emails):
        raise PermissionDeniedError("Admin access required")


__all__ = ["resolve_current_user", "require_admin"]
