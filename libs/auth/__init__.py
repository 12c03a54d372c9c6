"""Authentication: session tokens, bearer resolution and Google sign-in."""

from .gate import require_admin, resolve_current_user
from .tokens import bearer_token, decode_token, issue_access_token, issue_refresh_token

__all__ = [
    "require_admin",
    "resolve_current_user",
    "bearer_token",
    "decode_token",
    "issue_access_token",
    "issue_refresh_token",
]
