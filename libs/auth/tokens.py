"""Signed session tokens handed to the dashboard and the extension."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt

from libs.core.models import utcnow
from libs.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


def _issue(user: Any, token_type: str, ttl: timedelta, settings: Settings) -> str:
    now = utcnow()
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "googleId": user.google_id,
        "type": token_type,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def issue_access_token(user: Any, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return _issue(user, ACCESS, timedelta(minutes=settings.access_token_ttl_minutes), settings)


def issue_refresh_token(user: Any, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return _issue(user, REFRESH, timedelta(days=settings.refresh_token_ttl_days), settings)


def decode_token(
    token: str, expected_type: str = ACCESS, settings: Optional[Settings] = None
) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid token of ``expected_type``, else ``None``."""
    settings = settings or get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("token_rejected", extra={"reason": str(exc)})
        return None
    if claims.get("type") != expected_type:
        logger.info("token_rejected", extra={"reason": f"not an {expected_type} token"})
        return None
    return claims


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    return header[len("Bearer ") :].strip() or None


__all__ = [
    "issue_access_token",
    "issue_refresh_token",
    "decode_token",
    "bearer_token",
    "ACCESS",
    "REFRESH",
]
