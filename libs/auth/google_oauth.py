"""Google sign-in: consent URL and code exchange."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from libs.core.exceptions import AuthenticationError
from libs.core.settings import Settings, get_settings
from libs.storage.drive import DRIVE_SCOPES, TOKEN_URI

LOGIN_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    *DRIVE_SCOPES,
]


@dataclass
class GoogleLogin:
    profile: Dict[str, Any]
    access_token: Optional[str]
    refresh_token: Optional[str]


def build_flow(settings: Optional[Settings] = None) -> Flow:
    settings = settings or get_settings()
    client_config = {
        "web": {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": TOKEN_URI,
            "redirect_uris": [settings.google_redirect_uri],
        }
    }
    # The callback runs in a different request, so no PKCE verifier survives.
    return Flow.from_client_config(
        client_config,
        scopes=LOGIN_SCOPES,
        redirect_uri=settings.google_redirect_uri,
        autogenerate_code_verifier=False,
    )


def authorization_url(settings: Optional[Settings] = None) -> str:
    url, _state = build_flow(settings).authorization_url(
        access_type="offline", prompt="consent", include_granted_scopes="true"
    )
    return url


def exchange_code(code: str, settings: Optional[Settings] = None) -> GoogleLogin:
    """Trade the callback ``code`` for tokens and the user's profile."""
    flow = build_flow(settings)
    try:
        flow.fetch_token(code=code)
        creds = flow.credentials
        oauth2 = build("oauth2", "v2", credentials=creds, cache_discovery=False)
        profile = oauth2.userinfo().get().execute()
    except Exception as exc:
        raise AuthenticationError(f"Google sign-in failed: {exc}") from exc
    return GoogleLogin(
        profile=profile, access_token=creds.token, refresh_token=creds.refresh_token
    )


__all__ = ["GoogleLogin", "authorization_url", "build_flow", "exchange_code", "LOGIN_SCOPES"]
