"""Core library exposing domain models, settings and exceptions."""

from .settings import Settings, get_settings
from .exceptions import (
    AuthenticationError,
    DomainError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ProviderError,
    ValidationError,
)
from .models import User, Note, Screenshot, Video

__all__ = [
    "Settings",
    "get_settings",
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "PermissionDeniedError",
    "ProviderError",
    "PersistenceError",
    "User",
    "Note",
    "Screenshot",
    "Video",
]
