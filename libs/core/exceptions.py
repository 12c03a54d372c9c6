"""Base exceptions for the domain layer."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class NotFoundError(DomainError):
    """Raised when an entity cannot be located."""


class ValidationError(DomainError):
    """Raised when data fails domain validation rules."""


class AuthenticationError(DomainError):
    """Raised when a request carries no resolvable user."""


class PermissionDeniedError(DomainError):
    """Raised when the resolved user may not perform the action."""


class ProviderError(DomainError):
    """Raised when the Google Drive API call fails."""


class PersistenceError(DomainError):
    """Raised when the database cannot be read or written."""


__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "PermissionDeniedError",
    "ProviderError",
    "PersistenceError",
]
