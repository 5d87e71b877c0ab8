"""Errors raised by ResourceStore implementations.

Store implementations classify backend failures into these categories so the
service layer can translate them without knowing about the backend.
"""

from typing import Optional


class StoreError(Exception):
    """Base class for resource-store failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message)


class StoreNotFoundError(StoreError):
    """The object does not exist."""


class StoreForbiddenError(StoreError):
    """The caller may not access the object."""


class StoreUnauthorizedError(StoreError):
    """The caller's credentials were rejected."""


class StoreAlreadyExistsError(StoreError):
    """An object with the same name already exists."""


class StoreInvalidError(StoreError):
    """The backend rejected the object as invalid."""


class StoreConflictError(StoreError):
    """The object was modified concurrently."""
