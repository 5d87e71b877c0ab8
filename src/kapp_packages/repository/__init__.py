"""Data access over the resource store, returning typed records."""

from kapp_packages.repository.carvel_repository import CarvelRepository
from kapp_packages.repository.secret_repository import SecretRepository

__all__ = ["CarvelRepository", "SecretRepository"]
