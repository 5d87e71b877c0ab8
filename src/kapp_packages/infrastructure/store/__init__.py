"""Cluster object storage: abstract store, kinds, errors and adapters."""

from kapp_packages.infrastructure.store.errors import (
    StoreAlreadyExistsError,
    StoreConflictError,
    StoreError,
    StoreForbiddenError,
    StoreInvalidError,
    StoreNotFoundError,
    StoreUnauthorizedError,
)
from kapp_packages.infrastructure.store.resource_store import (
    APP,
    PACKAGE,
    PACKAGE_INSTALL,
    PACKAGE_METADATA,
    PACKAGE_REPOSITORY,
    SECRET,
    ResourceKind,
    ResourceObject,
    ResourceStore,
)

__all__ = [
    "APP",
    "PACKAGE",
    "PACKAGE_INSTALL",
    "PACKAGE_METADATA",
    "PACKAGE_REPOSITORY",
    "SECRET",
    "ResourceKind",
    "ResourceObject",
    "ResourceStore",
    "StoreAlreadyExistsError",
    "StoreConflictError",
    "StoreError",
    "StoreForbiddenError",
    "StoreInvalidError",
    "StoreNotFoundError",
    "StoreUnauthorizedError",
]
