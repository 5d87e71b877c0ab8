"""API request and response payloads."""

from kapp_packages.schemas.common import (
    Context,
    FilterOptions,
    PaginationOptions,
    Plugin,
    ReconciliationOptions,
    VersionReference,
)

__all__ = [
    "Context",
    "FilterOptions",
    "PaginationOptions",
    "Plugin",
    "ReconciliationOptions",
    "VersionReference",
]
