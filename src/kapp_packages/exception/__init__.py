"""Exception handling package.

This package provides the error taxonomy surfaced to callers and the
translation of resource-store failures into it.
"""

from kapp_packages.exception.api_exceptions import (
    AlreadyExistsError,
    FailedPreconditionError,
    InternalError,
    InvalidArgumentError,
    InvalidConstraintError,
    InvalidPageTokenError,
    MalformedVersionError,
    MissingVersionsError,
    NotFoundError,
    PackagesException,
    PermissionDeniedError,
    ResourceWaitTimeoutError,
    UnauthenticatedError,
    UnimplementedError,
    from_store_error,
    translate_store_errors,
)

__all__ = [
    "AlreadyExistsError",
    "FailedPreconditionError",
    "InternalError",
    "InvalidArgumentError",
    "InvalidConstraintError",
    "InvalidPageTokenError",
    "MalformedVersionError",
    "MissingVersionsError",
    "NotFoundError",
    "PackagesException",
    "PermissionDeniedError",
    "ResourceWaitTimeoutError",
    "UnauthenticatedError",
    "UnimplementedError",
    "from_store_error",
    "translate_store_errors",
]
