"""Custom exceptions for the kapp-controller packages plugin.

All custom exceptions inherit from PackagesException so callers (an RPC or
HTTP transport) can map them to a status code in one place.
"""

import contextlib
from typing import Any, Dict, Iterator, Optional

from kapp_packages.infrastructure.store.errors import (
    StoreAlreadyExistsError,
    StoreError,
    StoreForbiddenError,
    StoreInvalidError,
    StoreNotFoundError,
    StoreUnauthorizedError,
)


class PackagesException(Exception):
    """Base exception for all plugin errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL",
        status_code: int = 500,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize plugin exception.

        Args:
            message: Human-readable error message
            code: Error code for programmatic handling
            status_code: HTTP status code
            field: Request field name if validation error
            details: Additional error context
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(message)


# Request Errors (400, 412)
class InvalidArgumentError(PackagesException):
    """The request carried an invalid or missing argument."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "INVALID_ARGUMENT"),
            status_code=400,
            **kwargs,
        )


class InvalidPageTokenError(InvalidArgumentError):
    """Page token is not a non-negative integer offset."""

    def __init__(self, page_token: str, **kwargs):
        super().__init__(
            message=f"unable to interpret page token {page_token!r}: expected a non-negative integer offset",
            code="INVALID_PAGE_TOKEN",
            details={"page_token": page_token, **(kwargs.pop("details", None) or {})},
            **kwargs,
        )


class InvalidConstraintError(InvalidArgumentError):
    """Version constraint expression could not be parsed."""

    def __init__(self, constraint: str, reason: str = "", **kwargs):
        message = f"invalid version constraint {constraint!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_CONSTRAINT",
            details={"constraint": constraint, **(kwargs.pop("details", None) or {})},
            **kwargs,
        )


class FailedPreconditionError(PackagesException):
    """Resource is not in a state that allows the operation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "FAILED_PRECONDITION"),
            status_code=412,
            **kwargs,
        )


# Authentication & Authorization Errors (401, 403)
class UnauthenticatedError(PackagesException):
    """Caller credentials were rejected by the cluster."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "UNAUTHENTICATED"),
            status_code=401,
            **kwargs,
        )


class PermissionDeniedError(PackagesException):
    """Caller is not allowed to perform the operation."""

    def __init__(self, message: str = "Permission denied", **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "PERMISSION_DENIED"),
            status_code=403,
            **kwargs,
        )


# Resource Errors (404, 409)
class NotFoundError(PackagesException):
    """Requested resource not found."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "NOT_FOUND"),
            status_code=404,
            **kwargs,
        )


class AlreadyExistsError(PackagesException):
    """Resource already exists."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "ALREADY_EXISTS"),
            status_code=409,
            **kwargs,
        )


# Server Errors (500, 501)
class InternalError(PackagesException):
    """Unexpected failure or inconsistent cluster data."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "INTERNAL"),
            status_code=kwargs.pop("status_code", 500),
            **kwargs,
        )


class MalformedVersionError(InternalError):
    """A Package object carries a version that is not semver compatible."""

    def __init__(self, package_name: str, version: str, **kwargs):
        super().__init__(
            message=(
                f"required field spec.version was not semver compatible on "
                f"Package {package_name!r}: {version!r}"
            ),
            code="MALFORMED_VERSION",
            details={
                "package": package_name,
                "version": version,
                **(kwargs.pop("details", None) or {}),
            },
            **kwargs,
        )


class MissingVersionsError(InternalError):
    """A PackageMetadata object has no Package versions."""

    def __init__(self, ref_name: str, **kwargs):
        super().__init__(
            message=f"no package versions for the package {ref_name!r}",
            code="MISSING_VERSIONS",
            details={"ref_name": ref_name, **(kwargs.pop("details", None) or {})},
            **kwargs,
        )


class ResourceWaitTimeoutError(InternalError):
    """A dependent resource did not appear in time."""

    def __init__(self, kind: str, name: str, timeout: float, **kwargs):
        super().__init__(
            message=f"timed out after {timeout:g} seconds waiting for the {kind} {name!r}",
            code="RESOURCE_WAIT_TIMEOUT",
            details={
                "kind": kind,
                "name": name,
                "timeout": timeout,
                **(kwargs.pop("details", None) or {}),
            },
            **kwargs,
        )


class UnimplementedError(PackagesException):
    """Operation is not supported by this plugin."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code=kwargs.pop("code", "UNIMPLEMENTED"),
            status_code=501,
            **kwargs,
        )


def from_store_error(
    verb: str, kind: str, identifier: str, err: Exception
) -> PackagesException:
    """Translate a resource-store error into the plugin error taxonomy.

    Args:
        verb: Operation attempted, e.g. "get" or "create"
        kind: Resource kind, e.g. "PackageInstall"
        identifier: Resource name, empty for collection operations
        err: The store error

    Returns:
        PackagesException subclass matching the store error category
    """
    if not identifier:
        identifier = "all"
    message = f"unable to {verb} the {kind} '{identifier}' due to '{err}'"
    details = {"verb": verb, "kind": kind, "identifier": identifier}

    if isinstance(err, PackagesException):
        return err
    if isinstance(err, StoreNotFoundError):
        return NotFoundError(message, details=details)
    if isinstance(err, StoreForbiddenError):
        return PermissionDeniedError(message, details=details)
    if isinstance(err, StoreUnauthorizedError):
        return UnauthenticatedError(message, details=details)
    if isinstance(err, StoreAlreadyExistsError):
        return AlreadyExistsError(message, details=details)
    if isinstance(err, StoreInvalidError):
        return InvalidArgumentError(message, details=details)
    return InternalError(message, details=details)


@contextlib.contextmanager
def translate_store_errors(verb: str, kind: str, identifier: str = "") -> Iterator[None]:
    """Re-raise store errors raised inside the block as plugin errors."""
    try:
        yield
    except StoreError as err:
        raise from_store_error(verb, kind, identifier, err) from err
