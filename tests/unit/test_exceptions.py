"""Unit tests for the exception hierarchy in kapp_packages.exception.

Verifies that every exception class carries the correct HTTP status code,
error code and message, that the inheritance chain is intact, and that
resource-store errors are translated into the taxonomy.
"""

import pytest

from kapp_packages.exception import (
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
from kapp_packages.infrastructure.store import (
    StoreAlreadyExistsError,
    StoreConflictError,
    StoreError,
    StoreForbiddenError,
    StoreInvalidError,
    StoreNotFoundError,
    StoreUnauthorizedError,
)

# ---------------------------------------------------------------------------
# PackagesException base class contract
# ---------------------------------------------------------------------------


class TestPackagesException:
    """Tests for the PackagesException base class."""

    def test_stores_message(self) -> None:
        """PackagesException stores the provided message on the message attribute."""
        exception = PackagesException("something broke")

        assert exception.message == "something broke"
        assert str(exception) == "something broke"

    def test_defaults_to_internal_500(self) -> None:
        """PackagesException defaults to code INTERNAL and HTTP 500."""
        exception = PackagesException("error")

        assert exception.code == "INTERNAL"
        assert exception.status_code == 500

    def test_default_field_and_details(self) -> None:
        """PackagesException sets field to None and details to an empty dict."""
        exception = PackagesException("error")

        assert exception.field is None
        assert exception.details == {}

    def test_stores_field_and_details(self) -> None:
        """PackagesException stores a caller-supplied field and details."""
        exception = PackagesException("error", field="name", details={"reason": "empty"})

        assert exception.field == "name"
        assert exception.details["reason"] == "empty"


# ---------------------------------------------------------------------------
# Subclass status codes
# ---------------------------------------------------------------------------


class TestErrorCategories:
    """Tests for the status code and code of each error category."""

    @pytest.mark.parametrize(
        "exception, status_code, code",
        [
            (InvalidArgumentError("bad"), 400, "INVALID_ARGUMENT"),
            (FailedPreconditionError("busy"), 412, "FAILED_PRECONDITION"),
            (UnauthenticatedError(), 401, "UNAUTHENTICATED"),
            (PermissionDeniedError(), 403, "PERMISSION_DENIED"),
            (NotFoundError("missing"), 404, "NOT_FOUND"),
            (AlreadyExistsError("dup"), 409, "ALREADY_EXISTS"),
            (InternalError("boom"), 500, "INTERNAL"),
            (UnimplementedError("nope"), 501, "UNIMPLEMENTED"),
        ],
    )
    def test_status_and_code(self, exception, status_code, code) -> None:
        """Each category maps to its HTTP status and default code."""
        assert exception.status_code == status_code
        assert exception.code == code
        assert isinstance(exception, PackagesException)

    def test_invalid_page_token_is_invalid_argument(self) -> None:
        """InvalidPageTokenError is an InvalidArgumentError naming the token."""
        exception = InvalidPageTokenError("abc")

        assert isinstance(exception, InvalidArgumentError)
        assert exception.code == "INVALID_PAGE_TOKEN"
        assert "'abc'" in exception.message

    def test_invalid_constraint_includes_reason(self) -> None:
        """InvalidConstraintError includes the constraint and the reason."""
        exception = InvalidConstraintError(">=foo", "bad version")

        assert isinstance(exception, InvalidArgumentError)
        assert exception.message == "invalid version constraint '>=foo': bad version"

    def test_caller_details_are_merged(self) -> None:
        """Details passed by the caller are merged with the built-in ones."""
        token_error = InvalidPageTokenError("abc", details={"limit": 10})
        constraint_error = InvalidConstraintError(">=foo", details={"install": "tetris"})

        assert token_error.details == {"page_token": "abc", "limit": 10}
        assert constraint_error.details == {"constraint": ">=foo", "install": "tetris"}

    def test_malformed_version_is_internal(self) -> None:
        """MalformedVersionError is an InternalError mentioning spec.version."""
        exception = MalformedVersionError("tetris.1", "not-a-version")

        assert isinstance(exception, InternalError)
        assert "required field spec.version was not semver compatible" in exception.message
        assert exception.details == {"package": "tetris.1", "version": "not-a-version"}

    def test_missing_versions_is_internal(self) -> None:
        """MissingVersionsError is an InternalError naming the package."""
        exception = MissingVersionsError("tetris.foo.example.com")

        assert isinstance(exception, InternalError)
        assert exception.message == "no package versions for the package 'tetris.foo.example.com'"

    def test_wait_timeout_is_internal(self) -> None:
        """ResourceWaitTimeoutError is an InternalError carrying the timeout."""
        exception = ResourceWaitTimeoutError("App", "default/my-app", 5)

        assert isinstance(exception, InternalError)
        assert exception.message == "timed out after 5 seconds waiting for the App 'default/my-app'"

    def test_can_be_chained(self) -> None:
        """Exceptions keep their cause when raised from another exception."""
        with pytest.raises(NotFoundError) as exc_info:
            try:
                raise KeyError("missing")
            except KeyError as err:
                raise NotFoundError("not there") from err

        assert isinstance(exc_info.value.__cause__, KeyError)


# ---------------------------------------------------------------------------
# Store error translation
# ---------------------------------------------------------------------------


class TestFromStoreError:
    """Tests for from_store_error."""

    @pytest.mark.parametrize(
        "store_error, expected",
        [
            (StoreNotFoundError("gone"), NotFoundError),
            (StoreForbiddenError("denied"), PermissionDeniedError),
            (StoreUnauthorizedError("who"), UnauthenticatedError),
            (StoreAlreadyExistsError("dup"), AlreadyExistsError),
            (StoreInvalidError("bad"), InvalidArgumentError),
            (StoreConflictError("stale"), InternalError),
            (StoreError("unknown"), InternalError),
        ],
    )
    def test_maps_category(self, store_error, expected) -> None:
        """Each store error category maps to its plugin error class."""
        assert type(from_store_error("get", "Package", "x", store_error)) is expected

    def test_message_format(self) -> None:
        """The message names the verb, kind, identifier and cause."""
        exception = from_store_error(
            "get", "PackageInstall", "my-install", StoreNotFoundError("not found")
        )

        assert exception.message == (
            "unable to get the PackageInstall 'my-install' due to 'not found'"
        )

    def test_empty_identifier_becomes_all(self) -> None:
        """Collection operations are reported with the identifier 'all'."""
        exception = from_store_error("list", "Package", "", StoreForbiddenError("denied"))

        assert exception.message == "unable to list the Package 'all' due to 'denied'"

    def test_passes_plugin_errors_through(self) -> None:
        """A PackagesException is returned unchanged."""
        original = FailedPreconditionError("busy")

        assert from_store_error("update", "PackageRepository", "r", original) is original


class TestTranslateStoreErrors:
    """Tests for the translate_store_errors context manager."""

    def test_translates_and_chains(self) -> None:
        """Store errors raised in the block become plugin errors with a cause."""
        cause = StoreNotFoundError("gone")

        with pytest.raises(NotFoundError, match="unable to delete the Secret 's1'") as exc_info:
            with translate_store_errors("delete", "Secret", "s1"):
                raise cause

        assert exc_info.value.__cause__ is cause

    def test_leaves_other_errors_alone(self) -> None:
        """Exceptions that are not store errors propagate unchanged."""
        with pytest.raises(KeyError):
            with translate_store_errors("get", "Secret", "s1"):
                raise KeyError("x")
