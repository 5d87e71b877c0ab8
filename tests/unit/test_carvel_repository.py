"""Unit tests for CarvelRepository and SecretRepository data access."""

import pytest

from kapp_packages.exception import (
    AlreadyExistsError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    ResourceWaitTimeoutError,
)
from kapp_packages.infrastructure.store import (
    APP,
    PACKAGE,
    PACKAGE_INSTALL,
    PACKAGE_METADATA,
    SECRET,
    StoreForbiddenError,
)
from kapp_packages.models.resources import PackageInstallRecord, SecretRecord
from kapp_packages.repository.carvel_repository import CarvelRepository
from kapp_packages.repository.secret_repository import SecretRepository
from tests.conftest import (
    make_app,
    make_install,
    make_metadata,
    make_package,
    make_secret,
)


@pytest.fixture
def carvel(store) -> CarvelRepository:
    """Provide a CarvelRepository over the fake store."""
    return CarvelRepository(store)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestCarvelReads:
    """Tests for listing and getting packaging objects."""

    async def test_lists_versions_of_one_package(self, store, carvel) -> None:
        """list_packages narrows to one refName with a field selector."""
        store.add(PACKAGE, make_package("a.example.com", "1.0.0"))
        store.add(PACKAGE, make_package("b.example.com", "1.0.0"))
        store.add(PACKAGE, make_package("a.example.com", "2.0.0"))

        packages = await carvel.list_packages("default", "a.example.com")

        assert [p.spec.version for p in packages] == ["1.0.0", "2.0.0"]

    async def test_lists_all_namespaces(self, store, carvel) -> None:
        """An empty namespace lists metadata across namespaces."""
        store.add(PACKAGE_METADATA, make_metadata("a.example.com", namespace="one"))
        store.add(PACKAGE_METADATA, make_metadata("b.example.com", namespace="two"))

        metadatas = await carvel.list_package_metadatas("")

        assert [m.join_key for m in metadatas] == [
            ("one", "a.example.com"),
            ("two", "b.example.com"),
        ]

    async def test_get_missing_object(self, carvel) -> None:
        """A missing object raises NotFoundError naming the kind."""
        with pytest.raises(NotFoundError, match="PackageInstall 'missing'"):
            await carvel.get_package_install("default", "missing")

    async def test_malformed_object(self, store, carvel) -> None:
        """Objects that do not decode raise InternalError."""
        store.add(
            PACKAGE,
            {"metadata": {"name": "bad", "namespace": "default"}, "spec": {"version": 3}},
        )

        with pytest.raises(InternalError, match="unable to decode the Package 'bad'"):
            await carvel.list_packages("default")

    async def test_translates_store_errors(self, store, carvel) -> None:
        """Store errors become plugin errors."""
        store.fail("list", PACKAGE, StoreForbiddenError("forbidden", status=403))

        with pytest.raises(PermissionDeniedError):
            await carvel.list_packages("default")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestCarvelWrites:
    """Tests for creating, updating and deleting installs."""

    async def test_create_drops_status(self, store, carvel) -> None:
        """Status is never sent on create."""
        install = PackageInstallRecord.model_validate(make_install())

        created = await carvel.create_package_install(install)

        assert created.metadata.uid
        assert "status" not in store.find(PACKAGE_INSTALL, "default", "my-installation")

    async def test_create_existing(self, store, carvel) -> None:
        """Creating a second install with the same name raises AlreadyExistsError."""
        store.add(PACKAGE_INSTALL, make_install())
        install = PackageInstallRecord.model_validate(make_install())

        with pytest.raises(AlreadyExistsError):
            await carvel.create_package_install(install)

    async def test_update_keeps_unknown_fields(self, store, carvel) -> None:
        """Updating a decoded record writes back fields it does not model."""
        obj = make_install()
        obj["spec"]["noopDelete"] = True
        store.add(PACKAGE_INSTALL, obj)
        install = await carvel.get_package_install("default", "my-installation")
        install.spec.paused = True

        await carvel.update_package_install(install)

        stored = store.find(PACKAGE_INSTALL, "default", "my-installation")
        assert stored["spec"]["paused"] is True
        assert stored["spec"]["noopDelete"] is True

    async def test_delete(self, store, carvel) -> None:
        """delete_package_install removes the object."""
        store.add(PACKAGE_INSTALL, make_install())

        await carvel.delete_package_install("default", "my-installation")

        assert store.find(PACKAGE_INSTALL, "default", "my-installation") is None


# ---------------------------------------------------------------------------
# Waiting for the App
# ---------------------------------------------------------------------------


class TestWaitForApp:
    """Tests for CarvelRepository.wait_for_app."""

    async def test_returns_existing_app(self, store, carvel) -> None:
        """An App that already exists is returned at once."""
        store.add(APP, make_app(deploy_stdout="done"))

        app = await carvel.wait_for_app("default", "my-installation", 0.01, 0.05)

        assert app.status.deploy.stdout == "done"
        assert len(store.calls_for("get", APP)) == 1

    async def test_times_out(self, store, carvel) -> None:
        """The wait gives up once the timeout elapses."""
        with pytest.raises(ResourceWaitTimeoutError) as exc_info:
            await carvel.wait_for_app("default", "my-installation", 0.01, 0.03)

        assert exc_info.value.details["kind"] == "App"
        assert len(store.calls_for("get", APP)) >= 2


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------


class TestSecretRepository:
    """Tests for SecretRepository."""

    async def test_create_resolves_generated_name(self, store) -> None:
        """A generateName is resolved into the created secret's name."""
        secrets = SecretRepository(store)
        secret = SecretRecord.model_validate(make_secret(namespace="default"))
        secret.metadata.name = ""
        secret.metadata.generate_name = "repo-"

        created = await secrets.create(secret)

        assert created.metadata.name.startswith("repo-")
        assert store.find(SECRET, "default", created.metadata.name) is not None

    async def test_get_missing(self, store) -> None:
        """A missing secret raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await SecretRepository(store).get("default", "missing")
