"""Root-level pytest configuration and shared fixtures.

Adds the src/ directory to sys.path so kapp_packages can be imported without
installation. Provides an in-memory ResourceStore and factories for the
Carvel and core objects the plugin reads.

Key exports:
    - FakeResourceStore (in-memory ResourceStore with failure injection)
    - Object factories (make_package, make_metadata, make_install, ...)
    - Pytest fixtures for the store, settings and services
"""

import base64
import copy
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kapp_packages.config.app_settings import AppSettings  # noqa: E402
from kapp_packages.constants import (  # noqa: E402
    DEFAULT_GLOBAL_PACKAGING_NAMESPACE,
    MANAGED_BY_ANNOTATION,
    MANAGED_BY_PLUGIN,
)
from kapp_packages.infrastructure.store import (  # noqa: E402
    APP,
    PACKAGE,
    PACKAGE_INSTALL,
    PACKAGE_METADATA,
    PACKAGE_REPOSITORY,
    SECRET,
    ResourceKind,
    ResourceObject,
    ResourceStore,
    StoreAlreadyExistsError,
    StoreError,
    StoreNotFoundError,
)
from kapp_packages.infrastructure.store.provider import StaticStoreProvider  # noqa: E402

GLOBAL_NS = DEFAULT_GLOBAL_PACKAGING_NAMESPACE


# ---------------------------------------------------------------------------
# In-memory resource store
# ---------------------------------------------------------------------------


class FakeResourceStore(ResourceStore):
    """ResourceStore backed by a dict, listing objects in insertion order.

    Attributes:
        objects: Stored objects keyed by (plural, namespace, name)
        calls: Every call as (verb, kind, namespace, name)
        failures: Errors to raise keyed by (verb, kind)
        access: Access decisions keyed by (namespace, verb)
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, str, str], ResourceObject] = {}
        self.calls: List[Tuple[str, str, str, str]] = []
        self.failures: Dict[Tuple[str, str], StoreError] = {}
        self.access: Dict[Tuple[str, str], bool] = {}
        self._counter = 0

    def add(self, kind: ResourceKind, obj: ResourceObject) -> ResourceObject:
        """Seed an object without recording a call."""
        metadata = obj["metadata"]
        self.objects[(kind.plural, metadata.get("namespace", ""), metadata["name"])] = (
            copy.deepcopy(obj)
        )
        return obj

    def fail(self, verb: str, kind: ResourceKind, error: StoreError) -> None:
        self.failures[(verb, kind.kind)] = error

    def find(self, kind: ResourceKind, namespace: str, name: str) -> Optional[ResourceObject]:
        return self.objects.get((kind.plural, namespace, name))

    def names(self, kind: ResourceKind, namespace: str) -> List[str]:
        return [
            name
            for (plural, ns, name) in self.objects
            if plural == kind.plural and ns == namespace
        ]

    def calls_for(self, verb: str, kind: ResourceKind) -> List[Tuple[str, str, str, str]]:
        return [c for c in self.calls if c[0] == verb and c[1] == kind.kind]

    def _record(self, verb: str, kind: ResourceKind, namespace: str, name: str) -> None:
        self.calls.append((verb, kind.kind, namespace, name))
        error = self.failures.get((verb, kind.kind))
        if error is not None:
            raise error

    def _not_found(self, kind: ResourceKind, name: str) -> StoreNotFoundError:
        return StoreNotFoundError(f'{kind.plural} "{name}" not found', status=404)

    async def get_list(
        self,
        kind: ResourceKind,
        namespace: str,
        field_selector: Optional[str] = None,
    ) -> List[ResourceObject]:
        self._record("list", kind, namespace, "")
        items = [
            copy.deepcopy(obj)
            for (plural, ns, _), obj in self.objects.items()
            if plural == kind.plural and (not namespace or ns == namespace)
        ]
        if field_selector:
            field, value = field_selector.split("=", 1)
            items = [obj for obj in items if _field_value(obj, field) == value]
        return items

    async def get_one(self, kind: ResourceKind, namespace: str, name: str) -> ResourceObject:
        self._record("get", kind, namespace, name)
        obj = self.find(kind, namespace, name)
        if obj is None:
            raise self._not_found(kind, name)
        return copy.deepcopy(obj)

    async def create_one(
        self, kind: ResourceKind, namespace: str, obj: ResourceObject
    ) -> ResourceObject:
        obj = copy.deepcopy(obj)
        metadata = obj.setdefault("metadata", {})
        self._counter += 1
        if not metadata.get("name"):
            metadata["name"] = f"{metadata.get('generateName', '')}{self._counter:05d}"
        self._record("create", kind, namespace, metadata["name"])
        if self.find(kind, namespace, metadata["name"]) is not None:
            raise StoreAlreadyExistsError(
                f'{kind.plural} "{metadata["name"]}" already exists', status=409
            )
        metadata["namespace"] = namespace
        metadata["uid"] = f"uid-{self._counter}"
        metadata["resourceVersion"] = "1"
        if not kind.is_core:
            metadata["generation"] = 1
        self.objects[(kind.plural, namespace, metadata["name"])] = obj
        return copy.deepcopy(obj)

    async def update_one(
        self, kind: ResourceKind, namespace: str, obj: ResourceObject
    ) -> ResourceObject:
        name = obj["metadata"]["name"]
        self._record("update", kind, namespace, name)
        if self.find(kind, namespace, name) is None:
            raise self._not_found(kind, name)
        self.objects[(kind.plural, namespace, name)] = copy.deepcopy(obj)
        return copy.deepcopy(obj)

    async def delete_one(self, kind: ResourceKind, namespace: str, name: str) -> None:
        self._record("delete", kind, namespace, name)
        if self.objects.pop((kind.plural, namespace, name), None) is None:
            raise self._not_found(kind, name)

    async def check_access(self, kind: ResourceKind, namespace: str, verb: str) -> bool:
        self._record("check_access", kind, namespace, verb)
        return self.access.get((namespace, verb), False)


def _field_value(obj: ResourceObject, path: str) -> Any:
    value: Any = obj
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


# ---------------------------------------------------------------------------
# Object factories
# ---------------------------------------------------------------------------


def make_package(
    ref_name: str = "tetris.foo.example.com",
    version: str = "1.2.3",
    namespace: str = "default",
    **spec: Any,
) -> Dict[str, Any]:
    """Build a Package object named <refName>.<version>.

    Args:
        ref_name: Logical package name
        version: Package version
        namespace: Namespace of the object
        spec: Extra spec fields (camelCase)

    Returns:
        Package object as a dict
    """
    return {
        "apiVersion": PACKAGE.api_version,
        "kind": PACKAGE.kind,
        "metadata": {"name": f"{ref_name}.{version}", "namespace": namespace},
        "spec": {"refName": ref_name, "version": version, **spec},
    }


def make_metadata(
    name: str = "tetris.foo.example.com",
    namespace: str = "default",
    display_name: str = "Classic Tetris",
    categories: Optional[List[str]] = None,
    annotations: Optional[Dict[str, str]] = None,
    **spec: Any,
) -> Dict[str, Any]:
    """Build a PackageMetadata object."""
    metadata: Dict[str, Any] = {"name": name, "namespace": namespace}
    if annotations:
        metadata["annotations"] = annotations
    return {
        "apiVersion": PACKAGE_METADATA.api_version,
        "kind": PACKAGE_METADATA.kind,
        "metadata": metadata,
        "spec": {
            "displayName": display_name,
            "shortDescription": f"{display_name} short description",
            "categories": categories if categories is not None else ["logging"],
            **spec,
        },
    }


def make_condition(condition_type: str = "ReconcileSucceeded", **fields: Any) -> Dict[str, Any]:
    return {"type": condition_type, "status": "True", **fields}


def make_install(
    name: str = "my-installation",
    namespace: str = "default",
    ref_name: str = "tetris.foo.example.com",
    constraints: str = "1.2.3",
    version: str = "1.2.3",
    conditions: Optional[List[Dict[str, Any]]] = None,
    values_secrets: Optional[List[str]] = None,
    **status: Any,
) -> Dict[str, Any]:
    """Build a PackageInstall object with a status."""
    spec: Dict[str, Any] = {
        "serviceAccountName": "default",
        "packageRef": {
            "refName": ref_name,
            "versionSelection": {"constraints": constraints},
        },
    }
    if values_secrets:
        spec["values"] = [
            {"secretRef": {"name": secret, "key": "values.yaml"}} for secret in values_secrets
        ]
    return {
        "apiVersion": PACKAGE_INSTALL.api_version,
        "kind": PACKAGE_INSTALL.kind,
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
        "status": {
            "conditions": conditions
            if conditions is not None
            else [make_condition("ReconcileSucceeded")],
            "version": version,
            "lastAttemptedVersion": version,
            **status,
        },
    }


def make_app(
    name: str = "my-installation",
    namespace: str = "default",
    deploy_stdout: str = "",
    deploy_stderr: str = "",
    sync_period: Optional[str] = None,
) -> Dict[str, Any]:
    spec: Dict[str, Any] = {}
    if sync_period:
        spec["syncPeriod"] = sync_period
    return {
        "apiVersion": APP.api_version,
        "kind": APP.kind,
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
        "status": {"deploy": {"stdout": deploy_stdout, "stderr": deploy_stderr}},
    }


def make_repository(
    name: str = "globalrepo",
    namespace: str = GLOBAL_NS,
    fetch: Optional[Dict[str, Any]] = None,
    secret_name: Optional[str] = None,
    conditions: Optional[List[Dict[str, Any]]] = None,
    generation: int = 1,
    observed_generation: int = 1,
    annotations: Optional[Dict[str, str]] = None,
    sync_period: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a PackageRepository object, by default an imgpkgBundle fetch."""
    if fetch is None:
        fetch = {"imgpkgBundle": {"image": "projects.registry.example.com/repo:1.0.0"}}
    if secret_name:
        next(iter(fetch.values()))["secretRef"] = {"name": secret_name}
    metadata: Dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{name}",
        "generation": generation,
    }
    if annotations:
        metadata["annotations"] = annotations
    spec: Dict[str, Any] = {"fetch": fetch}
    if sync_period:
        spec["syncPeriod"] = sync_period
    return {
        "apiVersion": PACKAGE_REPOSITORY.api_version,
        "kind": PACKAGE_REPOSITORY.kind,
        "metadata": metadata,
        "spec": spec,
        "status": {
            "observedGeneration": observed_generation,
            "conditions": conditions
            if conditions is not None
            else [make_condition("ReconcileSucceeded")],
        },
    }


def make_secret(
    name: str = "my-secret",
    namespace: str = GLOBAL_NS,
    data: Optional[Dict[str, str]] = None,
    secret_type: str = "Opaque",
    managed: bool = False,
) -> Dict[str, Any]:
    """Build a Secret object; data values are given in clear text."""
    metadata: Dict[str, Any] = {"name": name, "namespace": namespace}
    if managed:
        metadata["annotations"] = {MANAGED_BY_ANNOTATION: MANAGED_BY_PLUGIN}
    return {
        "apiVersion": SECRET.api_version,
        "kind": SECRET.kind,
        "metadata": metadata,
        "type": secret_type,
        "data": {
            key: base64.b64encode(value.encode("utf-8")).decode("ascii")
            for key, value in (data or {}).items()
        },
    }


def secret_values(obj: Dict[str, Any]) -> Dict[str, str]:
    """Decode the data of a stored Secret object."""
    return {
        key: base64.b64decode(value).decode("utf-8")
        for key, value in obj.get("data", {}).items()
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> FakeResourceStore:
    """Provide an empty in-memory resource store."""
    return FakeResourceStore()


@pytest.fixture
def store_provider(store: FakeResourceStore) -> StaticStoreProvider:
    """Provide a store provider serving the fake store as the default cluster."""
    return StaticStoreProvider({"default": store})


@pytest.fixture
def settings() -> AppSettings:
    """Provide settings with short App wait timeouts."""
    return AppSettings(timeout_seconds=0.05, wait_poll_interval_seconds=0.01)
