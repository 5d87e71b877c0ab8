"""Abstract access to the cluster objects the plugin reads and writes.

A ResourceStore is bound to a single cluster and exchanges plain JSON-like
dicts (the Kubernetes object representation). Decoding into typed records
happens one layer up, in kapp_packages.repository.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

ResourceObject = Dict[str, Any]


@dataclass(frozen=True)
class ResourceKind:
    """Group/version/resource coordinates of a kind of object."""

    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def is_core(self) -> bool:
        return not self.group


PACKAGE = ResourceKind("data.packaging.carvel.dev", "v1alpha1", "packages", "Package")
PACKAGE_METADATA = ResourceKind(
    "data.packaging.carvel.dev", "v1alpha1", "packagemetadatas", "PackageMetadata"
)
PACKAGE_INSTALL = ResourceKind(
    "packaging.carvel.dev", "v1alpha1", "packageinstalls", "PackageInstall"
)
PACKAGE_REPOSITORY = ResourceKind(
    "packaging.carvel.dev", "v1alpha1", "packagerepositories", "PackageRepository"
)
APP = ResourceKind("kappctrl.k14s.io", "v1alpha1", "apps", "App")
SECRET = ResourceKind("", "v1", "secrets", "Secret")


class ResourceStore(ABC):
    """Cluster-scoped CRUD over Kubernetes-style objects.

    An empty namespace passed to get_list means all namespaces. Every method
    raises a StoreError subclass on failure.
    """

    @abstractmethod
    async def get_list(
        self,
        kind: ResourceKind,
        namespace: str,
        field_selector: Optional[str] = None,
    ) -> List[ResourceObject]:
        """List objects of a kind.

        Args:
            kind: Kind to list
            namespace: Namespace, or "" for all namespaces
            field_selector: Optional field selector, e.g. "spec.refName=foo"

        Returns:
            List of objects
        """

    @abstractmethod
    async def get_one(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> ResourceObject:
        """Fetch a single object by name."""

    @abstractmethod
    async def create_one(
        self, kind: ResourceKind, namespace: str, obj: ResourceObject
    ) -> ResourceObject:
        """Create an object and return it as stored (name and uid populated)."""

    @abstractmethod
    async def update_one(
        self, kind: ResourceKind, namespace: str, obj: ResourceObject
    ) -> ResourceObject:
        """Replace an existing object and return it as stored."""

    @abstractmethod
    async def delete_one(self, kind: ResourceKind, namespace: str, name: str) -> None:
        """Delete an object by name."""

    @abstractmethod
    async def check_access(self, kind: ResourceKind, namespace: str, verb: str) -> bool:
        """Return whether the caller may perform verb on kind in namespace."""
