"""Data access for Carvel packaging objects on one cluster.

Every method decodes store objects into typed records and translates store
errors into the plugin's error taxonomy.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import ValidationError

from kapp_packages.exception import (
    InternalError,
    NotFoundError,
    ResourceWaitTimeoutError,
    translate_store_errors,
)
from kapp_packages.infrastructure.store import (
    APP,
    PACKAGE,
    PACKAGE_INSTALL,
    PACKAGE_METADATA,
    PACKAGE_REPOSITORY,
    ResourceKind,
    ResourceStore,
)
from kapp_packages.models.resources import (
    AppRecord,
    PackageInstallRecord,
    PackageMetadataRecord,
    PackageRecord,
    PackageRepositoryRecord,
    ResourceModel,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=ResourceModel)


def decode_record(kind: ResourceKind, model: Type[RecordT], obj: Dict[str, Any]) -> RecordT:
    """Decode a raw store object into a record.

    Raises:
        InternalError: If the object does not have the expected structure
    """
    try:
        return model.model_validate(obj)
    except ValidationError as err:
        name = obj.get("metadata", {}).get("name", "") if isinstance(obj, dict) else ""
        raise InternalError(
            f"unable to decode the {kind.kind} '{name}': {err}",
            details={"kind": kind.kind, "name": name},
        ) from err


class CarvelRepository:
    """Repository for Package, PackageMetadata, PackageInstall, App and
    PackageRepository objects.

    Attributes:
        store: Resource store of the target cluster
    """

    def __init__(self, store: ResourceStore):
        self.store = store

    async def _list(
        self,
        kind: ResourceKind,
        model: Type[RecordT],
        namespace: str,
        field_selector: Optional[str] = None,
    ) -> List[RecordT]:
        with translate_store_errors("list", kind.kind):
            objects = await self.store.get_list(kind, namespace, field_selector)
        return [decode_record(kind, model, obj) for obj in objects]

    async def _get(
        self, kind: ResourceKind, model: Type[RecordT], namespace: str, name: str
    ) -> RecordT:
        with translate_store_errors("get", kind.kind, name):
            obj = await self.store.get_one(kind, namespace, name)
        return decode_record(kind, model, obj)

    async def _create(
        self, kind: ResourceKind, model: Type[RecordT], record: RecordT
    ) -> RecordT:
        namespace = record.metadata.namespace
        name = record.metadata.name or record.metadata.generate_name or ""
        obj = record.to_object()
        obj.pop("status", None)
        with translate_store_errors("create", kind.kind, name):
            created = await self.store.create_one(kind, namespace, obj)
        return decode_record(kind, model, created)

    async def _update(
        self, kind: ResourceKind, model: Type[RecordT], record: RecordT
    ) -> RecordT:
        namespace = record.metadata.namespace
        with translate_store_errors("update", kind.kind, record.metadata.name):
            updated = await self.store.update_one(kind, namespace, record.to_object())
        return decode_record(kind, model, updated)

    async def _delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        with translate_store_errors("delete", kind.kind, name):
            await self.store.delete_one(kind, namespace, name)

    # -----------------------------------------------------------------------
    # Package and PackageMetadata
    # -----------------------------------------------------------------------

    async def list_package_metadatas(self, namespace: str) -> List[PackageMetadataRecord]:
        """List PackageMetadata objects; namespace "" lists all namespaces."""
        return await self._list(PACKAGE_METADATA, PackageMetadataRecord, namespace)

    async def get_package_metadata(
        self, namespace: str, name: str
    ) -> PackageMetadataRecord:
        return await self._get(PACKAGE_METADATA, PackageMetadataRecord, namespace, name)

    async def list_packages(
        self, namespace: str, ref_name: Optional[str] = None
    ) -> List[PackageRecord]:
        """List Package objects, optionally only the versions of one refName."""
        field_selector = f"spec.refName={ref_name}" if ref_name else None
        return await self._list(PACKAGE, PackageRecord, namespace, field_selector)

    # -----------------------------------------------------------------------
    # PackageInstall and App
    # -----------------------------------------------------------------------

    async def list_package_installs(self, namespace: str) -> List[PackageInstallRecord]:
        return await self._list(PACKAGE_INSTALL, PackageInstallRecord, namespace)

    async def get_package_install(self, namespace: str, name: str) -> PackageInstallRecord:
        return await self._get(PACKAGE_INSTALL, PackageInstallRecord, namespace, name)

    async def create_package_install(
        self, install: PackageInstallRecord
    ) -> PackageInstallRecord:
        return await self._create(PACKAGE_INSTALL, PackageInstallRecord, install)

    async def update_package_install(
        self, install: PackageInstallRecord
    ) -> PackageInstallRecord:
        return await self._update(PACKAGE_INSTALL, PackageInstallRecord, install)

    async def delete_package_install(self, namespace: str, name: str) -> None:
        await self._delete(PACKAGE_INSTALL, namespace, name)

    async def get_app(self, namespace: str, name: str) -> AppRecord:
        return await self._get(APP, AppRecord, namespace, name)

    async def wait_for_app(
        self, namespace: str, name: str, poll_interval: float, timeout: float
    ) -> AppRecord:
        """Poll until the App created for an install exists.

        Args:
            namespace: Install namespace
            name: App name (same as the PackageInstall name)
            poll_interval: Seconds between polls
            timeout: Seconds before giving up

        Returns:
            The App record

        Raises:
            ResourceWaitTimeoutError: If the App did not appear in time
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                return await self.get_app(namespace, name)
            except NotFoundError:
                logger.debug(f"App {namespace}/{name} not found yet")
            if time.monotonic() + poll_interval > deadline:
                raise ResourceWaitTimeoutError(APP.kind, f"{namespace}/{name}", timeout)
            await asyncio.sleep(poll_interval)

    # -----------------------------------------------------------------------
    # PackageRepository
    # -----------------------------------------------------------------------

    async def list_package_repositories(
        self, namespace: str
    ) -> List[PackageRepositoryRecord]:
        return await self._list(PACKAGE_REPOSITORY, PackageRepositoryRecord, namespace)

    async def get_package_repository(
        self, namespace: str, name: str
    ) -> PackageRepositoryRecord:
        return await self._get(
            PACKAGE_REPOSITORY, PackageRepositoryRecord, namespace, name
        )

    async def create_package_repository(
        self, repository: PackageRepositoryRecord
    ) -> PackageRepositoryRecord:
        return await self._create(
            PACKAGE_REPOSITORY, PackageRepositoryRecord, repository
        )

    async def update_package_repository(
        self, repository: PackageRepositoryRecord
    ) -> PackageRepositoryRecord:
        return await self._update(
            PACKAGE_REPOSITORY, PackageRepositoryRecord, repository
        )

    async def delete_package_repository(self, namespace: str, name: str) -> None:
        await self._delete(PACKAGE_REPOSITORY, namespace, name)
