"""Data access for core Secrets on one cluster."""

import logging
from typing import List

from kapp_packages.exception import translate_store_errors
from kapp_packages.infrastructure.store import SECRET, ResourceStore
from kapp_packages.models.resources import SecretRecord
from kapp_packages.repository.carvel_repository import decode_record

logger = logging.getLogger(__name__)


class SecretRepository:
    """Repository for Secret objects.

    Attributes:
        store: Resource store of the target cluster
    """

    def __init__(self, store: ResourceStore):
        self.store = store

    async def list(self, namespace: str) -> List[SecretRecord]:
        with translate_store_errors("list", SECRET.kind):
            objects = await self.store.get_list(SECRET, namespace)
        return [decode_record(SECRET, SecretRecord, obj) for obj in objects]

    async def get(self, namespace: str, name: str) -> SecretRecord:
        """Retrieve a secret by name.

        Raises:
            NotFoundError: If the secret does not exist
        """
        with translate_store_errors("get", SECRET.kind, name):
            obj = await self.store.get_one(SECRET, namespace, name)
        return decode_record(SECRET, SecretRecord, obj)

    async def create(self, secret: SecretRecord) -> SecretRecord:
        """Create a secret; a generateName is resolved by the store.

        Returns:
            Created secret with its final name and uid
        """
        identifier = secret.metadata.name or secret.metadata.generate_name or ""
        with translate_store_errors("create", SECRET.kind, identifier):
            created = await self.store.create_one(
                SECRET, secret.metadata.namespace, secret.to_object()
            )
        return decode_record(SECRET, SecretRecord, created)

    async def update(self, secret: SecretRecord) -> SecretRecord:
        with translate_store_errors("update", SECRET.kind, secret.metadata.name):
            updated = await self.store.update_one(
                SECRET, secret.metadata.namespace, secret.to_object()
            )
        return decode_record(SECRET, SecretRecord, updated)

    async def delete(self, namespace: str, name: str) -> None:
        with translate_store_errors("delete", SECRET.kind, name):
            await self.store.delete_one(SECRET, namespace, name)
