"""ResourceStore backed by the official kubernetes Python client.

The client is synchronous, so every call runs in a worker thread. Custom
resources go through CustomObjectsApi; Secrets through CoreV1Api.
"""

import asyncio
import json
import logging
from typing import Any, Callable, List, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

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
    SECRET,
    ResourceKind,
    ResourceObject,
    ResourceStore,
)

logger = logging.getLogger(__name__)


def _api_error_reason(err: ApiException) -> str:
    if not err.body:
        return ""
    try:
        body = json.loads(err.body)
    except (TypeError, ValueError):
        return ""
    if isinstance(body, dict):
        return str(body.get("reason") or "")
    return ""


def _api_error_message(err: ApiException) -> str:
    if err.body:
        try:
            body = json.loads(err.body)
        except (TypeError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    return str(err.reason or err)


def translate_api_exception(err: ApiException) -> StoreError:
    """Classify a kubernetes ApiException into a StoreError subclass.

    Args:
        err: Exception raised by the kubernetes client

    Returns:
        StoreError subclass matching the HTTP status and reason
    """
    message = _api_error_message(err)
    status = err.status
    if status == 404:
        return StoreNotFoundError(message, status)
    if status == 403:
        return StoreForbiddenError(message, status)
    if status == 401:
        return StoreUnauthorizedError(message, status)
    if status == 409:
        if _api_error_reason(err) == "Conflict":
            return StoreConflictError(message, status)
        return StoreAlreadyExistsError(message, status)
    if status in (400, 422):
        return StoreInvalidError(message, status)
    return StoreError(message, status)


class KubernetesResourceStore(ResourceStore):
    """ResourceStore for one cluster, reached through a configured ApiClient.

    Attributes:
        api_client: kubernetes ApiClient for the cluster
        custom_objects: CustomObjectsApi bound to api_client
        core: CoreV1Api bound to api_client
        authorization: AuthorizationV1Api bound to api_client
    """

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client
        self.custom_objects = client.CustomObjectsApi(api_client)
        self.core = client.CoreV1Api(api_client)
        self.authorization = client.AuthorizationV1Api(api_client)

    async def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ApiException as err:
            raise translate_api_exception(err) from err

    def _to_object(self, result: Any) -> ResourceObject:
        if isinstance(result, dict):
            return result
        return self.api_client.sanitize_for_serialization(result)

    async def get_list(
        self,
        kind: ResourceKind,
        namespace: str,
        field_selector: Optional[str] = None,
    ) -> List[ResourceObject]:
        kwargs: dict[str, Any] = {}
        if field_selector:
            kwargs["field_selector"] = field_selector
        logger.debug(
            f"Listing {kind.kind} in namespace {namespace or '<all>'!r} "
            f"(field_selector={field_selector!r})"
        )

        if kind == SECRET:
            if namespace:
                result = await self._call(
                    self.core.list_namespaced_secret, namespace, **kwargs
                )
            else:
                result = await self._call(
                    self.core.list_secret_for_all_namespaces, **kwargs
                )
            return [self._to_object(item) for item in result.items]

        if namespace:
            result = await self._call(
                self.custom_objects.list_namespaced_custom_object,
                kind.group,
                kind.version,
                namespace,
                kind.plural,
                **kwargs,
            )
        else:
            result = await self._call(
                self.custom_objects.list_cluster_custom_object,
                kind.group,
                kind.version,
                kind.plural,
                **kwargs,
            )
        return list(result.get("items", []))

    async def get_one(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> ResourceObject:
        if kind == SECRET:
            result = await self._call(self.core.read_namespaced_secret, name, namespace)
            return self._to_object(result)
        return await self._call(
            self.custom_objects.get_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
        )

    async def create_one(
        self, kind: ResourceKind, namespace: str, obj: ResourceObject
    ) -> ResourceObject:
        if kind == SECRET:
            result = await self._call(
                self.core.create_namespaced_secret, namespace, obj
            )
            return self._to_object(result)
        return await self._call(
            self.custom_objects.create_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            obj,
        )

    async def update_one(
        self, kind: ResourceKind, namespace: str, obj: ResourceObject
    ) -> ResourceObject:
        name = obj.get("metadata", {}).get("name", "")
        if kind == SECRET:
            result = await self._call(
                self.core.replace_namespaced_secret, name, namespace, obj
            )
            return self._to_object(result)
        return await self._call(
            self.custom_objects.replace_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
            obj,
        )

    async def delete_one(self, kind: ResourceKind, namespace: str, name: str) -> None:
        if kind == SECRET:
            await self._call(self.core.delete_namespaced_secret, name, namespace)
            return
        await self._call(
            self.custom_objects.delete_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
        )

    async def check_access(self, kind: ResourceKind, namespace: str, verb: str) -> bool:
        review = client.V1SelfSubjectAccessReview(
            spec=client.V1SelfSubjectAccessReviewSpec(
                resource_attributes=client.V1ResourceAttributes(
                    group=kind.group,
                    resource=kind.plural,
                    namespace=namespace or None,
                    verb=verb,
                )
            )
        )
        result = await self._call(
            self.authorization.create_self_subject_access_review, review
        )
        return bool(result.status and result.status.allowed)
