"""Repository service: PackageRepositories and their auth secrets."""

import logging
from typing import Dict, List, Optional

from kapp_packages.config.app_settings import AppSettings
from kapp_packages.core.durations import format_duration
from kapp_packages.exception import (
    FailedPreconditionError,
    InvalidArgumentError,
    PackagesException,
    translate_store_errors,
)
from kapp_packages.infrastructure.store import PACKAGE_REPOSITORY, ResourceStore
from kapp_packages.infrastructure.store.provider import StoreProvider
from kapp_packages.models.resources import PackageRepositoryRecord
from kapp_packages.repository.carvel_repository import CarvelRepository
from kapp_packages.repository.secret_repository import SecretRepository
from kapp_packages.schemas.common import Context, Plugin
from kapp_packages.schemas.repositories import (
    AddPackageRepositoryRequest,
    AddPackageRepositoryResponse,
    GetPackageRepositorySummariesResponse,
    PackageRepositoriesPermissions,
    PackageRepositoryDetail,
    PackageRepositoryReference,
    UpdatePackageRepositoryRequest,
    UpdatePackageRepositoryResponse,
)
from kapp_packages.service.credential_manager import RepositoryCredentialManager
from kapp_packages.service.repository_adapters import (
    SUPPORTED_REPOSITORY_TYPES,
    build_fetch,
    build_package_repository,
    build_repository_detail,
    build_repository_summary,
    repository_reference,
    set_description,
)

logger = logging.getLogger(__name__)

PERMISSION_VERBS = ("create", "delete", "get", "list", "update")


class RepositoryService:
    """Service for PackageRepository management.

    Attributes:
        store_provider: Resolves the resource store of a cluster
        settings: Plugin settings
        plugin: Plugin identity reported in references
    """

    def __init__(
        self,
        store_provider: StoreProvider,
        settings: AppSettings,
        plugin: Optional[Plugin] = None,
    ):
        self.store_provider = store_provider
        self.settings = settings
        self.plugin = plugin or settings.plugin_detail()

    def _cluster(self, context: Context) -> str:
        return context.cluster or self.settings.global_packaging_cluster

    def _store(self, cluster: str) -> ResourceStore:
        return self.store_provider.get_store(cluster)

    def _credentials(self, store: ResourceStore) -> RepositoryCredentialManager:
        return RepositoryCredentialManager(SecretRepository(store))

    def _validate_ref(self, repo_ref: PackageRepositoryReference) -> None:
        if not repo_ref.identifier:
            raise InvalidArgumentError("no repository identifier provided", field="identifier")
        if not repo_ref.context.namespace:
            raise InvalidArgumentError(
                "no namespace provided for the repository", field="namespace"
            )

    async def add_package_repository(
        self, request: AddPackageRepositoryRequest
    ) -> AddPackageRepositoryResponse:
        """Create a PackageRepository and, when needed, its auth secret.

        The plugin-managed secret is created first, then the repository, and
        finally the secret is made owned by the repository. A failure in a
        later step deletes what the earlier steps created.

        Args:
            request: Repository name, target, fetch type, URL and auth

        Returns:
            Reference to the new repository

        Raises:
            InvalidArgumentError: If the request is incomplete or inconsistent
            AlreadyExistsError: If the repository already exists
        """
        cluster = self._cluster(request.context)
        namespace = request.context.namespace
        global_namespace = self.settings.global_packaging_namespace
        logger.info(
            f"+AddPackageRepository (cluster={cluster!r}, namespace={namespace!r}, "
            f"name={request.name!r})"
        )

        if not request.name:
            raise InvalidArgumentError("no repository name provided", field="name")
        if not namespace:
            raise InvalidArgumentError("no namespace provided for the repository", field="namespace")
        if not request.url:
            raise InvalidArgumentError("no repository url provided", field="url")
        if request.type not in SUPPORTED_REPOSITORY_TYPES:
            raise InvalidArgumentError(
                f"repository type {request.type!r} is not supported, expected one of "
                f"{', '.join(SUPPORTED_REPOSITORY_TYPES)}",
                field="type",
            )
        if not request.namespace_scoped and namespace != global_namespace:
            raise InvalidArgumentError(
                f"global repositories must be created in the namespace {global_namespace!r}",
                field="namespace_scoped",
            )
        if request.namespace_scoped and namespace == global_namespace:
            raise InvalidArgumentError(
                f"namespaced repositories cannot be created in the global namespace "
                f"{global_namespace!r}",
                field="namespace_scoped",
            )

        store = self._store(cluster)
        carvel = CarvelRepository(store)
        credentials = self._credentials(store)

        plan = await credentials.prepare_create(
            namespace, request.name, request.type, request.auth
        )
        repository = build_package_repository(
            namespace=namespace,
            name=request.name,
            description=request.description,
            interval=request.interval,
            fetch=build_fetch(request.type, request.url, plan.secret_name, request.fetch_options),
        )

        try:
            created = await carvel.create_package_repository(repository)
        except PackagesException:
            if plan.created is not None:
                await credentials.discard(namespace, plan.created.metadata.name)
            raise

        if plan.created is not None:
            try:
                await credentials.link_owner(plan.created, created)
            except PackagesException:
                logger.error(
                    f"Unable to link auth Secret {plan.created.metadata.name!r} to "
                    f"PackageRepository {request.name!r}, rolling back"
                )
                await self._delete_repository_quietly(carvel, namespace, request.name)
                await credentials.discard(namespace, plan.created.metadata.name)
                raise

        return AddPackageRepositoryResponse(
            package_repo_ref=repository_reference(created, cluster, self.plugin)
        )

    async def _delete_repository_quietly(
        self, carvel: CarvelRepository, namespace: str, name: str
    ) -> None:
        try:
            await carvel.delete_package_repository(namespace, name)
        except PackagesException as err:
            logger.error(f"Unable to delete PackageRepository {namespace}/{name}: {err.message}")

    async def get_package_repository_detail(
        self, repo_ref: PackageRepositoryReference
    ) -> PackageRepositoryDetail:
        """Describe a repository; credentials are redacted.

        Raises:
            NotFoundError: If the repository does not exist
        """
        self._validate_ref(repo_ref)
        cluster = self._cluster(repo_ref.context)
        namespace = repo_ref.context.namespace
        logger.info(
            f"+GetPackageRepositoryDetail (cluster={cluster!r}, namespace={namespace!r}, "
            f"id={repo_ref.identifier!r})"
        )

        store = self._store(cluster)
        repository = await CarvelRepository(store).get_package_repository(
            namespace, repo_ref.identifier
        )
        auth = await self._credentials(store).redacted_auth(repository)
        return build_repository_detail(
            repository,
            auth,
            cluster,
            self.plugin,
            self.settings.global_packaging_namespace,
        )

    async def get_package_repository_summaries(
        self, context: Context
    ) -> GetPackageRepositorySummariesResponse:
        """List repositories visible from a namespace, including global ones."""
        cluster = self._cluster(context)
        namespace = context.namespace
        global_namespace = self.settings.global_packaging_namespace
        logger.info(
            f"+GetPackageRepositorySummaries (cluster={cluster!r}, namespace={namespace!r})"
        )

        carvel = CarvelRepository(self._store(cluster))
        repositories: List[PackageRepositoryRecord] = await carvel.list_package_repositories(
            namespace
        )
        if namespace and namespace != global_namespace:
            repositories.extend(await carvel.list_package_repositories(global_namespace))
        repositories.sort(key=lambda r: (r.metadata.namespace, r.metadata.name))

        return GetPackageRepositorySummariesResponse(
            package_repository_summaries=[
                build_repository_summary(r, cluster, self.plugin, global_namespace)
                for r in repositories
            ]
        )

    async def update_package_repository(
        self, request: UpdatePackageRepositoryRequest
    ) -> UpdatePackageRepositoryResponse:
        """Change the URL, description, interval, fetch options or auth of a repository.

        Raises:
            InvalidArgumentError: If the request is incomplete or changes the auth mode
            NotFoundError: If the repository does not exist
            FailedPreconditionError: If the repository is still reconciling
        """
        repo_ref = request.package_repo_ref
        self._validate_ref(repo_ref)
        if not request.url:
            raise InvalidArgumentError("no repository url provided", field="url")
        cluster = self._cluster(repo_ref.context)
        namespace = repo_ref.context.namespace
        name = repo_ref.identifier
        logger.info(
            f"+UpdatePackageRepository (cluster={cluster!r}, namespace={namespace!r}, id={name!r})"
        )

        store = self._store(cluster)
        carvel = CarvelRepository(store)
        credentials = self._credentials(store)

        repository = await carvel.get_package_repository(namespace, name)
        if not repository.is_stable:
            raise FailedPreconditionError(
                f"the repository {name!r} is not in a stable state, wait for it to be "
                f"reconciled before updating it"
            )
        repository_type = repository.spec.fetch.repository_type or ""

        plan = await credentials.prepare_update(repository, repository_type, request.auth)
        try:
            repository.spec.fetch = build_fetch(
                repository_type, request.url, plan.secret_name, request.fetch_options
            )
        except InvalidArgumentError:
            if plan.created is not None:
                await credentials.discard(namespace, plan.created.metadata.name)
            raise
        repository.spec.sync_period = (
            format_duration(request.interval) if request.interval else None
        )
        set_description(repository, request.description)

        try:
            updated = await carvel.update_package_repository(repository)
        except PackagesException:
            if plan.created is not None:
                await credentials.discard(namespace, plan.created.metadata.name)
            raise

        try:
            if plan.created is not None:
                await credentials.link_owner(plan.created, updated)
        finally:
            if plan.obsolete and plan.obsolete != plan.secret_name:
                await credentials.discard(namespace, plan.obsolete)

        return UpdatePackageRepositoryResponse(
            package_repo_ref=repository_reference(updated, cluster, self.plugin)
        )

    async def delete_package_repository(self, repo_ref: PackageRepositoryReference) -> None:
        """Delete a repository and its plugin-managed auth secret.

        Raises:
            NotFoundError: If the repository does not exist
        """
        self._validate_ref(repo_ref)
        cluster = self._cluster(repo_ref.context)
        namespace = repo_ref.context.namespace
        name = repo_ref.identifier
        logger.info(
            f"+DeletePackageRepository (cluster={cluster!r}, namespace={namespace!r}, id={name!r})"
        )

        store = self._store(cluster)
        carvel = CarvelRepository(store)
        repository = await carvel.get_package_repository(namespace, name)
        await carvel.delete_package_repository(namespace, name)
        await self._credentials(store).delete_managed_secret(repository)

    async def _permissions(self, store: ResourceStore, namespace: str) -> Dict[str, bool]:
        permissions = {}
        for verb in PERMISSION_VERBS:
            with translate_store_errors("check access to", PACKAGE_REPOSITORY.kind, namespace):
                permissions[verb] = await store.check_access(PACKAGE_REPOSITORY, namespace, verb)
        return permissions

    async def get_package_repository_permissions(
        self, context: Context
    ) -> PackageRepositoriesPermissions:
        """Report which repository verbs the caller may use globally and in a namespace."""
        cluster = self._cluster(context)
        logger.info(
            f"+GetPackageRepositoryPermissions (cluster={cluster!r}, "
            f"namespace={context.namespace!r})"
        )
        store = self._store(cluster)
        global_permissions = await self._permissions(
            store, self.settings.global_packaging_namespace
        )
        namespace_permissions = {}
        if context.namespace:
            namespace_permissions = await self._permissions(store, context.namespace)
        return PackageRepositoriesPermissions(
            plugin=self.plugin,
            global_permissions=global_permissions,
            namespace_permissions=namespace_permissions,
        )
