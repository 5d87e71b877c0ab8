"""Package service: available packages and their installs.

PackageService lists and describes the packages made available by
PackageRepositories, and creates, updates and deletes PackageInstalls along
with the values secrets they reference.
"""

import logging
from typing import List, Optional

from kapp_packages.config.app_settings import AppSettings
from kapp_packages.constants import VALUES_SECRET_KEY
from kapp_packages.core.durations import format_duration
from kapp_packages.core.join import (
    PackageVersionStream,
    join_available_summaries,
    join_installed_summaries,
    metadata_join_key,
)
from kapp_packages.core.pagination import page_offset_from_token, paginate
from kapp_packages.core.upgrade_policy import version_constraint_for_policy
from kapp_packages.core.version_summary import summarize_versions
from kapp_packages.core.versions import VersionedPackage, build_version_map
from kapp_packages.exception import (
    InvalidArgumentError,
    NotFoundError,
    PackagesException,
    UnimplementedError,
)
from kapp_packages.infrastructure.store.provider import StoreProvider
from kapp_packages.models.resources import (
    AppRecord,
    PackageInstallRecord,
    PackageInstallValues,
    PackageMetadataRecord,
    PackageRecord,
    SecretRecord,
    SecretRef,
    VersionSelection,
    encode_secret_data,
)
from kapp_packages.repository.carvel_repository import CarvelRepository
from kapp_packages.repository.secret_repository import SecretRepository
from kapp_packages.schemas.common import (
    Context,
    FilterOptions,
    PaginationOptions,
    Plugin,
    ReconciliationOptions,
)
from kapp_packages.schemas.packages import (
    AvailablePackageDetail,
    AvailablePackageReference,
    CreateInstalledPackageRequest,
    CreateInstalledPackageResponse,
    GetAvailablePackageSummariesResponse,
    GetAvailablePackageVersionsResponse,
    GetInstalledPackageSummariesResponse,
    InstalledPackageDetail,
    InstalledPackageReference,
    UpdateInstalledPackageRequest,
    UpdateInstalledPackageResponse,
)
from kapp_packages.service.package_adapters import (
    app_version,
    build_available_package_detail,
    build_available_package_summary,
    build_installed_package_detail,
    build_installed_package_summary,
    build_package_install,
    build_values_secret,
    matches_filter,
    values_secret_name,
)

logger = logging.getLogger(__name__)


class PackageService:
    """Service for available packages and package installs.

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

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _cluster(self, context: Context) -> str:
        return context.cluster or self.settings.global_packaging_cluster

    def _carvel(self, cluster: str) -> CarvelRepository:
        return CarvelRepository(self.store_provider.get_store(cluster))

    def _secrets(self, cluster: str) -> SecretRepository:
        return SecretRepository(self.store_provider.get_store(cluster))

    def _namespaces_with_global(self, namespace: str) -> List[str]:
        """Namespaces whose packages are visible from namespace."""
        global_namespace = self.settings.global_packaging_namespace
        if not namespace or namespace == global_namespace:
            return [namespace]
        return [namespace, global_namespace]

    async def _list_metadatas_with_global(
        self, carvel: CarvelRepository, namespace: str
    ) -> List[PackageMetadataRecord]:
        metadatas: List[PackageMetadataRecord] = []
        for ns in self._namespaces_with_global(namespace):
            metadatas.extend(await carvel.list_package_metadatas(ns))
        return metadatas

    async def _list_packages_with_global(
        self, carvel: CarvelRepository, namespace: str
    ) -> List[PackageRecord]:
        packages: List[PackageRecord] = []
        for ns in self._namespaces_with_global(namespace):
            packages.extend(await carvel.list_packages(ns))
        return packages

    async def _find_metadata(
        self, carvel: CarvelRepository, namespace: str, ref_name: str
    ) -> PackageMetadataRecord:
        """Get metadata from namespace, falling back to the global namespace."""
        global_namespace = self.settings.global_packaging_namespace
        try:
            return await carvel.get_package_metadata(namespace, ref_name)
        except NotFoundError:
            if namespace == global_namespace:
                raise
            logger.debug(
                f"PackageMetadata {ref_name!r} not in {namespace!r}, trying {global_namespace!r}"
            )
        return await carvel.get_package_metadata(global_namespace, ref_name)

    async def _package_versions(
        self, carvel: CarvelRepository, namespace: str, ref_name: str
    ) -> Optional[VersionedPackage]:
        packages = await carvel.list_packages(namespace, ref_name=ref_name)
        packages = [p for p in packages if p.spec.ref_name == ref_name]
        if not packages:
            return None
        return build_version_map(packages)[ref_name]

    async def _delete_secret_quietly(
        self, secrets: SecretRepository, namespace: str, name: str
    ) -> None:
        try:
            await secrets.delete(namespace, name)
        except NotFoundError:
            logger.warning(f"Secret {namespace}/{name} was already deleted")
        except PackagesException as err:
            logger.error(f"Unable to delete Secret {namespace}/{name}: {err.message}")

    # -----------------------------------------------------------------------
    # Available packages
    # -----------------------------------------------------------------------

    async def get_available_package_summaries(
        self,
        context: Context,
        pagination: Optional[PaginationOptions] = None,
        filter_options: Optional[FilterOptions] = None,
    ) -> GetAvailablePackageSummariesResponse:
        """List available packages with their latest version, one page at a time.

        Args:
            context: Target cluster and namespace ("" for all namespaces)
            pagination: Page token and size
            filter_options: Query, category and repository filters

        Returns:
            Page of summaries, categories of the page and the next page token

        Raises:
            InvalidPageTokenError: If the page token is malformed
            MissingVersionsError: If a listed package has no versions
        """
        cluster = self._cluster(context)
        namespace = context.namespace
        pagination = pagination or PaginationOptions()
        logger.info(
            f"+GetAvailablePackageSummaries (cluster={cluster!r}, namespace={namespace!r})"
        )
        offset = page_offset_from_token(pagination.page_token)

        carvel = self._carvel(cluster)
        metadatas = await self._list_metadatas_with_global(carvel, namespace)
        metadatas = sorted(
            (m for m in metadatas if matches_filter(m, filter_options)),
            key=metadata_join_key,
        )
        page, next_page_token = paginate(metadatas, offset, pagination.page_size)
        if not page:
            return GetAvailablePackageSummariesResponse()

        stream = PackageVersionStream(
            lambda: self._list_packages_with_global(carvel, namespace),
            maxsize=self.settings.version_queue_size,
        )
        async with stream:
            joined = await join_available_summaries(page, stream)

        summaries = []
        categories: List[str] = []
        for metadata, versions in joined:
            summary = build_available_package_summary(
                metadata, versions, cluster, self.plugin
            )
            summaries.append(summary)
            for category in summary.categories:
                if category not in categories:
                    categories.append(category)

        return GetAvailablePackageSummariesResponse(
            available_package_summaries=summaries,
            next_page_token=next_page_token,
            categories=categories,
        )

    def _validate_available_ref(self, package_ref: AvailablePackageReference) -> None:
        if not package_ref.identifier:
            raise InvalidArgumentError("no package identifier provided", field="identifier")
        if not package_ref.context.namespace:
            raise InvalidArgumentError(
                "no namespace provided for the available package", field="namespace"
            )

    async def get_available_package_versions(
        self, package_ref: AvailablePackageReference
    ) -> GetAvailablePackageVersionsResponse:
        """List the versions of an available package, trimmed for display.

        Raises:
            NotFoundError: If the package has no versions
        """
        self._validate_available_ref(package_ref)
        cluster = self._cluster(package_ref.context)
        namespace = package_ref.context.namespace
        logger.info(
            f"+GetAvailablePackageVersions (cluster={cluster!r}, namespace={namespace!r}, "
            f"id={package_ref.identifier!r})"
        )

        versions = await self._package_versions(
            self._carvel(cluster), namespace, package_ref.identifier
        )
        if versions is None:
            raise NotFoundError(
                f"unable to find any versions for the package {package_ref.identifier!r}"
            )
        kept = summarize_versions(
            [v.version for v in versions.versions], self.settings.versions_in_summary()
        )
        return GetAvailablePackageVersionsResponse(
            package_app_versions=[app_version(v) for v in kept]
        )

    async def get_available_package_detail(
        self, package_ref: AvailablePackageReference, pkg_version: str = ""
    ) -> AvailablePackageDetail:
        """Describe one version (the latest when pkg_version is empty) of a package.

        Raises:
            NotFoundError: If the package or the requested version does not exist
        """
        self._validate_available_ref(package_ref)
        cluster = self._cluster(package_ref.context)
        namespace = package_ref.context.namespace
        logger.info(
            f"+GetAvailablePackageDetail (cluster={cluster!r}, namespace={namespace!r}, "
            f"id={package_ref.identifier!r}, version={pkg_version!r})"
        )

        carvel = self._carvel(cluster)
        metadata = await carvel.get_package_metadata(namespace, package_ref.identifier)
        versions = await self._package_versions(carvel, namespace, package_ref.identifier)
        if versions is None:
            raise NotFoundError(
                f"unable to find any versions for the package {package_ref.identifier!r}"
            )

        found = versions.find(pkg_version) if pkg_version else versions.latest
        if found is None:
            raise NotFoundError(
                f"unable to find version {pkg_version!r} of the package "
                f"{package_ref.identifier!r}"
            )
        return build_available_package_detail(metadata, found, cluster, self.plugin)

    # -----------------------------------------------------------------------
    # Installed packages
    # -----------------------------------------------------------------------

    async def get_installed_package_summaries(
        self, context: Context, pagination: Optional[PaginationOptions] = None
    ) -> GetInstalledPackageSummariesResponse:
        """List package installs with their current and latest versions.

        Installs whose package metadata or versions cannot be found are
        skipped.
        """
        cluster = self._cluster(context)
        namespace = context.namespace
        pagination = pagination or PaginationOptions()
        logger.info(
            f"+GetInstalledPackageSummaries (cluster={cluster!r}, namespace={namespace!r})"
        )
        offset = page_offset_from_token(pagination.page_token)

        carvel = self._carvel(cluster)
        installs = await carvel.list_package_installs(namespace)
        installs.sort(key=lambda i: (i.metadata.namespace, i.metadata.name))
        page, next_page_token = paginate(installs, offset, pagination.page_size)
        if not page:
            return GetInstalledPackageSummariesResponse()

        metadatas = await self._list_metadatas_with_global(carvel, namespace)
        stream = PackageVersionStream(
            lambda: self._list_packages_with_global(carvel, namespace),
            maxsize=self.settings.version_queue_size,
        )
        async with stream:
            joined = await join_installed_summaries(
                page, metadatas, stream, self.settings.global_packaging_namespace
            )

        return GetInstalledPackageSummariesResponse(
            installed_package_summaries=[
                build_installed_package_summary(
                    install, metadata, versions, cluster, self.plugin
                )
                for install, metadata, versions in joined
            ],
            next_page_token=next_page_token,
        )

    def _validate_installed_ref(self, installed_ref: InstalledPackageReference) -> None:
        if not installed_ref.identifier:
            raise InvalidArgumentError(
                "no installed package identifier provided", field="identifier"
            )
        if not installed_ref.context.namespace:
            raise InvalidArgumentError(
                "no namespace provided for the installed package", field="namespace"
            )

    async def _values_secrets(
        self, secrets: SecretRepository, install: PackageInstallRecord
    ) -> List[SecretRecord]:
        found = []
        for values in install.spec.values:
            if values.secret_ref is None or not values.secret_ref.name:
                continue
            try:
                found.append(
                    await secrets.get(install.metadata.namespace, values.secret_ref.name)
                )
            except NotFoundError:
                logger.warning(
                    f"Values Secret {values.secret_ref.name!r} of PackageInstall "
                    f"{install.metadata.name!r} not found"
                )
        return found

    async def get_installed_package_detail(
        self, installed_ref: InstalledPackageReference
    ) -> InstalledPackageDetail:
        """Describe a package install, its values, notes and status.

        Raises:
            NotFoundError: If the install or its package metadata does not exist
        """
        self._validate_installed_ref(installed_ref)
        cluster = self._cluster(installed_ref.context)
        namespace = installed_ref.context.namespace
        name = installed_ref.identifier
        logger.info(
            f"+GetInstalledPackageDetail (cluster={cluster!r}, namespace={namespace!r}, id={name!r})"
        )

        carvel = self._carvel(cluster)
        install = await carvel.get_package_install(namespace, name)
        ref_name = install.spec.package_ref.ref_name
        metadata = await self._find_metadata(carvel, namespace, ref_name)
        versions = await self._package_versions(
            carvel, metadata.metadata.namespace, ref_name
        )

        app: Optional[AppRecord] = None
        try:
            app = await carvel.get_app(namespace, name)
        except NotFoundError:
            logger.warning(f"App for PackageInstall {namespace}/{name} not found")

        values_secrets = await self._values_secrets(self._secrets(cluster), install)
        try:
            return build_installed_package_detail(
                install, metadata, versions, app, values_secrets, cluster, self.plugin
            )
        except ValueError as err:
            raise InvalidArgumentError(str(err)) from err

    async def _install_constraint(
        self,
        carvel: CarvelRepository,
        metadata: PackageMetadataRecord,
        version: str,
    ) -> str:
        ref_name = metadata.metadata.name
        versions = await self._package_versions(
            carvel, metadata.metadata.namespace, ref_name
        )
        found = versions.find(version) if versions else None
        if found is None:
            raise NotFoundError(
                f"unable to find version {version!r} of the package {ref_name!r}"
            )
        return version_constraint_for_policy(
            found.version, self.settings.default_upgrade_policy
        )

    async def create_installed_package(
        self, request: CreateInstalledPackageRequest
    ) -> CreateInstalledPackageResponse:
        """Install a package version into the target namespace.

        Creates the values secret (when values are given), then the
        PackageInstall, and waits for kapp-controller to create its App. Objects
        created by this call are deleted again if a later step fails.

        Args:
            request: Package, version, target, values and reconciliation options

        Returns:
            Reference to the new installed package

        Raises:
            InvalidArgumentError: If a required field is missing
            UnimplementedError: If the target is another cluster than the package's
            NotFoundError: If the package or version does not exist
            ResourceWaitTimeoutError: If the App did not appear in time
        """
        package_ref = request.available_package_ref
        self._validate_available_ref(package_ref)
        if not request.name:
            raise InvalidArgumentError("no name provided for the installed package", field="name")
        if not request.target_context.namespace:
            raise InvalidArgumentError("no target namespace provided", field="target_context")
        if not request.pkg_version_reference.version:
            raise InvalidArgumentError(
                "no package version provided", field="pkg_version_reference"
            )
        options = request.reconciliation_options or ReconciliationOptions()
        if not options.service_account_name:
            raise InvalidArgumentError(
                "no service account name provided in the reconciliation options",
                field="reconciliation_options",
            )

        cluster = self._cluster(package_ref.context)
        target_cluster = self._cluster(request.target_context)
        if cluster != target_cluster:
            raise UnimplementedError(
                "installing packages in other clusters than the package's is not supported"
            )
        namespace = request.target_context.namespace
        name = request.name
        logger.info(
            f"+CreateInstalledPackage (cluster={cluster!r}, namespace={namespace!r}, "
            f"name={name!r}, package={package_ref.identifier!r})"
        )

        carvel = self._carvel(cluster)
        secrets = self._secrets(cluster)
        metadata = await carvel.get_package_metadata(
            package_ref.context.namespace, package_ref.identifier
        )
        constraint = await self._install_constraint(
            carvel, metadata, request.pkg_version_reference.version
        )

        values_secret: Optional[SecretRecord] = None
        if request.values.strip():
            values_secret = await secrets.create(
                build_values_secret(namespace, name, request.values)
            )

        install = build_package_install(
            namespace=namespace,
            name=name,
            ref_name=package_ref.identifier,
            constraint=constraint,
            options=options,
            values_secret=values_secret.metadata.name if values_secret else None,
            allow_prereleases=self.settings.default_prerelease,
        )
        try:
            created = await carvel.create_package_install(install)
        except PackagesException:
            if values_secret is not None:
                await self._delete_secret_quietly(
                    secrets, namespace, values_secret.metadata.name
                )
            raise

        try:
            await carvel.wait_for_app(
                namespace,
                name,
                poll_interval=self.settings.wait_poll_interval_seconds,
                timeout=self.settings.timeout_seconds,
            )
        except PackagesException as err:
            logger.error(
                f"App for PackageInstall {namespace}/{name} not available, rolling back: "
                f"{err.message}"
            )
            await self._rollback_install(carvel, secrets, created, values_secret)
            raise

        return CreateInstalledPackageResponse(
            installed_package_ref=InstalledPackageReference(
                context=Context(cluster=cluster, namespace=namespace),
                identifier=created.metadata.name,
                plugin=self.plugin,
            )
        )

    async def _rollback_install(
        self,
        carvel: CarvelRepository,
        secrets: SecretRepository,
        install: PackageInstallRecord,
        values_secret: Optional[SecretRecord],
    ) -> None:
        namespace = install.metadata.namespace
        try:
            await carvel.delete_package_install(namespace, install.metadata.name)
        except PackagesException as err:
            logger.error(
                f"Unable to delete PackageInstall {namespace}/{install.metadata.name}: {err.message}"
            )
        if values_secret is not None:
            await self._delete_secret_quietly(secrets, namespace, values_secret.metadata.name)

    async def update_installed_package(
        self, request: UpdateInstalledPackageRequest
    ) -> UpdateInstalledPackageResponse:
        """Change the version, values or reconciliation options of an install.

        Raises:
            InvalidArgumentError: If a required field is missing
            NotFoundError: If the install, its package or the version does not exist
        """
        installed_ref = request.installed_package_ref
        self._validate_installed_ref(installed_ref)
        if not request.pkg_version_reference.version:
            raise InvalidArgumentError(
                "no package version provided", field="pkg_version_reference"
            )
        cluster = self._cluster(installed_ref.context)
        namespace = installed_ref.context.namespace
        name = installed_ref.identifier
        logger.info(
            f"+UpdateInstalledPackage (cluster={cluster!r}, namespace={namespace!r}, id={name!r})"
        )

        carvel = self._carvel(cluster)
        secrets = self._secrets(cluster)
        install = await carvel.get_package_install(namespace, name)
        metadata = await self._find_metadata(
            carvel, namespace, install.spec.package_ref.ref_name
        )
        constraint = await self._install_constraint(
            carvel, metadata, request.pkg_version_reference.version
        )

        selection = install.spec.package_ref.version_selection or VersionSelection()
        selection.constraints = constraint
        install.spec.package_ref.version_selection = selection

        if request.reconciliation_options is not None:
            options = request.reconciliation_options
            if options.service_account_name:
                install.spec.service_account_name = options.service_account_name
            install.spec.sync_period = (
                format_duration(options.interval) if options.interval else None
            )
            install.spec.paused = options.suspend or None

        managed_name = values_secret_name(name)
        stale_secret = await self._apply_values(secrets, install, managed_name, request.values)

        updated = await carvel.update_package_install(install)
        if stale_secret:
            await self._delete_secret_quietly(secrets, namespace, stale_secret)

        return UpdateInstalledPackageResponse(
            installed_package_ref=InstalledPackageReference(
                context=Context(cluster=cluster, namespace=namespace),
                identifier=updated.metadata.name,
                plugin=self.plugin,
            )
        )

    async def _apply_values(
        self,
        secrets: SecretRepository,
        install: PackageInstallRecord,
        managed_name: str,
        values: str,
    ) -> Optional[str]:
        """Write values into the plugin values secret referenced by install.

        Returns:
            Name of a values secret to delete once the install is updated
        """
        namespace = install.metadata.namespace
        referenced = any(
            v.secret_ref is not None and v.secret_ref.name == managed_name
            for v in install.spec.values
        )

        if not values.strip():
            if not referenced:
                return None
            install.spec.values = [
                v
                for v in install.spec.values
                if v.secret_ref is None or v.secret_ref.name != managed_name
            ]
            return managed_name

        if referenced:
            try:
                secret = await secrets.get(namespace, managed_name)
            except NotFoundError:
                secret = None
            if secret is not None:
                secret.data = encode_secret_data({VALUES_SECRET_KEY: values})
                await secrets.update(secret)
                return None

        await secrets.create(build_values_secret(namespace, install.metadata.name, values))
        if not referenced:
            install.spec.values.append(
                PackageInstallValues(
                    secret_ref=SecretRef(name=managed_name, key=VALUES_SECRET_KEY)
                )
            )
        return None

    async def delete_installed_package(self, installed_ref: InstalledPackageReference) -> None:
        """Delete a package install and the plugin-managed values secrets it used.

        Raises:
            NotFoundError: If the install does not exist
        """
        self._validate_installed_ref(installed_ref)
        cluster = self._cluster(installed_ref.context)
        namespace = installed_ref.context.namespace
        name = installed_ref.identifier
        logger.info(
            f"+DeleteInstalledPackage (cluster={cluster!r}, namespace={namespace!r}, id={name!r})"
        )

        carvel = self._carvel(cluster)
        secrets = self._secrets(cluster)
        install = await carvel.get_package_install(namespace, name)
        await carvel.delete_package_install(namespace, name)

        for secret in await self._values_secrets(secrets, install):
            if not secret.is_plugin_managed:
                logger.debug(f"Keeping user Secret {namespace}/{secret.metadata.name}")
                continue
            await self._delete_secret_quietly(secrets, namespace, secret.metadata.name)
