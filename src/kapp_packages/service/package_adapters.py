"""Conversions between Carvel records and package API payloads."""

import json
import logging
from typing import List, Optional

import semver

from kapp_packages.constants import (
    ICON_DATA_URL_PREFIX,
    MANAGED_BY_ANNOTATION,
    MANAGED_BY_PLUGIN,
    REPOSITORY_REF_ANNOTATION,
    SECRET_TYPE_OPAQUE,
    VALUES_SECRET_KEY,
    VALUES_SECRET_SUFFIX,
)
from kapp_packages.core.durations import format_duration, parse_duration
from kapp_packages.core.package_detail import build_readme, default_values_from_schema
from kapp_packages.core.status import installed_package_status
from kapp_packages.core.versions import PackageSemver, VersionedPackage, latest_matching_version
from kapp_packages.exception import InternalError, InvalidConstraintError
from kapp_packages.infrastructure.store import PACKAGE_INSTALL, SECRET
from kapp_packages.models.resources import (
    AppRecord,
    ObjectMeta,
    PackageInstallRecord,
    PackageInstallSpec,
    PackageInstallValues,
    PackageMetadataRecord,
    PackageRef,
    SecretRecord,
    SecretRef,
    VersionSelection,
    encode_secret_data,
)
from kapp_packages.schemas.common import (
    Context,
    FilterOptions,
    Plugin,
    ReconciliationOptions,
    VersionReference,
)
from kapp_packages.schemas.packages import (
    AvailablePackageDetail,
    AvailablePackageReference,
    AvailablePackageSummary,
    InstalledPackageDetail,
    InstalledPackageReference,
    InstalledPackageSummary,
    Maintainer,
    PackageAppVersion,
)

logger = logging.getLogger(__name__)

SCHEMA_PARSE_ERROR_VALUES = "# There is an error while parsing the schema."


def icon_url(metadata: PackageMetadataRecord) -> str:
    if not metadata.spec.icon_svg_base64:
        return ""
    return f"{ICON_DATA_URL_PREFIX}{metadata.spec.icon_svg_base64}"


def app_version(version: semver.Version) -> PackageAppVersion:
    # Carvel packages carry no separate app version
    text = str(version)
    return PackageAppVersion(pkg_version=text, app_version=text)


def matches_filter(
    metadata: PackageMetadataRecord, filter_options: Optional[FilterOptions]
) -> bool:
    """Whether metadata passes the query, category and repository filters."""
    if filter_options is None:
        return True

    query = filter_options.query.strip().lower()
    if query:
        haystacks = (
            metadata.metadata.name,
            metadata.spec.display_name or "",
            metadata.spec.short_description or "",
        )
        if not any(query in text.lower() for text in haystacks):
            return False

    if filter_options.categories:
        if not set(filter_options.categories) & set(metadata.spec.categories):
            return False

    if filter_options.repositories:
        annotations = metadata.metadata.annotations or {}
        repository_ref = annotations.get(REPOSITORY_REF_ANNOTATION, "")
        repository_name = repository_ref.rsplit("/", 1)[-1]
        if repository_name not in filter_options.repositories:
            return False

    return True


def build_available_package_summary(
    metadata: PackageMetadataRecord,
    versions: VersionedPackage,
    cluster: str,
    plugin: Plugin,
) -> AvailablePackageSummary:
    return AvailablePackageSummary(
        available_package_ref=AvailablePackageReference(
            context=Context(cluster=cluster, namespace=metadata.metadata.namespace),
            identifier=metadata.metadata.name,
            plugin=plugin,
        ),
        name=metadata.metadata.name,
        latest_version=app_version(versions.latest.version),
        icon_url=icon_url(metadata),
        display_name=metadata.spec.display_name or "",
        short_description=metadata.spec.short_description or "",
        categories=list(metadata.spec.categories),
    )


def build_available_package_detail(
    metadata: PackageMetadataRecord,
    found: PackageSemver,
    cluster: str,
    plugin: Plugin,
) -> AvailablePackageDetail:
    package = found.package
    schema = package.spec.values_schema.open_api_v3 if package.spec.values_schema else None

    values_schema = ""
    default_values = ""
    if schema:
        values_schema = _schema_text(schema)
        try:
            default_values = default_values_from_schema(schema, commented_out=True)
        except ValueError as err:
            logger.warning(
                f"Unable to render default values for Package {package.metadata.name!r}: {err}"
            )
            default_values = SCHEMA_PARSE_ERROR_VALUES

    return AvailablePackageDetail(
        available_package_ref=AvailablePackageReference(
            context=Context(cluster=cluster, namespace=metadata.metadata.namespace),
            identifier=metadata.metadata.name,
            plugin=plugin,
        ),
        name=metadata.metadata.name,
        version=app_version(found.version),
        icon_url=icon_url(metadata),
        display_name=metadata.spec.display_name or "",
        short_description=metadata.spec.short_description or "",
        long_description=metadata.spec.long_description or "",
        readme=build_readme(metadata, package),
        default_values=default_values,
        values_schema=values_schema,
        maintainers=[Maintainer(name=m.name) for m in metadata.spec.maintainers],
        categories=list(metadata.spec.categories),
    )


def _schema_text(schema) -> str:
    if isinstance(schema, str):
        return schema
    return json.dumps(schema)


def _matching_version(
    install: PackageInstallRecord, versions: VersionedPackage
) -> Optional[semver.Version]:
    try:
        return latest_matching_version(versions.versions, install.version_constraints)
    except InvalidConstraintError as err:
        raise InternalError(
            f"cannot get the latest matching version for the PackageInstall "
            f"'{install.metadata.name}': {err.message}"
        ) from err


def current_version(install: PackageInstallRecord) -> str:
    """Version installed by kapp-controller, falling back to the last attempt."""
    return install.status.version or install.status.last_attempted_version or ""


def build_installed_package_summary(
    install: PackageInstallRecord,
    metadata: PackageMetadataRecord,
    versions: VersionedPackage,
    cluster: str,
    plugin: Plugin,
) -> InstalledPackageSummary:
    matching = _matching_version(install, versions)
    installed = current_version(install)
    return InstalledPackageSummary(
        installed_package_ref=InstalledPackageReference(
            context=Context(cluster=cluster, namespace=install.metadata.namespace),
            identifier=install.metadata.name,
            plugin=plugin,
        ),
        name=install.metadata.name,
        pkg_display_name=metadata.spec.display_name or "",
        short_description=metadata.spec.short_description or "",
        icon_url=icon_url(metadata),
        pkg_version_reference=VersionReference(version=installed),
        current_version=PackageAppVersion(pkg_version=installed, app_version=installed),
        latest_version=app_version(versions.latest.version),
        latest_matching_version=app_version(matching) if matching else None,
        status=installed_package_status(
            install.status, subject=f"PackageInstall {install.metadata.name!r}"
        ),
    )


def post_installation_notes(app: AppRecord) -> str:
    """Collect non-empty deploy and fetch output of an App as markdown."""
    sections = []
    for label, output in (("Deploy", app.status.deploy), ("Fetch", app.status.fetch)):
        if output is None:
            continue
        if output.stdout:
            sections.append(f"#### {label}\n\n```\n{output.stdout}\n```\n")
        if output.stderr:
            sections.append(f"#### {label} errors\n\n```\n{output.stderr}\n```\n")
    return "\n".join(sections)


def values_applied(secrets: List[SecretRecord]) -> str:
    """Concatenate the values documents of the referenced values secrets."""
    documents = []
    for secret in secrets:
        for key, content in sorted(secret.string_data.items()):
            documents.append(f"\n# {key}\n{content}\n---")
    return "".join(documents).strip()


def reconciliation_options(
    install: PackageInstallRecord, app: Optional[AppRecord]
) -> ReconciliationOptions:
    sync_period = install.spec.sync_period or (app.spec.sync_period if app else None)
    try:
        interval = parse_duration(sync_period or "")
    except ValueError:
        logger.warning(
            f"PackageInstall {install.metadata.name!r} has an unparseable syncPeriod {sync_period!r}"
        )
        interval = 0
    return ReconciliationOptions(
        interval=interval,
        suspend=bool(install.spec.paused),
        service_account_name=install.spec.service_account_name or "",
    )


def build_installed_package_detail(
    install: PackageInstallRecord,
    metadata: PackageMetadataRecord,
    versions: Optional[VersionedPackage],
    app: Optional[AppRecord],
    values_secrets: List[SecretRecord],
    cluster: str,
    plugin: Plugin,
) -> InstalledPackageDetail:
    installed = current_version(install)
    latest = None
    matching = None
    if versions is not None:
        latest = app_version(versions.latest.version)
        matching_version = _matching_version(install, versions)
        matching = app_version(matching_version) if matching_version else None

    return InstalledPackageDetail(
        installed_package_ref=InstalledPackageReference(
            context=Context(cluster=cluster, namespace=install.metadata.namespace),
            identifier=install.metadata.name,
            plugin=plugin,
        ),
        name=install.metadata.name,
        pkg_version_reference=VersionReference(version=installed),
        current_version=PackageAppVersion(pkg_version=installed, app_version=installed),
        latest_version=latest,
        latest_matching_version=matching,
        values_applied=values_applied(values_secrets),
        reconciliation_options=reconciliation_options(install, app),
        post_installation_notes=post_installation_notes(app) if app else "",
        available_package_ref=AvailablePackageReference(
            context=Context(cluster=cluster, namespace=metadata.metadata.namespace),
            identifier=metadata.metadata.name,
            plugin=plugin,
        ),
        status=installed_package_status(
            install.status,
            detailed=True,
            subject=f"PackageInstall {install.metadata.name!r}",
        ),
    )


# ---------------------------------------------------------------------------
# Objects written by the plugin
# ---------------------------------------------------------------------------


def values_secret_name(install_name: str) -> str:
    return f"{install_name}{VALUES_SECRET_SUFFIX}"


def build_values_secret(namespace: str, install_name: str, values: str) -> SecretRecord:
    return SecretRecord(
        api_version=SECRET.api_version,
        kind=SECRET.kind,
        metadata=ObjectMeta(
            name=values_secret_name(install_name),
            namespace=namespace,
            annotations={MANAGED_BY_ANNOTATION: MANAGED_BY_PLUGIN},
        ),
        type=SECRET_TYPE_OPAQUE,
        data=encode_secret_data({VALUES_SECRET_KEY: values}),
    )


def build_package_install(
    namespace: str,
    name: str,
    ref_name: str,
    constraint: str,
    options: ReconciliationOptions,
    values_secret: Optional[str],
    allow_prereleases: bool = False,
) -> PackageInstallRecord:
    values = []
    if values_secret:
        values.append(
            PackageInstallValues(
                secret_ref=SecretRef(name=values_secret, key=VALUES_SECRET_KEY)
            )
        )
    return PackageInstallRecord(
        api_version=PACKAGE_INSTALL.api_version,
        kind=PACKAGE_INSTALL.kind,
        metadata=ObjectMeta(
            name=name,
            namespace=namespace,
            annotations={MANAGED_BY_ANNOTATION: MANAGED_BY_PLUGIN},
        ),
        spec=PackageInstallSpec(
            service_account_name=options.service_account_name,
            package_ref=PackageRef(
                ref_name=ref_name,
                version_selection=VersionSelection(
                    constraints=constraint,
                    prereleases={} if allow_prereleases else None,
                ),
            ),
            values=values,
            sync_period=format_duration(options.interval) if options.interval else None,
            paused=options.suspend or None,
        ),
    )
