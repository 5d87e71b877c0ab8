"""Conversions between PackageRepository records and repository API payloads."""

import logging
from typing import Any, Dict, Optional

from kapp_packages.constants import (
    DESCRIPTION_ANNOTATION,
    REPOSITORY_TYPE_GIT,
    REPOSITORY_TYPE_HTTP,
    REPOSITORY_TYPE_IMAGE,
    REPOSITORY_TYPE_IMGPKG_BUNDLE,
)
from kapp_packages.core.durations import format_duration, parse_duration
from kapp_packages.core.status import repository_status
from kapp_packages.exception import InvalidArgumentError
from kapp_packages.infrastructure.store import PACKAGE_REPOSITORY
from kapp_packages.models.resources import (
    GitFetch,
    HttpFetch,
    ImageFetch,
    ImgpkgBundleFetch,
    ObjectMeta,
    PackageRepositoryFetch,
    PackageRepositoryRecord,
    PackageRepositorySpec,
    SecretRef,
)
from kapp_packages.schemas.common import Context, Plugin
from kapp_packages.schemas.repositories import (
    PackageRepositoryAuth,
    PackageRepositoryDetail,
    PackageRepositoryReference,
    PackageRepositorySummary,
    RepositoryFetchOptions,
)

logger = logging.getLogger(__name__)

# Fetch types a repository can be created with.
SUPPORTED_REPOSITORY_TYPES = (
    REPOSITORY_TYPE_IMGPKG_BUNDLE,
    REPOSITORY_TYPE_IMAGE,
    REPOSITORY_TYPE_GIT,
    REPOSITORY_TYPE_HTTP,
)


def _semver_selection(constraints: str) -> Optional[Dict[str, Any]]:
    if not constraints:
        return None
    return {"semver": {"constraints": constraints}}


def _selection_constraints(selection: Optional[Dict[str, Any]]) -> str:
    if not selection:
        return ""
    semver_selection = selection.get("semver") or {}
    return semver_selection.get("constraints", "") or ""


def build_fetch(
    repository_type: str,
    url: str,
    secret_name: Optional[str],
    options: Optional[RepositoryFetchOptions] = None,
) -> PackageRepositoryFetch:
    """Build the single fetch entry of a PackageRepository.

    Raises:
        InvalidArgumentError: If repository_type cannot be created by the plugin
    """
    options = options or RepositoryFetchOptions()
    secret_ref = SecretRef(name=secret_name) if secret_name else None
    selection = _semver_selection(options.semver_constraints)
    sub_path = options.sub_path or None

    if repository_type == REPOSITORY_TYPE_IMGPKG_BUNDLE:
        return PackageRepositoryFetch(
            imgpkg_bundle=ImgpkgBundleFetch(
                image=url, secret_ref=secret_ref, tag_selection=selection
            )
        )
    if repository_type == REPOSITORY_TYPE_IMAGE:
        return PackageRepositoryFetch(
            image=ImageFetch(
                url=url, secret_ref=secret_ref, sub_path=sub_path, tag_selection=selection
            )
        )
    if repository_type == REPOSITORY_TYPE_GIT:
        return PackageRepositoryFetch(
            git=GitFetch(
                url=url,
                ref=options.ref or None,
                ref_selection=selection,
                secret_ref=secret_ref,
                sub_path=sub_path,
            )
        )
    if repository_type == REPOSITORY_TYPE_HTTP:
        return PackageRepositoryFetch(
            http=HttpFetch(
                url=url,
                sha256=options.sha256 or None,
                secret_ref=secret_ref,
                sub_path=sub_path,
            )
        )
    raise InvalidArgumentError(
        f"repository type {repository_type!r} is not supported, expected one of "
        f"{', '.join(SUPPORTED_REPOSITORY_TYPES)}",
        field="type",
    )


def fetch_options(fetch: PackageRepositoryFetch) -> Optional[RepositoryFetchOptions]:
    """Read the type-specific fetch options back from a fetch entry."""
    if fetch.imgpkg_bundle is not None:
        options = RepositoryFetchOptions(
            semver_constraints=_selection_constraints(fetch.imgpkg_bundle.tag_selection)
        )
    elif fetch.image is not None:
        options = RepositoryFetchOptions(
            sub_path=fetch.image.sub_path or "",
            semver_constraints=_selection_constraints(fetch.image.tag_selection),
        )
    elif fetch.git is not None:
        options = RepositoryFetchOptions(
            ref=fetch.git.ref or "",
            sub_path=fetch.git.sub_path or "",
            semver_constraints=_selection_constraints(fetch.git.ref_selection),
        )
    elif fetch.http is not None:
        options = RepositoryFetchOptions(
            sub_path=fetch.http.sub_path or "", sha256=fetch.http.sha256 or ""
        )
    else:
        return None

    if options == RepositoryFetchOptions():
        return None
    return options


def build_package_repository(
    namespace: str,
    name: str,
    description: str,
    interval: int,
    fetch: PackageRepositoryFetch,
) -> PackageRepositoryRecord:
    annotations = {DESCRIPTION_ANNOTATION: description} if description else None
    return PackageRepositoryRecord(
        api_version=PACKAGE_REPOSITORY.api_version,
        kind=PACKAGE_REPOSITORY.kind,
        metadata=ObjectMeta(name=name, namespace=namespace, annotations=annotations),
        spec=PackageRepositorySpec(
            fetch=fetch,
            sync_period=format_duration(interval) if interval else None,
        ),
    )


def set_description(repository: PackageRepositoryRecord, description: str) -> None:
    annotations = dict(repository.metadata.annotations or {})
    if description:
        annotations[DESCRIPTION_ANNOTATION] = description
    else:
        annotations.pop(DESCRIPTION_ANNOTATION, None)
    repository.metadata.annotations = annotations or None


def description(repository: PackageRepositoryRecord) -> str:
    return (repository.metadata.annotations or {}).get(DESCRIPTION_ANNOTATION, "")


def repository_reference(
    repository: PackageRepositoryRecord, cluster: str, plugin: Plugin
) -> PackageRepositoryReference:
    return PackageRepositoryReference(
        context=Context(cluster=cluster, namespace=repository.metadata.namespace),
        identifier=repository.metadata.name,
        plugin=plugin,
    )


def _interval(repository: PackageRepositoryRecord) -> int:
    try:
        return parse_duration(repository.spec.sync_period or "")
    except ValueError:
        logger.warning(
            f"PackageRepository {repository.metadata.name!r} has an unparseable "
            f"syncPeriod {repository.spec.sync_period!r}"
        )
        return 0


def build_repository_summary(
    repository: PackageRepositoryRecord,
    cluster: str,
    plugin: Plugin,
    global_namespace: str,
) -> PackageRepositorySummary:
    fetch = repository.spec.fetch
    return PackageRepositorySummary(
        package_repo_ref=repository_reference(repository, cluster, plugin),
        name=repository.metadata.name,
        description=description(repository),
        namespace_scoped=repository.metadata.namespace != global_namespace,
        type=fetch.repository_type or "",
        url=fetch.url,
        requires_auth=fetch.secret_ref is not None and bool(fetch.secret_ref.name),
        status=repository_status(
            repository.status, subject=f"PackageRepository {repository.metadata.name!r}"
        ),
    )


def build_repository_detail(
    repository: PackageRepositoryRecord,
    auth: Optional[PackageRepositoryAuth],
    cluster: str,
    plugin: Plugin,
    global_namespace: str,
) -> PackageRepositoryDetail:
    fetch = repository.spec.fetch
    return PackageRepositoryDetail(
        package_repo_ref=repository_reference(repository, cluster, plugin),
        name=repository.metadata.name,
        description=description(repository),
        namespace_scoped=repository.metadata.namespace != global_namespace,
        type=fetch.repository_type or "",
        url=fetch.url,
        interval=_interval(repository),
        auth=auth,
        fetch_options=fetch_options(fetch),
        status=repository_status(
            repository.status,
            detailed=True,
            subject=f"PackageRepository {repository.metadata.name!r}",
        ),
    )
