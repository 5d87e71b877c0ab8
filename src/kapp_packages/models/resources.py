"""Typed records for the Carvel and core objects the plugin works with.

Raw store objects are decoded once, at the data-access boundary, into these
models. Unknown fields are preserved (extra="allow") so that a decoded record
can be dumped back into an object for an update without losing data.
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kapp_packages.constants import (
    CONDITION_DELETING,
    CONDITION_RECONCILING,
    MANAGED_BY_ANNOTATION,
    MANAGED_BY_PLUGIN,
    REPOSITORY_TYPE_GIT,
    REPOSITORY_TYPE_HTTP,
    REPOSITORY_TYPE_IMAGE,
    REPOSITORY_TYPE_IMGPKG_BUNDLE,
    REPOSITORY_TYPE_INLINE,
)


class ResourceModel(BaseModel):
    """Base for records mirroring Kubernetes JSON (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_object(self) -> Dict[str, Any]:
        """Dump back into the wire representation."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---------------------------------------------------------------------------
# Shared object structure
# ---------------------------------------------------------------------------


class OwnerReference(ResourceModel):
    api_version: str
    kind: str
    name: str
    uid: str
    controller: Optional[bool] = None
    block_owner_deletion: Optional[bool] = None


class ObjectMeta(ResourceModel):
    name: str = ""
    namespace: str = ""
    generate_name: Optional[str] = None
    uid: Optional[str] = None
    resource_version: Optional[str] = None
    generation: Optional[int] = None
    annotations: Optional[Dict[str, str]] = None
    labels: Optional[Dict[str, str]] = None
    owner_references: Optional[List[OwnerReference]] = None


class Condition(ResourceModel):
    type: str = ""
    status: str = ""
    reason: Optional[str] = None
    message: Optional[str] = None


class ReconcileStatus(ResourceModel):
    """Status block shared by PackageInstall, PackageRepository and App."""

    conditions: List[Condition] = Field(default_factory=list)
    observed_generation: Optional[int] = None
    friendly_description: Optional[str] = None
    useful_error_message: Optional[str] = None

    @property
    def latest_condition(self) -> Optional[Condition]:
        if not self.conditions:
            return None
        return self.conditions[0]


class SecretRef(ResourceModel):
    name: str = ""
    key: Optional[str] = None


# ---------------------------------------------------------------------------
# Package and PackageMetadata (data.packaging.carvel.dev)
# ---------------------------------------------------------------------------


class ValuesSchema(ResourceModel):
    open_api_v3: Optional[Any] = Field(default=None, alias="openAPIv3")


class PackageSpec(ResourceModel):
    ref_name: str = ""
    version: str = ""
    released_at: Optional[datetime] = None
    release_notes: Optional[str] = None
    licenses: List[str] = Field(default_factory=list)
    capacity_requirements_description: Optional[str] = None
    values_schema: Optional[ValuesSchema] = None


class PackageRecord(ResourceModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PackageSpec = Field(default_factory=PackageSpec)


class Maintainer(ResourceModel):
    name: str = ""


class PackageMetadataSpec(ResourceModel):
    display_name: Optional[str] = None
    short_description: Optional[str] = None
    long_description: Optional[str] = None
    icon_svg_base64: Optional[str] = Field(default=None, alias="iconSVGBase64")
    categories: List[str] = Field(default_factory=list)
    maintainers: List[Maintainer] = Field(default_factory=list)
    support_description: Optional[str] = None
    provider_name: Optional[str] = None


class PackageMetadataRecord(ResourceModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PackageMetadataSpec = Field(default_factory=PackageMetadataSpec)

    @property
    def join_key(self) -> tuple:
        return (self.metadata.namespace, self.metadata.name)


# ---------------------------------------------------------------------------
# PackageInstall (packaging.carvel.dev)
# ---------------------------------------------------------------------------


class VersionSelection(ResourceModel):
    constraints: Optional[str] = None
    prereleases: Optional[Dict[str, Any]] = None


class PackageRef(ResourceModel):
    ref_name: str = ""
    version_selection: Optional[VersionSelection] = None


class PackageInstallValues(ResourceModel):
    secret_ref: Optional[SecretRef] = None


class PackageInstallSpec(ResourceModel):
    service_account_name: Optional[str] = None
    package_ref: PackageRef = Field(default_factory=PackageRef)
    values: List[PackageInstallValues] = Field(default_factory=list)
    sync_period: Optional[str] = None
    paused: Optional[bool] = None
    canceled: Optional[bool] = None


class PackageInstallStatus(ReconcileStatus):
    version: Optional[str] = None
    last_attempted_version: Optional[str] = None


class PackageInstallRecord(ResourceModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PackageInstallSpec = Field(default_factory=PackageInstallSpec)
    status: PackageInstallStatus = Field(default_factory=PackageInstallStatus)

    @property
    def version_constraints(self) -> Optional[str]:
        selection = self.spec.package_ref.version_selection
        return selection.constraints if selection else None


# ---------------------------------------------------------------------------
# App (kappctrl.k14s.io)
# ---------------------------------------------------------------------------


class CommandOutput(ResourceModel):
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: Optional[int] = None


class AppSpec(ResourceModel):
    sync_period: Optional[str] = None
    service_account_name: Optional[str] = None
    paused: Optional[bool] = None


class AppStatus(ReconcileStatus):
    deploy: Optional[CommandOutput] = None
    fetch: Optional[CommandOutput] = None
    template: Optional[CommandOutput] = None


class AppRecord(ResourceModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: AppSpec = Field(default_factory=AppSpec)
    status: AppStatus = Field(default_factory=AppStatus)


# ---------------------------------------------------------------------------
# PackageRepository (packaging.carvel.dev)
# ---------------------------------------------------------------------------


class ImgpkgBundleFetch(ResourceModel):
    image: str = ""
    secret_ref: Optional[SecretRef] = None
    tag_selection: Optional[Dict[str, Any]] = None


class ImageFetch(ResourceModel):
    url: str = ""
    secret_ref: Optional[SecretRef] = None
    sub_path: Optional[str] = None
    tag_selection: Optional[Dict[str, Any]] = None


class GitFetch(ResourceModel):
    url: str = ""
    ref: Optional[str] = None
    ref_selection: Optional[Dict[str, Any]] = None
    secret_ref: Optional[SecretRef] = None
    sub_path: Optional[str] = None
    lfs_skip_smudge: Optional[bool] = None


class HttpFetch(ResourceModel):
    url: str = ""
    sha256: Optional[str] = None
    secret_ref: Optional[SecretRef] = None
    sub_path: Optional[str] = None


class PackageRepositoryFetch(ResourceModel):
    imgpkg_bundle: Optional[ImgpkgBundleFetch] = None
    image: Optional[ImageFetch] = None
    git: Optional[GitFetch] = None
    http: Optional[HttpFetch] = None
    inline: Optional[Dict[str, Any]] = None

    @property
    def repository_type(self) -> Optional[str]:
        if self.imgpkg_bundle is not None:
            return REPOSITORY_TYPE_IMGPKG_BUNDLE
        if self.image is not None:
            return REPOSITORY_TYPE_IMAGE
        if self.git is not None:
            return REPOSITORY_TYPE_GIT
        if self.http is not None:
            return REPOSITORY_TYPE_HTTP
        if self.inline is not None:
            return REPOSITORY_TYPE_INLINE
        return None

    @property
    def url(self) -> str:
        if self.imgpkg_bundle is not None:
            return self.imgpkg_bundle.image
        if self.image is not None:
            return self.image.url
        if self.git is not None:
            return self.git.url
        if self.http is not None:
            return self.http.url
        return ""

    @property
    def secret_ref(self) -> Optional[SecretRef]:
        for fetch in (self.imgpkg_bundle, self.image, self.git, self.http):
            if fetch is not None:
                return fetch.secret_ref
        return None


class PackageRepositorySpec(ResourceModel):
    fetch: PackageRepositoryFetch = Field(default_factory=PackageRepositoryFetch)
    sync_period: Optional[str] = None
    paused: Optional[bool] = None


class PackageRepositoryRecord(ResourceModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PackageRepositorySpec = Field(default_factory=PackageRepositorySpec)
    status: ReconcileStatus = Field(default_factory=ReconcileStatus)

    @property
    def is_stable(self) -> bool:
        """Whether the controller has caught up with the latest spec."""
        generation = self.metadata.generation
        observed = self.status.observed_generation
        if generation is not None and observed is not None and observed != generation:
            return False
        condition = self.status.latest_condition
        if condition is None:
            return True
        return condition.type not in (CONDITION_RECONCILING, CONDITION_DELETING)


# ---------------------------------------------------------------------------
# Secret (core/v1)
# ---------------------------------------------------------------------------


class SecretRecord(ResourceModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    type: Optional[str] = None
    data: Dict[str, str] = Field(default_factory=dict)

    @property
    def string_data(self) -> Dict[str, str]:
        """Secret data decoded from base64."""
        decoded = {}
        for key, value in self.data.items():
            try:
                decoded[key] = base64.b64decode(value).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as err:
                raise ValueError(
                    f"secret {self.metadata.name!r} has an undecodable value for key {key!r}"
                ) from err
        return decoded

    @property
    def is_plugin_managed(self) -> bool:
        annotations = self.metadata.annotations or {}
        return annotations.get(MANAGED_BY_ANNOTATION) == MANAGED_BY_PLUGIN


def encode_secret_data(values: Dict[str, str]) -> Dict[str, str]:
    """Base64-encode string values for a Secret's data field."""
    return {
        key: base64.b64encode(value.encode("utf-8")).decode("ascii")
        for key, value in values.items()
    }
