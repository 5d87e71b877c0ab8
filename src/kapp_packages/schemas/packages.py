"""API payloads for available and installed packages."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from kapp_packages.schemas.common import (
    Context,
    Plugin,
    ReconciliationOptions,
    VersionReference,
)


class AvailablePackageReference(BaseModel):
    """Points at a package available for install.

    identifier is the package's logical name (the PackageMetadata name).
    """

    context: Context
    identifier: str
    plugin: Optional[Plugin] = None


class InstalledPackageReference(BaseModel):
    """Points at a PackageInstall; identifier is its name."""

    context: Context
    identifier: str
    plugin: Optional[Plugin] = None


class PackageAppVersion(BaseModel):
    pkg_version: str
    app_version: str


class Maintainer(BaseModel):
    name: str
    email: str = ""


class AvailablePackageSummary(BaseModel):
    available_package_ref: AvailablePackageReference
    name: str
    latest_version: PackageAppVersion
    icon_url: str = ""
    display_name: str = ""
    short_description: str = ""
    categories: List[str] = Field(default_factory=list)


class GetAvailablePackageSummariesResponse(BaseModel):
    available_package_summaries: List[AvailablePackageSummary] = Field(
        default_factory=list
    )
    next_page_token: str = ""
    categories: List[str] = Field(default_factory=list)


class GetAvailablePackageVersionsResponse(BaseModel):
    package_app_versions: List[PackageAppVersion] = Field(default_factory=list)


class AvailablePackageDetail(BaseModel):
    available_package_ref: AvailablePackageReference
    name: str
    version: PackageAppVersion
    repo_url: str = ""
    home_url: str = ""
    icon_url: str = ""
    display_name: str = ""
    short_description: str = ""
    long_description: str = ""
    readme: str = ""
    default_values: str = ""
    values_schema: str = ""
    source_urls: List[str] = Field(default_factory=list)
    maintainers: List[Maintainer] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)


class InstalledPackageStatusReason(str, Enum):
    UNSPECIFIED = "STATUS_REASON_UNSPECIFIED"
    INSTALLED = "STATUS_REASON_INSTALLED"
    FAILED = "STATUS_REASON_FAILED"
    PENDING = "STATUS_REASON_PENDING"


class InstalledPackageStatus(BaseModel):
    ready: bool = False
    reason: InstalledPackageStatusReason = InstalledPackageStatusReason.UNSPECIFIED
    user_reason: str = ""


class InstalledPackageSummary(BaseModel):
    installed_package_ref: InstalledPackageReference
    name: str
    pkg_display_name: str = ""
    short_description: str = ""
    icon_url: str = ""
    pkg_version_reference: VersionReference
    current_version: PackageAppVersion
    latest_version: PackageAppVersion
    latest_matching_version: Optional[PackageAppVersion] = None
    status: InstalledPackageStatus


class GetInstalledPackageSummariesResponse(BaseModel):
    installed_package_summaries: List[InstalledPackageSummary] = Field(
        default_factory=list
    )
    next_page_token: str = ""


class InstalledPackageDetail(BaseModel):
    installed_package_ref: InstalledPackageReference
    name: str
    pkg_version_reference: VersionReference
    current_version: PackageAppVersion
    latest_version: Optional[PackageAppVersion] = None
    latest_matching_version: Optional[PackageAppVersion] = None
    values_applied: str = ""
    reconciliation_options: ReconciliationOptions
    post_installation_notes: str = ""
    available_package_ref: AvailablePackageReference
    status: InstalledPackageStatus


class CreateInstalledPackageRequest(BaseModel):
    available_package_ref: AvailablePackageReference
    target_context: Context
    name: str
    pkg_version_reference: VersionReference
    values: str = ""
    reconciliation_options: Optional[ReconciliationOptions] = None


class CreateInstalledPackageResponse(BaseModel):
    installed_package_ref: InstalledPackageReference


class UpdateInstalledPackageRequest(BaseModel):
    installed_package_ref: InstalledPackageReference
    pkg_version_reference: VersionReference
    values: str = ""
    reconciliation_options: Optional[ReconciliationOptions] = None


class UpdateInstalledPackageResponse(BaseModel):
    installed_package_ref: InstalledPackageReference
