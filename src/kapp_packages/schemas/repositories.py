"""API payloads for package repositories and their credentials."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from kapp_packages.schemas.common import Context, Plugin


class PackageRepositoryReference(BaseModel):
    """Points at a PackageRepository; identifier is its name."""

    context: Context
    identifier: str
    plugin: Optional[Plugin] = None


class PackageRepositoryAuthType(str, Enum):
    UNSPECIFIED = "PACKAGE_REPOSITORY_AUTH_TYPE_UNSPECIFIED"
    BASIC_AUTH = "PACKAGE_REPOSITORY_AUTH_TYPE_BASIC_AUTH"
    BEARER = "PACKAGE_REPOSITORY_AUTH_TYPE_BEARER"
    SSH = "PACKAGE_REPOSITORY_AUTH_TYPE_SSH"
    DOCKER_CONFIG_JSON = "PACKAGE_REPOSITORY_AUTH_TYPE_DOCKER_CONFIG_JSON"


class UsernamePassword(BaseModel):
    username: str = ""
    password: str = ""


class SshCredentials(BaseModel):
    private_key: str = ""
    known_hosts: str = ""


class DockerCredentials(BaseModel):
    server: str = ""
    username: str = ""
    password: str = ""
    email: str = ""


class SecretKeyReference(BaseModel):
    """Reference to a user-managed Secret in the repository namespace."""

    name: str
    key: str = ""


class PackageRepositoryAuth(BaseModel):
    """Repository credentials.

    Exactly one of secret_ref (user-managed secret) or the credential field
    matching type (plugin-managed secret) is set. On updates any credential
    value equal to "REDACTED" means "keep the stored value".
    """

    type: PackageRepositoryAuthType = PackageRepositoryAuthType.UNSPECIFIED
    pass_credentials: bool = False
    secret_ref: Optional[SecretKeyReference] = None
    username_password: Optional[UsernamePassword] = None
    ssh_creds: Optional[SshCredentials] = None
    docker_creds: Optional[DockerCredentials] = None
    header: Optional[str] = None


class RepositoryFetchOptions(BaseModel):
    """Fetch options that only apply to some repository types.

    Attributes:
        ref: Git ref to fetch (git)
        sub_path: Directory inside the fetched content (image, git, http)
        semver_constraints: Tag or ref selection constraint (imgpkgBundle, image, git)
        sha256: Expected archive checksum (http)
    """

    ref: str = ""
    sub_path: str = ""
    semver_constraints: str = ""
    sha256: str = ""


class AddPackageRepositoryRequest(BaseModel):
    context: Context
    name: str
    description: str = ""
    namespace_scoped: bool = True
    type: str = ""
    url: str = ""
    interval: int = Field(default=0, ge=0)
    auth: Optional[PackageRepositoryAuth] = None
    fetch_options: Optional[RepositoryFetchOptions] = None


class AddPackageRepositoryResponse(BaseModel):
    package_repo_ref: PackageRepositoryReference


class UpdatePackageRepositoryRequest(BaseModel):
    package_repo_ref: PackageRepositoryReference
    url: str = ""
    description: str = ""
    interval: int = Field(default=0, ge=0)
    auth: Optional[PackageRepositoryAuth] = None
    fetch_options: Optional[RepositoryFetchOptions] = None


class UpdatePackageRepositoryResponse(BaseModel):
    package_repo_ref: PackageRepositoryReference


class PackageRepositoryStatusReason(str, Enum):
    UNSPECIFIED = "STATUS_REASON_UNSPECIFIED"
    SUCCESS = "STATUS_REASON_SUCCESS"
    FAILED = "STATUS_REASON_FAILED"
    PENDING = "STATUS_REASON_PENDING"


class PackageRepositoryStatus(BaseModel):
    ready: bool = False
    reason: PackageRepositoryStatusReason = PackageRepositoryStatusReason.UNSPECIFIED
    user_reason: str = ""


class PackageRepositorySummary(BaseModel):
    package_repo_ref: PackageRepositoryReference
    name: str
    description: str = ""
    namespace_scoped: bool = True
    type: str = ""
    url: str = ""
    requires_auth: bool = False
    status: PackageRepositoryStatus


class GetPackageRepositorySummariesResponse(BaseModel):
    package_repository_summaries: List[PackageRepositorySummary] = Field(
        default_factory=list
    )


class PackageRepositoryDetail(BaseModel):
    package_repo_ref: PackageRepositoryReference
    name: str
    description: str = ""
    namespace_scoped: bool = True
    type: str = ""
    url: str = ""
    interval: int = 0
    auth: Optional[PackageRepositoryAuth] = None
    fetch_options: Optional[RepositoryFetchOptions] = None
    status: PackageRepositoryStatus


class PackageRepositoriesPermissions(BaseModel):
    plugin: Plugin
    global_permissions: Dict[str, bool] = Field(default_factory=dict)
    namespace_permissions: Dict[str, bool] = Field(default_factory=dict)
