"""Service layer for the kapp-controller packages plugin.

Exports PackageService for available and installed packages,
RepositoryService for package repositories, and RepositoryCredentialManager
for the auth secrets those repositories reference.
"""

from kapp_packages.service.credential_manager import RepositoryCredentialManager
from kapp_packages.service.package_service import PackageService
from kapp_packages.service.repository_service import RepositoryService

__all__ = [
    "PackageService",
    "RepositoryCredentialManager",
    "RepositoryService",
]
