"""Plugin configuration from environment variables.

This module provides the AppSettings class which loads the plugin's
configuration from environment variables at startup: the global packaging
namespace, upgrade and version-summary policies, wait timeouts, and the
plugin identity reported in every package reference.

Services never read the singleton directly; they receive an AppSettings and
a Plugin value at construction time.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kapp_packages.constants import (
    DEFAULT_CLUSTER,
    DEFAULT_GLOBAL_PACKAGING_NAMESPACE,
    DEFAULT_PLUGIN_NAME,
    DEFAULT_PLUGIN_VERSION,
    DEFAULT_VERSION_QUEUE_SIZE,
    DEFAULT_VERSIONS_IN_SUMMARY,
    DEFAULT_WAIT_POLL_INTERVAL_SECONDS,
    DEFAULT_WAIT_TIMEOUT_SECONDS,
)
from kapp_packages.core.upgrade_policy import UpgradePolicy
from kapp_packages.core.version_summary import VersionsInSummary
from kapp_packages.schemas.common import Plugin


class AppSettings(BaseSettings):
    """Static configuration loaded from environment variables.

    All settings can be overridden via environment variables with the
    KAPP_PACKAGES_ prefix. For example, timeout_seconds can be set via
    KAPP_PACKAGES_TIMEOUT_SECONDS.

    Attributes:
        global_packaging_namespace: Namespace whose packages are visible cluster-wide
        global_packaging_cluster: Cluster hosting the global packaging namespace
        default_upgrade_policy: Upgrade policy applied to new installs (none, major, minor, patch)
        default_prerelease: Allow pre-release versions when selecting install versions
        versions_in_summary_major: Major versions kept by the versions summary
        versions_in_summary_minor: Minor versions kept per major
        versions_in_summary_patch: Patch versions kept per minor
        timeout_seconds: Seconds to wait for the App of a new install
        wait_poll_interval_seconds: Seconds between App existence polls
        version_queue_size: Capacity of the package version queue
        plugin_name: Plugin name reported in references
        plugin_version: Plugin version reported in references
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json or text)
        kubeconfig_path: Kubeconfig file, None for in-cluster configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="KAPP_PACKAGES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    global_packaging_namespace: str = Field(default=DEFAULT_GLOBAL_PACKAGING_NAMESPACE)
    global_packaging_cluster: str = Field(default=DEFAULT_CLUSTER)

    default_upgrade_policy: UpgradePolicy = Field(default=UpgradePolicy.NONE)
    default_prerelease: bool = Field(default=False)

    versions_in_summary_major: int = Field(default=DEFAULT_VERSIONS_IN_SUMMARY, ge=0)
    versions_in_summary_minor: int = Field(default=DEFAULT_VERSIONS_IN_SUMMARY, ge=0)
    versions_in_summary_patch: int = Field(default=DEFAULT_VERSIONS_IN_SUMMARY, ge=0)

    timeout_seconds: float = Field(default=DEFAULT_WAIT_TIMEOUT_SECONDS, gt=0)
    wait_poll_interval_seconds: float = Field(
        default=DEFAULT_WAIT_POLL_INTERVAL_SECONDS, gt=0
    )
    version_queue_size: int = Field(default=DEFAULT_VERSION_QUEUE_SIZE, gt=0)

    plugin_name: str = Field(default=DEFAULT_PLUGIN_NAME)
    plugin_version: str = Field(default=DEFAULT_PLUGIN_VERSION)

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")

    kubeconfig_path: Optional[str] = Field(default=None)

    @field_validator("default_upgrade_policy", mode="before")
    @classmethod
    def _normalize_upgrade_policy(cls, value):
        if isinstance(value, str):
            return value.strip().lower() or UpgradePolicy.NONE.value
        return value

    def plugin_detail(self) -> Plugin:
        """Plugin identity reported in package and repository references."""
        return Plugin(name=self.plugin_name, version=self.plugin_version)

    def versions_in_summary(self) -> VersionsInSummary:
        """Trimming policy for available package version lists."""
        return VersionsInSummary(
            major=self.versions_in_summary_major,
            minor=self.versions_in_summary_minor,
            patch=self.versions_in_summary_patch,
        )


_app_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get singleton instance of static settings.

    Settings are loaded once and cached for application lifetime.

    Returns:
        AppSettings instance
    """
    global _app_settings

    if _app_settings is None:
        _app_settings = AppSettings()

    return _app_settings
