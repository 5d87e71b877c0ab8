"""Assembly of the plugin's services from settings."""

import logging
from typing import Optional

from kapp_packages.config.app_settings import AppSettings, get_settings
from kapp_packages.infrastructure.store.provider import KubeconfigStoreProvider, StoreProvider
from kapp_packages.logging_config import configure_logging
from kapp_packages.schemas.common import Plugin
from kapp_packages.service import PackageService, RepositoryService

logger = logging.getLogger(__name__)


class KappPackagesPlugin:
    """Entry point handed to the transport layer.

    Attributes:
        settings: Plugin settings
        plugin: Plugin identity reported in every reference
        packages: Service for available and installed packages
        repositories: Service for package repositories
    """

    def __init__(self, store_provider: StoreProvider, settings: AppSettings):
        self.settings = settings
        self.plugin: Plugin = settings.plugin_detail()
        self.packages = PackageService(store_provider, settings, self.plugin)
        self.repositories = RepositoryService(store_provider, settings, self.plugin)


def create_plugin(
    settings: Optional[AppSettings] = None,
    store_provider: Optional[StoreProvider] = None,
) -> KappPackagesPlugin:
    """Build the plugin, configuring logging and cluster access from settings.

    Args:
        settings: Plugin settings, defaults to the environment settings
        store_provider: Store provider, defaults to kubeconfig-based access

    Returns:
        Configured plugin
    """
    settings = settings or get_settings()
    configure_logging(settings)
    if store_provider is None:
        store_provider = KubeconfigStoreProvider(
            settings.kubeconfig_path, settings.global_packaging_cluster
        )
    logger.info(
        f"Starting {settings.plugin_name} {settings.plugin_version} "
        f"(global namespace {settings.global_packaging_namespace!r})"
    )
    return KappPackagesPlugin(store_provider, settings)
