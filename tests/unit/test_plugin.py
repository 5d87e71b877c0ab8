"""Unit tests for plugin assembly."""

from kapp_packages.config.app_settings import AppSettings
from kapp_packages.infrastructure.store.provider import StaticStoreProvider
from kapp_packages.plugin import KappPackagesPlugin, create_plugin
from kapp_packages.schemas.common import Context


class TestCreatePlugin:
    """Tests for create_plugin."""

    def test_wires_services(self, store_provider) -> None:
        """Both services share the settings and plugin identity."""
        settings = AppSettings(plugin_version="v2")

        plugin = create_plugin(settings, store_provider)

        assert isinstance(plugin, KappPackagesPlugin)
        assert plugin.plugin.version == "v2"
        assert plugin.packages.plugin == plugin.plugin
        assert plugin.repositories.settings is settings

    async def test_services_use_store(self, store) -> None:
        """Requests reach the configured store."""
        plugin = create_plugin(AppSettings(), StaticStoreProvider({"default": store}))

        response = await plugin.repositories.get_package_repository_summaries(
            Context(namespace="default")
        )

        assert response.package_repository_summaries == []
        assert store.calls
