"""Unit tests for AppSettings and logging configuration.

Verifies defaults, KAPP_PACKAGES_* environment variable overrides, the
derived plugin identity and version summary policy, and the get_settings()
singleton factory.
"""

import json
import logging
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from kapp_packages.config.app_settings import AppSettings, get_settings
from kapp_packages.core.upgrade_policy import UpgradePolicy
from kapp_packages.logging_config import TEXT_LOG_FORMAT, configure_logging

# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


class TestAppSettings:
    """Tests for AppSettings default values and environment overrides."""

    def test_defaults(self) -> None:
        """AppSettings can be created without environment variables."""
        settings = AppSettings()

        assert settings.global_packaging_namespace == "kapp-controller-packaging-global"
        assert settings.global_packaging_cluster == "default"
        assert settings.default_upgrade_policy == UpgradePolicy.NONE
        assert settings.default_prerelease is False
        assert settings.timeout_seconds == 5
        assert settings.version_queue_size == 20

    def test_namespace_overridable_via_prefix_env_var(self) -> None:
        """KAPP_PACKAGES_GLOBAL_PACKAGING_NAMESPACE overrides the global namespace."""
        with patch.dict(os.environ, {"KAPP_PACKAGES_GLOBAL_PACKAGING_NAMESPACE": "carvel"}):
            settings = AppSettings()

        assert settings.global_packaging_namespace == "carvel"

    def test_upgrade_policy_is_case_insensitive(self) -> None:
        """The upgrade policy accepts upper-case values from the environment."""
        with patch.dict(os.environ, {"KAPP_PACKAGES_DEFAULT_UPGRADE_POLICY": "Minor"}):
            settings = AppSettings()

        assert settings.default_upgrade_policy == UpgradePolicy.MINOR

    def test_rejects_unknown_upgrade_policy(self) -> None:
        """An unknown upgrade policy fails validation."""
        with pytest.raises(ValidationError):
            AppSettings(default_upgrade_policy="sometimes")

    def test_rejects_non_positive_timeout(self) -> None:
        """timeout_seconds must be positive."""
        with pytest.raises(ValidationError):
            AppSettings(timeout_seconds=0)

    def test_plugin_detail(self) -> None:
        """plugin_detail reports the configured plugin name and version."""
        plugin = AppSettings(plugin_name="kapp", plugin_version="v2").plugin_detail()

        assert plugin.name == "kapp"
        assert plugin.version == "v2"

    def test_versions_in_summary(self) -> None:
        """versions_in_summary carries the three trimming limits."""
        summary = AppSettings(
            versions_in_summary_major=1,
            versions_in_summary_minor=2,
            versions_in_summary_patch=4,
        ).versions_in_summary()

        assert (summary.major, summary.minor, summary.patch) == (1, 2, 4)


class TestGetSettings:
    """Tests for the get_settings singleton factory."""

    def test_returns_same_instance(self) -> None:
        """get_settings caches the settings for the process lifetime."""
        assert get_settings() is get_settings()
        assert isinstance(get_settings(), AppSettings)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_text_logging(self):
        """Return the root logger to the text format after each test."""
        yield
        configure_logging(AppSettings())

    def test_sets_root_level(self) -> None:
        """configure_logging applies the configured level to the root logger."""
        configure_logging(AppSettings(log_level="debug"))

        assert logging.getLogger().level == logging.DEBUG

    def test_text_format(self) -> None:
        """The text format is the default."""
        configure_logging(AppSettings())

        handler = logging.getLogger().handlers[0]
        assert handler.formatter._fmt == TEXT_LOG_FORMAT

    def test_json_lines_parse(self, capsys) -> None:
        """JSON lines stay valid when the message holds quotes and newlines."""
        configure_logging(AppSettings(log_format="json"))
        message = 'unable to parse "values": bad\nat C:\\values.yaml'

        logging.getLogger("kapp_packages.values").warning(message)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == message
        assert record["level"] == "warning"
        assert record["logger"] == "kapp_packages.values"
        assert "timestamp" in record

    def test_json_lines_include_exceptions(self, capsys) -> None:
        """Exception tracebacks are rendered inside the JSON line."""
        configure_logging(AppSettings(log_format="json"))

        try:
            raise ValueError("broken")
        except ValueError:
            logging.getLogger("kapp_packages.values").exception("failed")

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "failed"
        assert "ValueError: broken" in record["exception"]
