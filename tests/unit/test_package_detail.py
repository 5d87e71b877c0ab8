"""Unit tests for kapp_packages.core.package_detail.

Covers readme assembly and default values rendered from OpenAPI v3 values
schemas.
"""

import pytest

from kapp_packages.core.package_detail import build_readme, default_values_from_schema
from kapp_packages.models.resources import PackageMetadataRecord, PackageRecord
from tests.conftest import make_metadata, make_package


class TestBuildReadme:
    """Tests for build_readme."""

    def test_all_sections(self) -> None:
        """Every populated field contributes its section, in order."""
        metadata = PackageMetadataRecord.model_validate(
            make_metadata(longDescription="Long text", supportDescription="Ask us")
        )
        package = PackageRecord.model_validate(
            make_package(
                capacityRequirementsDescription="1 CPU",
                releaseNotes="Fixed bugs",
                releasedAt="2021-10-05T00:00:00Z",
                licenses=["Apache 2.0", "MIT"],
            )
        )

        assert build_readme(metadata, package) == (
            "## Description\n\nLong text\n\n"
            "## Capacity requirements\n\n1 CPU\n\n"
            "## Release notes\n\nFixed bugs\n\n"
            "Released at: October, 5 2021\n\n"
            "## Support\n\nAsk us\n\n"
            "## Licenses\n\n- Apache 2.0\n- MIT\n\n"
        )

    def test_empty_fields_are_left_out(self) -> None:
        """A package without descriptive fields has an empty readme."""
        metadata = PackageMetadataRecord.model_validate(make_metadata())
        package = PackageRecord.model_validate(make_package())

        assert build_readme(metadata, package) == ""


class TestDefaultValuesFromSchema:
    """Tests for default_values_from_schema."""

    @pytest.mark.parametrize("schema", [None, "", {}])
    def test_no_schema(self, schema) -> None:
        """No schema renders no values."""
        assert default_values_from_schema(schema) == ""

    def test_defaults_and_type_fallbacks(self) -> None:
        """Declared defaults are used and other properties get type zero values."""
        schema = {
            "type": "object",
            "properties": {
                "replicas": {"type": "integer", "default": 3},
                "name": {"type": "string"},
                "enabled": {"type": "boolean"},
                "tags": {"type": "array"},
            },
        }

        assert default_values_from_schema(schema) == (
            "enabled: false\nname: ''\nreplicas: 3\ntags: []\n"
        )

    def test_nested_objects(self) -> None:
        """Objects whose children declare defaults are filled recursively."""
        schema = {
            "properties": {
                "service": {
                    "type": "object",
                    "properties": {"port": {"type": "integer", "default": 80}},
                }
            }
        }

        assert default_values_from_schema(schema) == "service:\n  port: 80\n"

    def test_commented_out(self) -> None:
        """Commented output prefixes every line with '# '."""
        schema = {"properties": {"a": {"default": 1}, "b": {"default": "x"}}}

        assert default_values_from_schema(schema, commented_out=True) == "# a: 1\n# b: x\n"

    def test_accepts_yaml_text(self) -> None:
        """A schema given as YAML text is parsed first."""
        schema = "properties:\n  port:\n    type: integer\n    default: 8080\n"

        assert default_values_from_schema(schema) == "port: 8080\n"

    @pytest.mark.parametrize("schema", ["properties: [unclosed", "- a\n- b\n"])
    def test_rejects_bad_schema(self, schema: str) -> None:
        """Unparseable or non-object schemas raise ValueError."""
        with pytest.raises(ValueError):
            default_values_from_schema(schema)
