"""Readme and default values rendered for available package details."""

import copy
from typing import Any, Dict, Optional

import yaml

from kapp_packages.models.resources import PackageMetadataRecord, PackageRecord

_TYPE_DEFAULTS: Dict[str, Any] = {
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
    "array": [],
    "object": {},
}


def build_readme(metadata: PackageMetadataRecord, package: PackageRecord) -> str:
    """Assemble a markdown readme from metadata and version fields.

    Sections without content are left out.
    """
    sections = []
    if metadata.spec.long_description:
        sections.append(f"## Description\n\n{metadata.spec.long_description}\n\n")
    if package.spec.capacity_requirements_description:
        sections.append(
            f"## Capacity requirements\n\n{package.spec.capacity_requirements_description}\n\n"
        )
    if package.spec.release_notes:
        sections.append(f"## Release notes\n\n{package.spec.release_notes}\n\n")
        released_at = package.spec.released_at
        if released_at is not None:
            sections.append(
                f"Released at: {released_at:%B}, {released_at.day} {released_at.year}\n\n"
            )
    if metadata.spec.support_description:
        sections.append(f"## Support\n\n{metadata.spec.support_description}\n\n")
    if package.spec.licenses:
        licenses = "".join(f"- {name}\n" for name in package.spec.licenses if name)
        sections.append(f"## Licenses\n\n{licenses}\n")
    return "".join(sections)


def _is_non_nullable_null(value: Any, schema: Optional[dict]) -> bool:
    return value is None and isinstance(schema, dict) and not schema.get("nullable", False)


def _property_default(prop: dict) -> Any:
    if "default" in prop:
        return prop["default"]
    nested = prop.get("properties")
    if isinstance(nested, dict) and any(
        isinstance(child, dict) and "default" in child for child in nested.values()
    ):
        return {}
    return _TYPE_DEFAULTS.get(prop.get("type"))


def _apply_defaults(value: Any, schema: Any) -> None:
    """Fill value in place with the defaults declared by schema."""
    if not isinstance(schema, dict):
        return

    if isinstance(value, dict):
        properties = schema.get("properties")
        properties = properties if isinstance(properties, dict) else {}
        for key, prop in properties.items():
            if not isinstance(prop, dict):
                continue
            if key not in value or _is_non_nullable_null(value[key], prop):
                value[key] = copy.deepcopy(_property_default(prop))

        additional = schema.get("additionalProperties")
        for key in list(value):
            if key in properties:
                _apply_defaults(value[key], properties[key])
            elif isinstance(additional, dict):
                if _is_non_nullable_null(value[key], additional):
                    value[key] = copy.deepcopy(additional.get("default"))
                _apply_defaults(value[key], additional)

    elif isinstance(value, list):
        items = schema.get("items")
        if not isinstance(items, dict):
            return
        for index, item in enumerate(value):
            if _is_non_nullable_null(item, items):
                value[index] = copy.deepcopy(items.get("default"))
            _apply_defaults(value[index], items)


def default_values_from_schema(schema: Any, commented_out: bool = False) -> str:
    """Render YAML default values for an OpenAPI v3 values schema.

    Properties without a default get the zero value of their type, and an
    object without a default becomes {} when any of its direct children has
    one.

    Args:
        schema: Parsed schema, or its YAML/JSON text
        commented_out: Prefix every output line with "# "

    Returns:
        YAML document, empty when there is no schema

    Raises:
        ValueError: If the schema text cannot be parsed
    """
    if schema is None or schema == "" or schema == {}:
        return ""
    if isinstance(schema, (str, bytes)):
        try:
            schema = yaml.safe_load(schema)
        except yaml.YAMLError as err:
            raise ValueError(f"unable to parse values schema: {err}") from err
    if not isinstance(schema, dict):
        raise ValueError("values schema must be an object")

    values: Dict[str, Any] = {}
    _apply_defaults(values, schema)
    rendered = yaml.safe_dump(values, default_flow_style=False, sort_keys=True)

    if commented_out:
        rendered = "".join(f"# {line}\n" for line in rendered.splitlines())
    return rendered
