"""Repository credential model: secret classification, compatibility rules and
the Keep/Replace decoding of redacted credential fields.
"""

import base64
import json
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional, Union

from kapp_packages.constants import (
    BASIC_AUTH_PASSWORD_KEY,
    BASIC_AUTH_USERNAME_KEY,
    BEARER_TOKEN_KEY,
    DOCKER_CONFIG_JSON_KEY,
    REDACTED,
    REPOSITORY_TYPE_GIT,
    REPOSITORY_TYPE_HTTP,
    REPOSITORY_TYPE_IMAGE,
    REPOSITORY_TYPE_IMGPKG_BUNDLE,
    REPOSITORY_TYPE_INLINE,
    SECRET_TYPE_BASIC_AUTH,
    SECRET_TYPE_DOCKER_CONFIG_JSON,
    SECRET_TYPE_OPAQUE,
    SECRET_TYPE_SSH_AUTH,
    SSH_KNOWN_HOSTS_KEY,
    SSH_PRIVATE_KEY_KEY,
)
from kapp_packages.schemas.repositories import PackageRepositoryAuthType

AuthType = PackageRepositoryAuthType

CREDENTIAL_AUTH_TYPES: FrozenSet[AuthType] = frozenset(
    {
        AuthType.BASIC_AUTH,
        AuthType.SSH,
        AuthType.DOCKER_CONFIG_JSON,
        AuthType.BEARER,
    }
)

SECRET_TYPES: Dict[AuthType, str] = {
    AuthType.BASIC_AUTH: SECRET_TYPE_BASIC_AUTH,
    AuthType.SSH: SECRET_TYPE_SSH_AUTH,
    AuthType.DOCKER_CONFIG_JSON: SECRET_TYPE_DOCKER_CONFIG_JSON,
    AuthType.BEARER: SECRET_TYPE_OPAQUE,
}

_REGISTRY_AUTH = frozenset({AuthType.BASIC_AUTH, AuthType.DOCKER_CONFIG_JSON, AuthType.BEARER})

# Auth types each fetch type can consume.
ALLOWED_AUTH_TYPES: Dict[str, FrozenSet[AuthType]] = {
    REPOSITORY_TYPE_IMGPKG_BUNDLE: _REGISTRY_AUTH,
    REPOSITORY_TYPE_IMAGE: _REGISTRY_AUTH,
    REPOSITORY_TYPE_GIT: frozenset({AuthType.BASIC_AUTH, AuthType.SSH}),
    REPOSITORY_TYPE_HTTP: frozenset({AuthType.BASIC_AUTH}),
    REPOSITORY_TYPE_INLINE: frozenset(),
}


def is_basic_auth(data: Mapping[str, str]) -> bool:
    return BASIC_AUTH_USERNAME_KEY in data and BASIC_AUTH_PASSWORD_KEY in data


def is_ssh_auth(data: Mapping[str, str]) -> bool:
    return SSH_PRIVATE_KEY_KEY in data


def is_docker_config_auth(data: Mapping[str, str]) -> bool:
    return DOCKER_CONFIG_JSON_KEY in data


def is_bearer_auth(data: Mapping[str, str]) -> bool:
    return BEARER_TOKEN_KEY in data


_CLASSIFIERS = (
    (AuthType.BASIC_AUTH, is_basic_auth),
    (AuthType.SSH, is_ssh_auth),
    (AuthType.DOCKER_CONFIG_JSON, is_docker_config_auth),
    (AuthType.BEARER, is_bearer_auth),
)


def classify_secret_data(data: Mapping[str, str]) -> Optional[AuthType]:
    """Return the auth type a secret's keys describe.

    Returns:
        The single matching auth type, or None when no type or more than one
        type matches
    """
    matches = [auth_type for auth_type, matches_type in _CLASSIFIERS if matches_type(data)]
    if len(matches) != 1:
        return None
    return matches[0]


def is_auth_allowed(repository_type: str, auth_type: AuthType) -> bool:
    """Whether a fetch of repository_type can use credentials of auth_type."""
    if auth_type not in CREDENTIAL_AUTH_TYPES:
        return True
    return auth_type in ALLOWED_AUTH_TYPES.get(repository_type, frozenset())


# ---------------------------------------------------------------------------
# Redacted field updates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Keep:
    """Leave the stored credential value unchanged."""


KEEP = Keep()


@dataclass(frozen=True)
class Replace:
    """Store value in place of the current credential value."""

    value: str


FieldUpdate = Union[Keep, Replace]


def decode_field(value: Optional[str]) -> FieldUpdate:
    """Decode a wire credential value; the redaction sentinel means Keep."""
    if value == REDACTED:
        return KEEP
    return Replace(value or "")


def credential_updates(auth_type: AuthType, auth) -> Dict[str, FieldUpdate]:
    """Decode the credential fields of an auth payload into per-key updates.

    Args:
        auth_type: Declared auth type
        auth: PackageRepositoryAuth payload

    Returns:
        Mapping of logical credential field to Keep or Replace
    """
    if auth_type == AuthType.BASIC_AUTH:
        creds = auth.username_password
        return {
            BASIC_AUTH_USERNAME_KEY: decode_field(creds.username if creds else ""),
            BASIC_AUTH_PASSWORD_KEY: decode_field(creds.password if creds else ""),
        }
    if auth_type == AuthType.SSH:
        creds = auth.ssh_creds
        return {
            SSH_PRIVATE_KEY_KEY: decode_field(creds.private_key if creds else ""),
            SSH_KNOWN_HOSTS_KEY: decode_field(creds.known_hosts if creds else ""),
        }
    if auth_type == AuthType.DOCKER_CONFIG_JSON:
        creds = auth.docker_creds
        return {
            "server": decode_field(creds.server if creds else ""),
            "username": decode_field(creds.username if creds else ""),
            "password": decode_field(creds.password if creds else ""),
            "email": decode_field(creds.email if creds else ""),
        }
    if auth_type == AuthType.BEARER:
        header = auth.header or ""
        if header != REDACTED and header.startswith("Bearer "):
            header = header[len("Bearer "):]
        return {BEARER_TOKEN_KEY: decode_field(header)}
    return {}


def all_keep(updates: Mapping[str, FieldUpdate]) -> bool:
    return bool(updates) and all(isinstance(u, Keep) for u in updates.values())


def any_keep(updates: Mapping[str, FieldUpdate]) -> bool:
    return any(isinstance(u, Keep) for u in updates.values())


def resolve_updates(
    updates: Mapping[str, FieldUpdate], current: Mapping[str, str]
) -> Dict[str, str]:
    """Apply field updates over the currently stored values."""
    resolved = {}
    for key, update in updates.items():
        if isinstance(update, Replace):
            resolved[key] = update.value
        else:
            resolved[key] = current.get(key, "")
    return resolved


# ---------------------------------------------------------------------------
# Docker config JSON
# ---------------------------------------------------------------------------


def build_docker_config(server: str, username: str, password: str, email: str) -> str:
    """Serialize a single-registry .dockerconfigjson document."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    document = {
        "auths": {
            server: {
                "username": username,
                "password": password,
                "email": email,
                "auth": token,
            }
        }
    }
    return json.dumps(document)


def parse_docker_config(config_json: str) -> Dict[str, str]:
    """Read the first registry entry of a .dockerconfigjson document.

    Returns:
        Mapping with server, username, password and email (empty when absent)

    Raises:
        ValueError: If the document is not a docker config
    """
    try:
        document = json.loads(config_json)
    except (TypeError, ValueError) as err:
        raise ValueError("invalid docker config json") from err
    auths = document.get("auths") if isinstance(document, dict) else None
    if not isinstance(auths, dict) or not auths:
        raise ValueError("docker config json has no auths entry")
    server, entry = next(iter(auths.items()))
    entry = entry if isinstance(entry, dict) else {}
    return {
        "server": server,
        "username": str(entry.get("username", "")),
        "password": str(entry.get("password", "")),
        "email": str(entry.get("email", "")),
    }
