"""Lifecycle of the auth secrets referenced by PackageRepositories.

A repository either has no auth, references a secret it manages itself
(user-managed), or references a secret the plugin created from credentials
supplied in the request (plugin-managed). The mode chosen when the repository
is created cannot change on update.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from kapp_packages.constants import (
    BASIC_AUTH_PASSWORD_KEY,
    BASIC_AUTH_USERNAME_KEY,
    BEARER_TOKEN_KEY,
    DOCKER_CONFIG_JSON_KEY,
    MANAGED_BY_ANNOTATION,
    MANAGED_BY_PLUGIN,
    REDACTED,
    SSH_KNOWN_HOSTS_KEY,
    SSH_PRIVATE_KEY_KEY,
)
from kapp_packages.core.auth import (
    AuthType,
    SECRET_TYPES,
    all_keep,
    any_keep,
    build_docker_config,
    classify_secret_data,
    credential_updates,
    is_auth_allowed,
    parse_docker_config,
    resolve_updates,
)
from kapp_packages.exception import (
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PackagesException,
)
from kapp_packages.infrastructure.store import PACKAGE_REPOSITORY, SECRET
from kapp_packages.models.resources import (
    ObjectMeta,
    OwnerReference,
    PackageRepositoryRecord,
    SecretRecord,
    encode_secret_data,
)
from kapp_packages.repository.secret_repository import SecretRepository
from kapp_packages.schemas.repositories import (
    DockerCredentials,
    PackageRepositoryAuth,
    SecretKeyReference,
    SshCredentials,
    UsernamePassword,
)

logger = logging.getLogger(__name__)

# Fields that must be non-empty in a plugin-managed secret.
_REQUIRED_FIELDS: Dict[AuthType, tuple] = {
    AuthType.BASIC_AUTH: (BASIC_AUTH_USERNAME_KEY, BASIC_AUTH_PASSWORD_KEY),
    AuthType.SSH: (SSH_PRIVATE_KEY_KEY,),
    AuthType.DOCKER_CONFIG_JSON: ("server", "username", "password"),
    AuthType.BEARER: (BEARER_TOKEN_KEY,),
}


class AuthMode(str, Enum):
    NONE = "none"
    PLUGIN_MANAGED = "plugin-managed"
    USER_MANAGED = "user-managed"


def auth_mode(auth: Optional[PackageRepositoryAuth]) -> AuthMode:
    """Management mode requested by an auth payload."""
    if auth is None or auth.type == AuthType.UNSPECIFIED:
        return AuthMode.NONE
    if auth.secret_ref is not None and auth.secret_ref.name:
        return AuthMode.USER_MANAGED
    return AuthMode.PLUGIN_MANAGED


@dataclass
class CredentialPlan:
    """Outcome of preparing a repository's auth secret.

    Attributes:
        secret_name: Secret the repository fetch must reference (None for no auth)
        created: Plugin-managed secret created by this call, to be linked to
            the repository or deleted if the repository write fails
        obsolete: Plugin-managed secret to delete once the repository no
            longer references it
    """

    secret_name: Optional[str] = None
    created: Optional[SecretRecord] = None
    obsolete: Optional[str] = None


class RepositoryCredentialManager:
    """Creates, replaces, links, redacts and deletes repository auth secrets.

    Attributes:
        secrets: Secret repository of the repository's cluster
    """

    def __init__(self, secrets: SecretRepository):
        self.secrets = secrets

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------

    def validate(self, repository_type: str, auth: Optional[PackageRepositoryAuth]) -> None:
        """Check that a fetch of repository_type can use auth.

        Raises:
            InvalidArgumentError: If the auth type is not supported by the fetch type
        """
        if auth_mode(auth) == AuthMode.NONE:
            return
        if not is_auth_allowed(repository_type, auth.type):
            raise InvalidArgumentError(
                f"auth type {auth.type.value} is not supported for "
                f"{repository_type} repositories",
                field="auth",
            )

    async def _validate_user_secret(
        self, namespace: str, auth: PackageRepositoryAuth
    ) -> None:
        name = auth.secret_ref.name
        try:
            secret = await self.secrets.get(namespace, name)
        except NotFoundError as err:
            raise InvalidArgumentError(
                f"the referenced secret {name!r} does not exist", field="auth"
            ) from err
        try:
            data = secret.string_data
        except ValueError as err:
            raise InvalidArgumentError(str(err), field="auth") from err
        if classify_secret_data(data) != auth.type:
            raise InvalidArgumentError(
                f"the referenced secret {name!r} does not hold {auth.type.value} credentials",
                field="auth",
            )

    # -----------------------------------------------------------------------
    # Plugin-managed secrets
    # -----------------------------------------------------------------------

    def _secret_data(self, auth_type: AuthType, values: Dict[str, str]) -> Dict[str, str]:
        missing = [key for key in _REQUIRED_FIELDS[auth_type] if not values.get(key)]
        if missing:
            raise InvalidArgumentError(
                f"missing {', '.join(missing)} for {auth_type.value} credentials",
                field="auth",
            )
        if auth_type == AuthType.DOCKER_CONFIG_JSON:
            return {
                DOCKER_CONFIG_JSON_KEY: build_docker_config(
                    values["server"],
                    values["username"],
                    values["password"],
                    values.get("email", ""),
                )
            }
        return {key: value for key, value in values.items() if value}

    def _current_values(self, auth_type: AuthType, secret: SecretRecord) -> Dict[str, str]:
        """Logical credential fields stored in an existing secret."""
        try:
            data = secret.string_data
            if auth_type == AuthType.DOCKER_CONFIG_JSON:
                return parse_docker_config(data.get(DOCKER_CONFIG_JSON_KEY, ""))
        except ValueError as err:
            raise InternalError(
                f"unable to read the credentials of secret {secret.metadata.name!r}: {err}"
            ) from err
        return data

    async def _create_managed_secret(
        self, namespace: str, repository_name: str, auth_type: AuthType, values: Dict[str, str]
    ) -> SecretRecord:
        secret = SecretRecord(
            api_version=SECRET.api_version,
            kind=SECRET.kind,
            metadata=ObjectMeta(
                generate_name=f"{repository_name}-",
                namespace=namespace,
                annotations={MANAGED_BY_ANNOTATION: MANAGED_BY_PLUGIN},
            ),
            type=SECRET_TYPES[auth_type],
            data=encode_secret_data(self._secret_data(auth_type, values)),
        )
        created = await self.secrets.create(secret)
        logger.debug(
            f"Created auth Secret {namespace}/{created.metadata.name} for repository "
            f"{repository_name!r}"
        )
        return created

    # -----------------------------------------------------------------------
    # Repository lifecycle
    # -----------------------------------------------------------------------

    async def prepare_create(
        self,
        namespace: str,
        repository_name: str,
        repository_type: str,
        auth: Optional[PackageRepositoryAuth],
    ) -> CredentialPlan:
        """Resolve the secret a new repository will reference.

        A plugin-managed secret is created without an owner; the caller links
        it with link_owner once the repository exists.

        Raises:
            InvalidArgumentError: If the auth is incompatible, incomplete or
                references an unsuitable secret
        """
        self.validate(repository_type, auth)
        mode = auth_mode(auth)
        if mode == AuthMode.NONE:
            return CredentialPlan()
        if mode == AuthMode.USER_MANAGED:
            await self._validate_user_secret(namespace, auth)
            return CredentialPlan(secret_name=auth.secret_ref.name)

        updates = credential_updates(auth.type, auth)
        if any_keep(updates):
            raise InvalidArgumentError(
                f"credentials of a new repository cannot be {REDACTED}", field="auth"
            )
        created = await self._create_managed_secret(
            namespace, repository_name, auth.type, resolve_updates(updates, {})
        )
        return CredentialPlan(secret_name=created.metadata.name, created=created)

    async def _current_secret(
        self, repository: PackageRepositoryRecord
    ) -> Optional[SecretRecord]:
        secret_ref = repository.spec.fetch.secret_ref
        if secret_ref is None or not secret_ref.name:
            return None
        try:
            return await self.secrets.get(repository.metadata.namespace, secret_ref.name)
        except NotFoundError:
            logger.warning(
                f"Auth Secret {secret_ref.name!r} of repository "
                f"{repository.metadata.name!r} not found"
            )
            return None

    async def prepare_update(
        self,
        repository: PackageRepositoryRecord,
        repository_type: str,
        auth: Optional[PackageRepositoryAuth],
    ) -> CredentialPlan:
        """Resolve the secret an updated repository will reference.

        Credentials whose every field is REDACTED and whose type is unchanged
        keep the current secret. Otherwise a new plugin-managed secret is
        created and the current one is reported as obsolete.

        Raises:
            InvalidArgumentError: If the auth is incompatible, switches between
                plugin-managed and user-managed secrets, or keeps values of a
                different auth type
        """
        self.validate(repository_type, auth)
        namespace = repository.metadata.namespace
        current = await self._current_secret(repository)
        if current is None:
            current_mode = AuthMode.NONE
        elif current.is_plugin_managed:
            current_mode = AuthMode.PLUGIN_MANAGED
        else:
            current_mode = AuthMode.USER_MANAGED
        mode = auth_mode(auth)

        if AuthMode.NONE not in (current_mode, mode) and current_mode != mode:
            raise InvalidArgumentError(
                f"the auth of repository {repository.metadata.name!r} cannot change "
                f"from {current_mode.value} to {mode.value}",
                field="auth",
            )

        obsolete = current.metadata.name if current_mode == AuthMode.PLUGIN_MANAGED else None
        if mode == AuthMode.NONE:
            return CredentialPlan(obsolete=obsolete)
        if mode == AuthMode.USER_MANAGED:
            await self._validate_user_secret(namespace, auth)
            return CredentialPlan(secret_name=auth.secret_ref.name)

        updates = credential_updates(auth.type, auth)
        current_type = None
        if current_mode == AuthMode.PLUGIN_MANAGED:
            try:
                current_type = classify_secret_data(current.string_data)
            except ValueError:
                current_type = None

        if current_type == auth.type and all_keep(updates):
            logger.debug(f"Auth Secret {namespace}/{current.metadata.name} unchanged")
            return CredentialPlan(secret_name=current.metadata.name)
        if current_type != auth.type and any_keep(updates):
            raise InvalidArgumentError(
                f"all credentials must be provided when changing the auth type to "
                f"{auth.type.value}",
                field="auth",
            )

        current_values = (
            self._current_values(auth.type, current) if current_type == auth.type else {}
        )
        created = await self._create_managed_secret(
            namespace,
            repository.metadata.name,
            auth.type,
            resolve_updates(updates, current_values),
        )
        return CredentialPlan(
            secret_name=created.metadata.name, created=created, obsolete=obsolete
        )

    async def link_owner(
        self, secret: SecretRecord, repository: PackageRepositoryRecord
    ) -> SecretRecord:
        """Make repository the controlling owner of secret."""
        secret.metadata.owner_references = [
            OwnerReference(
                api_version=PACKAGE_REPOSITORY.api_version,
                kind=PACKAGE_REPOSITORY.kind,
                name=repository.metadata.name,
                uid=repository.metadata.uid or "",
                controller=True,
                block_owner_deletion=False,
            )
        ]
        return await self.secrets.update(secret)

    async def discard(self, namespace: str, name: Optional[str]) -> None:
        """Delete a plugin-managed secret, logging rather than raising on failure."""
        if not name:
            return
        try:
            await self.secrets.delete(namespace, name)
        except NotFoundError:
            logger.warning(f"Auth Secret {namespace}/{name} was already deleted")
        except PackagesException as err:
            logger.error(f"Unable to delete auth Secret {namespace}/{name}: {err.message}")

    async def delete_managed_secret(self, repository: PackageRepositoryRecord) -> None:
        """Delete the plugin-managed secret of a deleted repository, if any."""
        current = await self._current_secret(repository)
        if current is None or not current.is_plugin_managed:
            return
        await self.discard(repository.metadata.namespace, current.metadata.name)

    # -----------------------------------------------------------------------
    # Redaction
    # -----------------------------------------------------------------------

    async def redacted_auth(
        self, repository: PackageRepositoryRecord
    ) -> Optional[PackageRepositoryAuth]:
        """Auth of a repository as returned to callers.

        Plugin-managed credentials come back with every value REDACTED;
        user-managed ones only as a reference to their secret.
        """
        secret_ref = repository.spec.fetch.secret_ref
        if secret_ref is None or not secret_ref.name:
            return None

        current = await self._current_secret(repository)
        if current is None:
            return PackageRepositoryAuth(
                secret_ref=SecretKeyReference(name=secret_ref.name)
            )
        try:
            auth_type = classify_secret_data(current.string_data) or AuthType.UNSPECIFIED
        except ValueError:
            logger.warning(f"Auth Secret {current.metadata.name!r} has undecodable data")
            auth_type = AuthType.UNSPECIFIED

        if not current.is_plugin_managed:
            return PackageRepositoryAuth(
                type=auth_type, secret_ref=SecretKeyReference(name=current.metadata.name)
            )

        auth = PackageRepositoryAuth(type=auth_type)
        if auth_type == AuthType.BASIC_AUTH:
            auth.username_password = UsernamePassword(username=REDACTED, password=REDACTED)
        elif auth_type == AuthType.SSH:
            auth.ssh_creds = SshCredentials(private_key=REDACTED, known_hosts=REDACTED)
        elif auth_type == AuthType.DOCKER_CONFIG_JSON:
            auth.docker_creds = DockerCredentials(
                server=REDACTED, username=REDACTED, password=REDACTED, email=REDACTED
            )
        elif auth_type == AuthType.BEARER:
            auth.header = REDACTED
        return auth
