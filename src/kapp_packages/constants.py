"""Constants shared across the plugin."""

# Plugin identity
DEFAULT_PLUGIN_NAME = "kapp_controller.packages"
DEFAULT_PLUGIN_VERSION = "v1alpha1"

# Namespaces and clusters
DEFAULT_GLOBAL_PACKAGING_NAMESPACE = "kapp-controller-packaging-global"
DEFAULT_CLUSTER = "default"

# Annotations and labels
MANAGED_BY_ANNOTATION = "kubeapps.dev/managed-by"
MANAGED_BY_PLUGIN = "plugin:kapp-controller"
REPOSITORY_REF_ANNOTATION = "packaging.carvel.dev/package-repository-ref"
DESCRIPTION_ANNOTATION = "kapp-controller.carvel.dev/description"

# Values secrets
VALUES_SECRET_SUFFIX = "-values"
VALUES_SECRET_KEY = "values.yaml"

# Secret types
SECRET_TYPE_OPAQUE = "Opaque"
SECRET_TYPE_BASIC_AUTH = "kubernetes.io/basic-auth"
SECRET_TYPE_SSH_AUTH = "kubernetes.io/ssh-auth"
SECRET_TYPE_DOCKER_CONFIG_JSON = "kubernetes.io/dockerconfigjson"

# Credential keys
BASIC_AUTH_USERNAME_KEY = "username"
BASIC_AUTH_PASSWORD_KEY = "password"
SSH_PRIVATE_KEY_KEY = "ssh-privatekey"
SSH_KNOWN_HOSTS_KEY = "ssh-knownhosts"
DOCKER_CONFIG_JSON_KEY = ".dockerconfigjson"
BEARER_TOKEN_KEY = "token"

# Credential value returned in place of every plugin-managed secret value
REDACTED = "REDACTED"

# Reconciliation condition types
CONDITION_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
CONDITION_RECONCILE_FAILED = "ReconcileFailed"
CONDITION_RECONCILING = "Reconciling"
CONDITION_DELETING = "Deleting"
CONDITION_DELETE_FAILED = "DeleteFailed"
CONDITION_VALUES_SCHEMA_CHECK_FAILED = "ValuesSchemaCheckFailed"

# Repository fetch types
REPOSITORY_TYPE_IMGPKG_BUNDLE = "imgpkgBundle"
REPOSITORY_TYPE_IMAGE = "image"
REPOSITORY_TYPE_GIT = "git"
REPOSITORY_TYPE_HTTP = "http"
REPOSITORY_TYPE_INLINE = "inline"

# Defaults
DEFAULT_VERSION_QUEUE_SIZE = 20
DEFAULT_WAIT_TIMEOUT_SECONDS = 5
DEFAULT_WAIT_POLL_INTERVAL_SECONDS = 1
DEFAULT_VERSIONS_IN_SUMMARY = 3
ICON_DATA_URL_PREFIX = "data:image/svg+xml;base64,"
