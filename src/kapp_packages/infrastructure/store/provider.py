"""Resolution of a ResourceStore for a named cluster."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from kubernetes import client, config

from kapp_packages.infrastructure.store.kubernetes_store import KubernetesResourceStore
from kapp_packages.infrastructure.store.resource_store import ResourceStore

logger = logging.getLogger(__name__)


class StoreProvider(ABC):
    """Hands out the ResourceStore bound to a cluster."""

    @abstractmethod
    def get_store(self, cluster: str) -> ResourceStore:
        """Return the store for cluster."""


class KubeconfigStoreProvider(StoreProvider):
    """StoreProvider that maps cluster names onto kubeconfig contexts.

    The default cluster uses the current kubeconfig context, or the in-cluster
    service account when no kubeconfig path is configured. Any other cluster
    name is looked up as a kubeconfig context of the same name.

    Attributes:
        kubeconfig_path: Path to a kubeconfig file, None for in-cluster config
        default_cluster: Cluster name served by the current context
    """

    def __init__(self, kubeconfig_path: Optional[str], default_cluster: str):
        self.kubeconfig_path = kubeconfig_path
        self.default_cluster = default_cluster
        self._stores: Dict[str, ResourceStore] = {}

    def _api_client(self, cluster: str) -> client.ApiClient:
        if self.kubeconfig_path is None:
            if cluster != self.default_cluster:
                raise ValueError(
                    f"cluster {cluster!r} is not reachable with in-cluster configuration"
                )
            configuration = client.Configuration()
            config.load_incluster_config(client_configuration=configuration)
            return client.ApiClient(configuration)

        context = None if cluster == self.default_cluster else cluster
        return config.new_client_from_config(
            config_file=self.kubeconfig_path, context=context
        )

    def get_store(self, cluster: str) -> ResourceStore:
        store = self._stores.get(cluster)
        if store is None:
            logger.info(f"Creating resource store for cluster {cluster!r}")
            store = KubernetesResourceStore(self._api_client(cluster))
            self._stores[cluster] = store
        return store


class StaticStoreProvider(StoreProvider):
    """StoreProvider over a fixed mapping of cluster name to store."""

    def __init__(self, stores: Dict[str, ResourceStore]):
        self.stores = stores

    def get_store(self, cluster: str) -> ResourceStore:
        try:
            return self.stores[cluster]
        except KeyError:
            raise ValueError(f"no resource store configured for cluster {cluster!r}") from None
