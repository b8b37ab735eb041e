"""Provider module - Cluster membership and transport backends."""

from clusterctl_core.provider.backend import (
    ClusterError,
    ClusterProvider,
    ProviderConfig,
    ProviderError,
    ProviderStats,
    ServiceHandle,
    ServiceLookupError,
    TransportError,
)
from clusterctl_core.provider.memory import MemoryCluster, MemoryProvider
from clusterctl_core.provider.redis import RedisProvider, RedisProviderConfig

__all__ = [
    "ClusterError",
    "ClusterProvider",
    "ProviderConfig",
    "ProviderError",
    "ProviderStats",
    "ServiceHandle",
    "ServiceLookupError",
    "TransportError",
    "MemoryCluster",
    "MemoryProvider",
    "RedisProvider",
    "RedisProviderConfig",
]
