"""RoadCache Cluster Provider - Abstract Cluster Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, FrozenSet, Iterable, Optional, Set

from clusterctl_core.cluster.member import ClusterMember, MemberRole
from clusterctl_core.protocol.command import Envelope, RemoteCommand

logger = logging.getLogger(__name__)

EnvelopeHandler = Callable[[Envelope], None]


class ClusterError(Exception):
    """Base class for cluster provider errors."""


class ProviderError(ClusterError):
    """The provider could not answer (connectivity, enumeration)."""


class ServiceLookupError(ClusterError):
    """A named service is not registered or not reachable."""

    def __init__(self, service_name: str, reason: str = "not registered"):
        super().__init__(f"Service {service_name!r} unavailable: {reason}")
        self.service_name = service_name
        self.reason = reason


class TransportError(ClusterError):
    """A broadcast could not be handed to the transport."""


@dataclass(frozen=True)
class ServiceHandle:
    """A resolved service.

    Attributes:
        name: Service name
        member_ids: Members that currently run the service
    """

    name: str
    member_ids: FrozenSet[str] = field(default_factory=frozenset)


@dataclass
class ProviderConfig:
    """Cluster provider configuration.

    Attributes:
        cluster_name: Cluster name, scopes all registrations
        member_ttl: Seconds a member registration lives without heartbeat
        heartbeat_interval: Seconds between heartbeats
        serializer: Wire serializer format
    """

    cluster_name: str = "roadcache"
    member_ttl: float = 15.0
    heartbeat_interval: float = 5.0
    serializer: str = "msgpack"


@dataclass
class ProviderStats:
    """Provider statistics.

    Attributes:
        enumerations: Member enumerations performed
        lookups: Service lookups performed
        broadcasts: Broadcasts sent
        deliveries: Envelopes delivered to local handlers
        errors: Number of errors
    """

    enumerations: int = 0
    lookups: int = 0
    broadcasts: int = 0
    deliveries: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


class ClusterProvider(ABC):
    """Handle on a running cluster.

    Implementations:
    - MemoryProvider: in-process cluster, for tests and demos
    - RedisProvider: members and services registered in Redis

    A provider is acquired once per run and released with shutdown(),
    which is safe to call any number of times. Used as a context manager
    it joins on entry and shuts down on exit.

    Providers whose registrations expire call start_keepalive() from
    join(); the keepalive thread heartbeats until shutdown().
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        local_member: Optional[ClusterMember] = None,
    ):
        """Initialize provider.

        Args:
            config: Provider configuration
            local_member: Identity of this process (generated if omitted)
        """
        self.config = config or ProviderConfig()
        self._local = local_member or ClusterMember.local(MemberRole.CONTROL)
        self._stats = ProviderStats()
        self._closed = False
        self._close_lock = threading.Lock()
        self._keepalive_stop = threading.Event()
        self._keepalive_thread: Optional[threading.Thread] = None

    @abstractmethod
    def join(self) -> None:
        """Register the local member with the cluster."""
        pass

    @abstractmethod
    def enumerate_members(self) -> Set[ClusterMember]:
        """Get the current member set.

        Returns:
            Snapshot of members, the local one included once joined

        Raises:
            ProviderError: If the cluster cannot be reached
        """
        pass

    @abstractmethod
    def resolve_service(self, name: str) -> ServiceHandle:
        """Look up a named service.

        Args:
            name: Service name

        Returns:
            ServiceHandle

        Raises:
            ServiceLookupError: If the service cannot be resolved
        """
        pass

    @abstractmethod
    def broadcast(
        self,
        handle: ServiceHandle,
        command: RemoteCommand,
        targets: Iterable[ClusterMember],
    ) -> None:
        """Send one command to a set of members through a service.

        Returns once the transport accepted the send; says nothing about
        remote execution.

        Raises:
            TransportError: If the send was not accepted
        """
        pass

    @abstractmethod
    def register_service(self, name: str) -> None:
        """Advertise a service on the local member."""
        pass

    @abstractmethod
    def subscribe(self, service_name: str, handler: EnvelopeHandler) -> None:
        """Receive envelopes addressed to the local member via a service."""
        pass

    @abstractmethod
    def _close(self) -> None:
        """Release provider resources."""
        pass

    def heartbeat(self) -> None:
        """Refresh the local member's registration."""
        pass

    def start_keepalive(self) -> None:
        """Heartbeat on a background thread until shutdown(). Idempotent."""
        with self._close_lock:
            if self._closed or self._keepalive_thread is not None:
                return
            self._keepalive_thread = threading.Thread(
                target=self._keepalive_loop,
                daemon=True,
                name=f"Keepalive-{self._local.member_id}",
            )
            self._keepalive_thread.start()

    @property
    def keepalive_running(self) -> bool:
        thread = self._keepalive_thread
        return thread is not None and thread.is_alive()

    def _keepalive_loop(self) -> None:
        """Background heartbeat loop."""
        while not self._keepalive_stop.wait(self.config.heartbeat_interval):
            try:
                self.heartbeat()
            except ClusterError as e:
                logger.error(f"Heartbeat error: {e}")

    def _stop_keepalive(self) -> None:
        self._keepalive_stop.set()
        thread = self._keepalive_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)

    def get_local_member(self) -> ClusterMember:
        """Get the identity of this process."""
        return self._local

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """Release the provider. Idempotent."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        # No refresh may land after the registration is removed
        self._stop_keepalive()
        try:
            self._close()
        except Exception as e:
            self._stats.record_error(str(e))
            logger.error(f"Error releasing {self!r}: {e}")
        else:
            logger.debug(f"Released {self!r}")

    def get_stats(self) -> ProviderStats:
        """Get provider statistics."""
        return self._stats

    def __enter__(self) -> "ClusterProvider":
        try:
            self.join()
        except BaseException:
            self.shutdown()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


__all__ = [
    "ClusterError",
    "ProviderError",
    "ServiceLookupError",
    "TransportError",
    "ServiceHandle",
    "ProviderConfig",
    "ProviderStats",
    "ClusterProvider",
    "EnvelopeHandler",
]
