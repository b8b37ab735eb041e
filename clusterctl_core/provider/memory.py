"""RoadCache Memory Provider - In-Process Cluster.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

from clusterctl_core.cluster.member import ClusterMember
from clusterctl_core.protocol.command import (
    RemoteCommand,
    decode_envelope,
    encode_envelope,
    make_envelope,
)
from clusterctl_core.protocol.serializer import get_serializer
from clusterctl_core.provider.backend import (
    ClusterProvider,
    EnvelopeHandler,
    ProviderConfig,
    ProviderError,
    ServiceHandle,
    ServiceLookupError,
    TransportError,
)

logger = logging.getLogger(__name__)


class MemoryCluster:
    """Shared state of an in-process cluster.

    Every MemoryProvider attached to the same MemoryCluster sees the same
    members and services, the way processes attached to one Redis do.
    Broadcasts are encoded and decoded through the wire codec and
    delivered synchronously on the sender's thread.

    Example:
        cluster = MemoryCluster()
        with MemoryProvider(cluster) as control:
            control.enumerate_members()
    """

    def __init__(self, name: str = "memory"):
        self.name = name
        self._lock = threading.RLock()
        self._members: Dict[str, ClusterMember] = {}
        self._services: Dict[str, Set[str]] = {}
        self._handlers: Dict[Tuple[str, str], List[EnvelopeHandler]] = {}
        self._partitioned = False

    def add_member(self, member: ClusterMember) -> None:
        with self._lock:
            self._members[member.member_id] = member
        logger.debug(f"{member!r} joined {self.name}")

    def remove_member(self, member_id: str) -> None:
        """Remove a member with all its services and subscriptions."""
        with self._lock:
            self._members.pop(member_id, None)
            for providers in self._services.values():
                providers.discard(member_id)
            for key in [k for k in self._handlers if k[1] == member_id]:
                del self._handlers[key]
        logger.debug(f"Member {member_id} left {self.name}")

    def members(self) -> Set[ClusterMember]:
        with self._lock:
            return set(self._members.values())

    def add_service(self, name: str, member_id: str) -> None:
        with self._lock:
            self._services.setdefault(name, set()).add(member_id)

    def service_members(self, name: str) -> Set[str]:
        with self._lock:
            return set(self._services.get(name, ()))

    def add_handler(self, service: str, member_id: str, handler: EnvelopeHandler) -> None:
        with self._lock:
            self._handlers.setdefault((service, member_id), []).append(handler)

    def handlers_for(self, service: str, member_id: str) -> List[EnvelopeHandler]:
        with self._lock:
            return list(self._handlers.get((service, member_id), ()))

    def partition(self) -> None:
        """Make the cluster unreachable for every provider."""
        self._partitioned = True

    def heal(self) -> None:
        """Undo partition()."""
        self._partitioned = False

    @property
    def partitioned(self) -> bool:
        return self._partitioned

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def __repr__(self) -> str:
        return f"MemoryCluster(name={self.name!r}, members={len(self)})"


class MemoryProvider(ClusterProvider):
    """Cluster provider backed by a MemoryCluster."""

    def __init__(
        self,
        cluster: MemoryCluster,
        config: Optional[ProviderConfig] = None,
        local_member: Optional[ClusterMember] = None,
    ):
        """Initialize memory provider.

        Args:
            cluster: Shared in-process cluster
            config: Provider configuration
            local_member: Identity of this provider's member
        """
        super().__init__(config, local_member)
        self.cluster = cluster
        self._serializer = get_serializer(self.config.serializer)

    def _check_reachable(self, error_type: type, *args) -> None:
        if self.cluster.partitioned:
            error = error_type(*args)
            self._stats.record_error(str(error))
            raise error

    def join(self) -> None:
        self._check_reachable(ProviderError, f"{self.cluster.name} is unreachable")
        self.cluster.add_member(self._local)

    def enumerate_members(self) -> Set[ClusterMember]:
        self._stats.enumerations += 1
        self._check_reachable(ProviderError, f"{self.cluster.name} is unreachable")
        return self.cluster.members()

    def resolve_service(self, name: str) -> ServiceHandle:
        self._stats.lookups += 1
        self._check_reachable(ServiceLookupError, name, "cluster unreachable")

        member_ids = self.cluster.service_members(name)
        if not member_ids:
            raise ServiceLookupError(name)
        return ServiceHandle(name=name, member_ids=frozenset(member_ids))

    def broadcast(
        self,
        handle: ServiceHandle,
        command: RemoteCommand,
        targets: Iterable[ClusterMember],
    ) -> None:
        self._check_reachable(TransportError, f"{self.cluster.name} is unreachable")

        envelope = make_envelope(
            command,
            sender=self._local.member_id,
            targets=(m.member_id for m in targets),
        )
        data = encode_envelope(envelope, self._serializer)
        self._stats.broadcasts += 1

        for member_id in sorted(envelope.targets):
            for handler in self.cluster.handlers_for(handle.name, member_id):
                try:
                    handler(decode_envelope(data, self._serializer))
                except Exception:
                    logger.exception(
                        f"Handler for {handle.name} on {member_id} failed"
                    )

    def register_service(self, name: str) -> None:
        self.cluster.add_service(name, self._local.member_id)
        logger.debug(f"{self._local!r} registered service {name}")

    def subscribe(self, service_name: str, handler: EnvelopeHandler) -> None:
        member_id = self._local.member_id

        def deliver(envelope):
            if envelope.addressed_to(member_id):
                self._stats.deliveries += 1
                handler(envelope)

        self.cluster.add_handler(service_name, member_id, deliver)

    def _close(self) -> None:
        self.cluster.remove_member(self._local.member_id)

    def __repr__(self) -> str:
        return f"MemoryProvider(cluster={self.cluster.name!r}, member={self._local.member_id})"


__all__ = ["MemoryCluster", "MemoryProvider"]
