"""RoadCache Fanout - Broadcast Commands to Members.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Optional

from clusterctl_core.cluster.member import ClusterMember
from clusterctl_core.protocol.command import RemoteCommand
from clusterctl_core.provider.backend import ClusterProvider, ServiceHandle

logger = logging.getLogger(__name__)


def compute_targets(
    members: Iterable[ClusterMember],
    local: ClusterMember,
    exclude_self: bool = True,
) -> FrozenSet[ClusterMember]:
    """Compute the members a broadcast goes to.

    Args:
        members: Current member snapshot
        local: The calling member
        exclude_self: Leave the caller out

    Returns:
        Target members
    """
    if exclude_self:
        return frozenset(m for m in members if m != local)
    return frozenset(members)


class FanoutInvoker:
    """Sends a command to every member through one broadcast.

    broadcast() returns once the transport accepted the send. Whether a
    member ran the command is only visible through a later membership
    check.

    Example:
        invoker = FanoutInvoker(provider, "InvocationService")
        invoker.broadcast(TerminateSelf(delay_seconds=2.0))
    """

    def __init__(self, provider: ClusterProvider, service_name: str):
        """Initialize invoker.

        Args:
            provider: Cluster provider
            service_name: Invocation service to broadcast through
        """
        self.provider = provider
        self.service_name = service_name

    def resolve(self) -> ServiceHandle:
        """Resolve the invocation service.

        Raises:
            ServiceLookupError: If the service is not available
        """
        return self.provider.resolve_service(self.service_name)

    def broadcast(
        self,
        command: RemoteCommand,
        exclude_self: bool = True,
        handle: Optional[ServiceHandle] = None,
    ) -> FrozenSet[ClusterMember]:
        """Send a command to all current members.

        Args:
            command: Command to send
            exclude_self: Leave the local member out
            handle: Already-resolved service handle

        Returns:
            The members the command was sent to

        Raises:
            ServiceLookupError: If the service cannot be resolved
            ProviderError: If members cannot be enumerated
            TransportError: If the send was not accepted
        """
        if handle is None:
            handle = self.resolve()

        targets = compute_targets(
            self.provider.enumerate_members(),
            self.provider.get_local_member(),
            exclude_self=exclude_self,
        )

        self.provider.broadcast(handle, command, targets)
        logger.info(
            f"Sent {command.kind.value} to {len(targets)} member(s) "
            f"via {handle.name}"
        )
        return targets


__all__ = ["FanoutInvoker", "compute_targets"]
