"""RoadCache Membership Probe - Cluster Snapshots.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging

from clusterctl_core.cluster.member import ProbeResult
from clusterctl_core.provider.backend import ClusterProvider, ServiceLookupError

logger = logging.getLogger(__name__)


class MembershipProbe:
    """Takes point-in-time snapshots of membership and service presence.

    Nothing is cached; every call goes to the provider. A failed service
    lookup only means the service is not up (yet). Faults while counting
    members propagate to the caller.
    """

    def __init__(self, provider: ClusterProvider):
        self.provider = provider

    def count_members(self) -> int:
        """Get the current member count.

        Raises:
            ProviderError: If the cluster cannot be reached
        """
        return len(self.provider.enumerate_members())

    def probe(self, service_name: str) -> ProbeResult:
        """Snapshot the cluster.

        Args:
            service_name: Service whose presence to check

        Returns:
            ProbeResult
        """
        member_count = self.count_members()

        try:
            self.provider.resolve_service(service_name)
            service_found = True
        except ServiceLookupError as e:
            logger.debug(f"Service lookup failed: {e}")
            service_found = False

        return ProbeResult(member_count=member_count, service_found=service_found)


__all__ = ["MembershipProbe"]
