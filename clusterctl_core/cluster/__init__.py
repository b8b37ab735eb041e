"""Cluster module - Member identity and snapshots."""

from clusterctl_core.cluster.member import ClusterMember, MemberRole, ProbeResult

__all__ = [
    "ClusterMember",
    "MemberRole",
    "ProbeResult",
]
