"""RoadCache clusterctl - Cluster Control Tool.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Starts, stops and observes a RoadCache cluster from outside:
- stop: broadcast a terminate command to every other member
- ensure: poll until the cluster has the expected size and service
- status: print current membership
- join: run a member that obeys control commands

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                         clusterctl                              │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────────────┐        ┌─────────────────────┐        │
    │  │ ShutdownCoordinator │        │  ConvergencePoller  │ CONTROL│
    │  └──────┬───────┬──────┘        └──────────┬──────────┘ LAYER  │
    │         │       │                          │                    │
    │  ┌──────┴─────┐ └──────────┐  ┌────────────┴────────┐          │
    │  │  Fanout    │            └──┤  MembershipProbe    │          │
    │  │  Invoker   │               └────────────┬────────┘          │
    │  └──────┬─────┘                            │                    │
    │  ┌──────┴──────────────────────────────────┴───────┐           │
    │  │               Cluster Providers                  │ PROVIDER │
    │  │        ┌────────┐            ┌────────┐          │ LAYER    │
    │  │        │ Memory │            │ Redis  │          │          │
    │  │        └────────┘            └────────┘          │          │
    │  └──────────────────────┬───────────────────────────┘          │
    │                         │  envelopes (msgpack)                  │
    │  ┌──────────────────────┴───────────────────────────┐          │
    │  │  MemberAgent → CommandExecutor → TerminateSelf    │ MEMBER  │
    │  └──────────────────────────────────────────────────┘ LAYER    │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from clusterctl_core import (
        ConvergencePoller, ConvergenceTarget, MembershipProbe,
        RedisProvider, ShutdownCoordinator,
    )

    with RedisProvider() as provider:
        poller = ConvergencePoller(MembershipProbe(provider))
        result = poller.poll(ConvergenceTarget.for_other_members(3, "DistributedCache"))

    with RedisProvider() as provider:
        ShutdownCoordinator(provider).stop()
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from clusterctl_core.cluster.member import (
    ClusterMember,
    MemberRole,
    ProbeResult,
)
from clusterctl_core.protocol.command import (
    CommandError,
    CommandKind,
    Envelope,
    TerminateSelf,
)
from clusterctl_core.protocol.serializer import (
    Serializer,
    JSONSerializer,
    MsgPackSerializer,
)
from clusterctl_core.provider.backend import (
    ClusterError,
    ClusterProvider,
    ProviderConfig,
    ProviderError,
    ServiceHandle,
    ServiceLookupError,
    TransportError,
)
from clusterctl_core.provider.memory import MemoryCluster, MemoryProvider
from clusterctl_core.provider.redis import RedisProvider, RedisProviderConfig
from clusterctl_core.control.config import ControlConfig
from clusterctl_core.control.probe import MembershipProbe
from clusterctl_core.control.fanout import FanoutInvoker
from clusterctl_core.control.poller import (
    ConvergencePoller,
    ConvergenceTarget,
    PollOutcome,
    PollResult,
)
from clusterctl_core.control.shutdown import (
    ShutdownCoordinator,
    ShutdownOutcome,
    ShutdownReport,
)
from clusterctl_core.member.agent import AgentConfig, MemberAgent
from clusterctl_core.member.executor import CommandExecutor

__all__ = [
    # Cluster
    "ClusterMember",
    "MemberRole",
    "ProbeResult",
    # Protocol
    "CommandError",
    "CommandKind",
    "Envelope",
    "TerminateSelf",
    "Serializer",
    "JSONSerializer",
    "MsgPackSerializer",
    # Providers
    "ClusterError",
    "ClusterProvider",
    "ProviderConfig",
    "ProviderError",
    "ServiceHandle",
    "ServiceLookupError",
    "TransportError",
    "MemoryCluster",
    "MemoryProvider",
    "RedisProvider",
    "RedisProviderConfig",
    # Control
    "ControlConfig",
    "MembershipProbe",
    "FanoutInvoker",
    "ConvergencePoller",
    "ConvergenceTarget",
    "PollOutcome",
    "PollResult",
    "ShutdownCoordinator",
    "ShutdownOutcome",
    "ShutdownReport",
    # Member
    "AgentConfig",
    "MemberAgent",
    "CommandExecutor",
]
