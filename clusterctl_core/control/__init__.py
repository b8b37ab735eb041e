"""Control module - Stop and ensure operations."""

from clusterctl_core.control.config import ControlConfig
from clusterctl_core.control.fanout import FanoutInvoker, compute_targets
from clusterctl_core.control.poller import (
    ConvergencePoller,
    ConvergenceTarget,
    PollOutcome,
    PollResult,
)
from clusterctl_core.control.probe import MembershipProbe
from clusterctl_core.control.shutdown import (
    ShutdownCoordinator,
    ShutdownOutcome,
    ShutdownReport,
)

__all__ = [
    "ControlConfig",
    "FanoutInvoker",
    "compute_targets",
    "ConvergencePoller",
    "ConvergenceTarget",
    "PollOutcome",
    "PollResult",
    "MembershipProbe",
    "ShutdownCoordinator",
    "ShutdownOutcome",
    "ShutdownReport",
]
