"""RoadCache Shutdown Coordinator - Stop a Running Cluster.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from clusterctl_core.control.config import ControlConfig
from clusterctl_core.control.fanout import FanoutInvoker
from clusterctl_core.control.probe import MembershipProbe
from clusterctl_core.protocol.command import TerminateSelf
from clusterctl_core.provider.backend import ClusterError, ClusterProvider, ServiceLookupError

logger = logging.getLogger(__name__)


class ShutdownOutcome(Enum):
    """How a stop request ended."""

    REQUESTED = auto()        # Broadcast sent
    ALREADY_STOPPED = auto()  # No invocation service to send through
    FAILED = auto()           # Broadcast could not be sent


@dataclass(frozen=True)
class ShutdownReport:
    """Result of a stop request.

    Attributes:
        outcome: How the request ended
        targets: Members the terminate command was sent to
        residual_members: Members observed after the settle delay
        error: Description of the failure, if any
    """

    outcome: ShutdownOutcome
    targets: int = 0
    residual_members: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome != ShutdownOutcome.FAILED


class ShutdownCoordinator:
    """Asks every other member to terminate itself.

    Sequence:
    1. Resolve the invocation service; if there is none the cluster is
       considered stopped already.
    2. Broadcast TerminateSelf to all members but this one.
    3. Wait the settle delay.
    4. Count members once more and log what is left.

    Nothing is retried and remaining members do not change the outcome.

    Example:
        coordinator = ShutdownCoordinator(provider, ControlConfig())
        report = coordinator.stop()
    """

    def __init__(
        self,
        provider: ClusterProvider,
        config: Optional[ControlConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize coordinator.

        Args:
            provider: Cluster provider
            config: Control configuration
            sleep: Sleep function, seconds
        """
        self.config = config or ControlConfig()
        self.provider = provider
        self.invoker = FanoutInvoker(provider, self.config.invocation_service)
        self.probe = MembershipProbe(provider)
        self._sleep = sleep

    def stop(self) -> ShutdownReport:
        """Request cluster shutdown.

        Returns:
            ShutdownReport
        """
        try:
            handle = self.invoker.resolve()
        except ServiceLookupError as e:
            logger.info(f"Nothing to stop: {e}")
            return ShutdownReport(ShutdownOutcome.ALREADY_STOPPED)
        except ClusterError as e:
            logger.exception(f"Failed to resolve {self.config.invocation_service}")
            return ShutdownReport(ShutdownOutcome.FAILED, error=str(e))

        command = TerminateSelf(delay_seconds=self.config.terminate_delay_seconds)
        try:
            targets = self.invoker.broadcast(command, exclude_self=True, handle=handle)
        except ClusterError as e:
            logger.exception("Failed to broadcast shutdown request")
            return ShutdownReport(ShutdownOutcome.FAILED, error=str(e))

        logger.info(
            f"Shutdown requested for {len(targets)} member(s); "
            f"waiting {self.config.settle_seconds}s"
        )
        self._sleep(self.config.settle_seconds)

        residual = None
        try:
            residual = self.probe.count_members()
            logger.info(f"{residual} member(s) remain in the cluster")
        except ClusterError as e:
            logger.warning(f"Could not re-check membership: {e}")

        return ShutdownReport(
            ShutdownOutcome.REQUESTED,
            targets=len(targets),
            residual_members=residual,
        )


__all__ = ["ShutdownCoordinator", "ShutdownOutcome", "ShutdownReport"]
