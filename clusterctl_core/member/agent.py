"""RoadCache Member Agent - Cluster Member Process.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from clusterctl_core.member.executor import CommandExecutor
from clusterctl_core.protocol.command import CommandKind, TerminateSelf
from clusterctl_core.provider.backend import ClusterProvider

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Member agent configuration.

    Attributes:
        services: Services this member advertises
        invocation_service: Service commands arrive through
    """

    services: List[str] = field(default_factory=lambda: ["DistributedCache"])
    invocation_service: str = "InvocationService"


class MemberAgent:
    """Keeps a process in the cluster and runs commands sent to it.

    On start the agent joins, listens on the invocation service and
    registers its services; the provider keeps the registration alive
    until the agent stops. A TerminateSelf command schedules stop() on a
    detached timer, so the delivery returns before the member goes away.

    Example:
        agent = MemberAgent(RedisProvider(config, ClusterMember.local()))
        agent.start()
        agent.wait()
    """

    def __init__(
        self,
        provider: ClusterProvider,
        config: Optional[AgentConfig] = None,
        on_terminate: Optional[Callable[[], None]] = None,
    ):
        """Initialize agent.

        Args:
            provider: Cluster provider for this member
            config: Agent configuration
            on_terminate: Called after a requested termination stopped the agent
        """
        self.provider = provider
        self.config = config or AgentConfig()
        self._on_terminate = on_terminate

        self.executor = CommandExecutor()
        self.executor.register(CommandKind.TERMINATE_SELF, self._on_terminate_self)

        self._started = False
        self._stopped = threading.Event()
        self._termination: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._stop_lock = threading.Lock()

    @property
    def member(self):
        return self.provider.get_local_member()

    @property
    def running(self) -> bool:
        return self._started and not self._stopped.is_set()

    def start(self) -> None:
        """Join the cluster and start serving."""
        self._stopped.clear()

        self.provider.join()
        # Listen before advertising so no broadcast is missed
        self.provider.subscribe(self.config.invocation_service, self.executor.handle)
        self.provider.register_service(self.config.invocation_service)
        for name in self.config.services:
            self.provider.register_service(name)
        self._started = True

        logger.info(
            f"Member {self.member.member_id} started with services "
            f"{', '.join(self.config.services) or '(none)'}"
        )

    def stop(self) -> None:
        """Leave the cluster. Only the first call has an effect."""
        with self._stop_lock:
            if self._stopped.is_set():
                return
            self.provider.shutdown()
            self._stopped.set()
        logger.info(f"Member {self.member.member_id} stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the agent has stopped and left the cluster.

        Returns:
            True if stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    def schedule_termination(self, delay_seconds: float) -> threading.Timer:
        """Stop the agent after a delay on a detached timer.

        Repeated requests keep the first schedule.

        Args:
            delay_seconds: Grace period

        Returns:
            The timer running the termination
        """
        with self._lock:
            if self._termination is not None:
                logger.debug("Termination already scheduled")
                return self._termination

            self._termination = threading.Timer(delay_seconds, self._terminate)
            self._termination.daemon = True
            self._termination.start()

        logger.info(f"Terminating in {delay_seconds}s")
        return self._termination

    def _on_terminate_self(self, command: TerminateSelf) -> None:
        self.schedule_termination(command.delay_seconds)

    def _terminate(self) -> None:
        try:
            self.stop()
        finally:
            if self._on_terminate:
                self._on_terminate()

    def __enter__(self) -> "MemberAgent":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


__all__ = ["MemberAgent", "AgentConfig"]
