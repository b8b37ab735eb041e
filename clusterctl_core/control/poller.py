"""RoadCache Convergence Poller - Wait for a Cluster to Form.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from clusterctl_core.cluster.member import ProbeResult
from clusterctl_core.control.probe import MembershipProbe

logger = logging.getLogger(__name__)


class PollOutcome(Enum):
    """Terminal states of a poll."""

    CONVERGED = auto()   # Target state observed
    TIMED_OUT = auto()   # Attempt budget exhausted


@dataclass(frozen=True)
class ConvergenceTarget:
    """State a poll waits for.

    Attributes:
        expected_member_count: Members expected, the polling process included
        required_service_name: Service that must resolve
        max_attempts: Probe budget
        poll_interval_millis: Milliseconds between probes
    """

    expected_member_count: int
    required_service_name: str
    max_attempts: int = 30
    poll_interval_millis: int = 1000

    def __post_init__(self):
        if self.expected_member_count < 0:
            raise ValueError(
                f"expected_member_count must be >= 0, got {self.expected_member_count}"
            )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.poll_interval_millis < 1:
            raise ValueError(
                f"poll_interval_millis must be >= 1, got {self.poll_interval_millis}"
            )

    @classmethod
    def for_other_members(
        cls,
        count: int,
        required_service_name: str,
        max_attempts: int = 30,
        poll_interval_millis: int = 1000,
    ) -> "ConvergenceTarget":
        """Build a target from the number of members besides this process.

        Args:
            count: Members expected other than the caller

        Returns:
            ConvergenceTarget expecting count + 1 members
        """
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        return cls(
            expected_member_count=count + 1,
            required_service_name=required_service_name,
            max_attempts=max_attempts,
            poll_interval_millis=poll_interval_millis,
        )


@dataclass(frozen=True)
class PollResult:
    """Result of a poll.

    Attributes:
        outcome: Terminal state
        attempts: Probes performed
        last: Most recent snapshot
        target: The target polled for
    """

    outcome: PollOutcome
    attempts: int
    last: ProbeResult
    target: ConvergenceTarget

    @property
    def converged(self) -> bool:
        return self.outcome == PollOutcome.CONVERGED


class ConvergencePoller:
    """Probes the cluster until it matches a target or the budget runs out.

    Each attempt takes one snapshot. The poll converges on the first
    snapshot where the member count equals the target and the required
    service resolved. Otherwise it sleeps for the poll interval and tries
    again, up to max_attempts probes; the final probe is never followed
    by a sleep.

    Faults raised by the probe abort the poll.

    Example:
        poller = ConvergencePoller(MembershipProbe(provider))
        result = poller.poll(ConvergenceTarget(4, "DistributedCache"))
        if not result.converged:
            ...
    """

    def __init__(
        self,
        probe: MembershipProbe,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize poller.

        Args:
            probe: Membership probe
            sleep: Sleep function, seconds
        """
        self.probe = probe
        self._sleep = sleep

    def poll(self, target: ConvergenceTarget) -> PollResult:
        """Poll until converged or out of attempts.

        Args:
            target: State to wait for

        Returns:
            PollResult with the last snapshot observed
        """
        interval = target.poll_interval_millis / 1000.0
        attempt = 1
        last: Optional[ProbeResult] = None

        while True:
            last = self.probe.probe(target.required_service_name)
            logger.debug(
                f"Attempt {attempt}/{target.max_attempts}: "
                f"{last.member_count} member(s), "
                f"{target.required_service_name} found={last.service_found}"
            )

            if last.satisfies(target.expected_member_count):
                logger.info(
                    f"Cluster converged on attempt {attempt}: "
                    f"{last.member_count} member(s) with "
                    f"{target.required_service_name} running"
                )
                return PollResult(PollOutcome.CONVERGED, attempt, last, target)

            if attempt == target.max_attempts:
                logger.error(
                    f"Cluster did not converge after {attempt} attempt(s): "
                    f"expected {target.expected_member_count} member(s), "
                    f"found {last.member_count}; "
                    f"{target.required_service_name} found={last.service_found}"
                )
                return PollResult(PollOutcome.TIMED_OUT, attempt, last, target)

            self._sleep(interval)
            attempt += 1


__all__ = [
    "PollOutcome",
    "ConvergenceTarget",
    "PollResult",
    "ConvergencePoller",
]
