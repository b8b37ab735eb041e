"""Tests for ShutdownCoordinator.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import threading

import pytest

from clusterctl_core.cluster.member import ClusterMember, MemberRole
from clusterctl_core.control.config import ControlConfig
from clusterctl_core.control.shutdown import ShutdownCoordinator, ShutdownOutcome
from clusterctl_core.protocol.command import TerminateSelf
from clusterctl_core.provider.backend import ProviderError, TransportError
from clusterctl_core.provider.memory import MemoryProvider


def make_config(**kwargs):
    values = {"settle_seconds": 10.0, "terminate_delay_seconds": 0.0}
    values.update(kwargs)
    return ControlConfig(**values)


class TestShutdownCoordinator:
    """Tests for the stop sequence."""

    def test_broadcasts_settles_and_rechecks(self, scripted, sleeper):
        """Test the full sequence against a scripted cluster."""
        provider = scripted(counts=[3, 1])
        coordinator = ShutdownCoordinator(
            provider, make_config(terminate_delay_seconds=2.5), sleep=sleeper
        )

        report = coordinator.stop()

        assert report.outcome == ShutdownOutcome.REQUESTED
        assert report.ok
        assert report.targets == 2
        assert report.residual_members == 1
        assert sleeper.calls == [10.0]
        _, command, _ = provider.broadcasts[0]
        assert command == TerminateSelf(delay_seconds=2.5)

    def test_no_service_is_noop(self, scripted, sleeper):
        """Test that an unresolvable service means already stopped."""
        provider = scripted(services=[False])

        report = ShutdownCoordinator(provider, make_config(), sleep=sleeper).stop()

        assert report.outcome == ShutdownOutcome.ALREADY_STOPPED
        assert report.ok
        assert provider.broadcasts == []
        assert sleeper.calls == []

    def test_repeated_stop_is_noop(self, cluster, start_members):
        """Test stopping an already stopped cluster."""
        agents = start_members(2)
        control = MemoryProvider(cluster, local_member=ClusterMember("control"))
        control.join()
        coordinator = ShutdownCoordinator(control, make_config(), sleep=lambda s: None)

        assert coordinator.stop().outcome == ShutdownOutcome.REQUESTED
        assert all(agent.wait(timeout=5.0) for agent in agents)

        for _ in range(2):
            report = coordinator.stop()
            assert report.outcome == ShutdownOutcome.ALREADY_STOPPED
            assert report.ok

    def test_transport_fault_fails(self, scripted, sleeper):
        """Test that a rejected broadcast is reported as failed."""
        provider = scripted(counts=[3])
        provider.broadcast_error = TransportError("publish failed")

        report = ShutdownCoordinator(provider, make_config(), sleep=sleeper).stop()

        assert report.outcome == ShutdownOutcome.FAILED
        assert not report.ok
        assert "publish failed" in report.error
        assert sleeper.calls == []

    def test_enumeration_fault_fails(self, scripted, sleeper):
        """Test that an unreachable cluster during broadcast fails."""
        provider = scripted()
        provider.enumerate_error = ProviderError("unreachable")

        report = ShutdownCoordinator(provider, make_config(), sleep=sleeper).stop()

        assert report.outcome == ShutdownOutcome.FAILED

    def test_recheck_fault_is_informational(self, scripted):
        """Test that the post-settle probe cannot fail the stop."""
        provider = scripted(counts=[2])

        def settle(seconds):
            provider.enumerate_error = ProviderError("gone")

        report = ShutdownCoordinator(provider, make_config(), sleep=settle).stop()

        assert report.outcome == ShutdownOutcome.REQUESTED
        assert report.residual_members is None

    def test_only_coordinator_left(self, scripted, sleeper):
        """Zero other members: empty target set, completes without fault."""
        provider = scripted(counts=[1])

        report = ShutdownCoordinator(provider, make_config(), sleep=sleeper).stop()

        assert report.outcome == ShutdownOutcome.REQUESTED
        assert report.targets == 0
        assert provider.broadcasts[0][2] == frozenset()

    def test_members_terminate_themselves(self, cluster, start_members):
        """Test end to end over the memory cluster."""
        terminated = threading.Semaphore(0)
        agents = start_members(3, on_terminate=terminated.release)
        control = MemoryProvider(
            cluster, local_member=ClusterMember("control", role=MemberRole.CONTROL)
        )
        control.join()

        report = ShutdownCoordinator(
            control, make_config(terminate_delay_seconds=0.05), sleep=lambda s: None
        ).stop()

        assert report.targets == 3
        for _ in agents:
            assert terminated.acquire(timeout=5.0)
        assert all(agent.wait(timeout=5.0) for agent in agents)
        assert {m.member_id for m in cluster.members()} == {"control"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
