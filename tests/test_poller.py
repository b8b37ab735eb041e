"""Tests for membership probing and convergence polling.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import logging

import pytest

from clusterctl_core.cluster.member import ProbeResult
from clusterctl_core.control.poller import (
    ConvergencePoller,
    ConvergenceTarget,
    PollOutcome,
)
from clusterctl_core.control.probe import MembershipProbe
from clusterctl_core.provider.backend import ProviderError


class TestMembershipProbe:
    """Tests for MembershipProbe."""

    def test_probe_counts_members_and_finds_service(self, scripted):
        """Test a healthy snapshot."""
        probe = MembershipProbe(scripted(counts=[3], services=[True]))

        assert probe.probe("DistributedCache") == ProbeResult(3, True)

    def test_lookup_failure_means_not_found(self, scripted):
        """Test that a missing service is not an error."""
        probe = MembershipProbe(scripted(counts=[2], services=[False]))

        result = probe.probe("DistributedCache")
        assert result.member_count == 2
        assert not result.service_found

    def test_enumeration_fault_propagates(self, scripted):
        """Test that member enumeration faults are fatal."""
        provider = scripted()
        provider.enumerate_error = ProviderError("connection refused")

        with pytest.raises(ProviderError):
            MembershipProbe(provider).probe("DistributedCache")

    def test_no_caching(self, scripted):
        """Test that every probe asks the provider again."""
        provider = scripted(counts=[1, 2, 3])
        probe = MembershipProbe(provider)

        counts = [probe.probe("svc").member_count for _ in range(3)]
        assert counts == [1, 2, 3]
        assert provider.get_stats().enumerations == 3


class TestConvergenceTarget:
    """Tests for ConvergenceTarget."""

    def test_other_members_include_self(self):
        """Test that 'n other members' means n + 1."""
        target = ConvergenceTarget.for_other_members(3, "DistributedCache")
        assert target == ConvergenceTarget(4, "DistributedCache")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"expected_member_count": -1},
            {"max_attempts": 0},
            {"poll_interval_millis": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        """Test validation."""
        values = {"expected_member_count": 1, "required_service_name": "svc"}
        values.update(kwargs)

        with pytest.raises(ValueError):
            ConvergenceTarget(**values)

    def test_negative_other_members(self):
        """Test that negative counts are rejected."""
        with pytest.raises(ValueError):
            ConvergenceTarget.for_other_members(-1, "svc")


class TestConvergencePoller:
    """Tests for ConvergencePoller."""

    def test_converges_first_attempt(self, scripted, sleeper):
        """Test immediate convergence."""
        provider = scripted(counts=[2], services=[True])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        result = poller.poll(ConvergenceTarget(2, "svc", max_attempts=5))

        assert result.outcome == PollOutcome.CONVERGED
        assert result.attempts == 1
        assert sleeper.calls == []

    @pytest.mark.parametrize("k", [1, 2, 4, 5])
    def test_converges_on_attempt_k(self, scripted, sleeper, k):
        """Test k probes and k - 1 sleeps when converging on attempt k."""
        provider = scripted(counts=[1] * (k - 1) + [3], services=[True])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        result = poller.poll(ConvergenceTarget(3, "svc", max_attempts=5))

        assert result.converged
        assert result.attempts == k
        assert provider.get_stats().enumerations == k
        assert len(sleeper.calls) == k - 1

    @pytest.mark.parametrize("max_attempts", [1, 2, 7])
    def test_times_out(self, scripted, sleeper, max_attempts):
        """Test max_attempts probes and max_attempts - 1 sleeps on timeout."""
        provider = scripted(counts=[1], services=[True])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        result = poller.poll(ConvergenceTarget(2, "svc", max_attempts=max_attempts))

        assert result.outcome == PollOutcome.TIMED_OUT
        assert result.attempts == max_attempts
        assert provider.get_stats().enumerations == max_attempts
        assert len(sleeper.calls) == max_attempts - 1

    def test_sleeps_poll_interval(self, scripted, sleeper):
        """Test the interval is converted to seconds."""
        provider = scripted(counts=[1, 2])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        poller.poll(ConvergenceTarget(2, "svc", poll_interval_millis=250))

        assert sleeper.calls == [0.25]

    def test_count_alone_is_not_enough(self, scripted, sleeper):
        """Test that the service must also be found."""
        provider = scripted(counts=[2], services=[False, False, True])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        result = poller.poll(ConvergenceTarget(2, "svc", max_attempts=5))

        assert result.converged
        assert result.attempts == 3

    def test_scenario_staggered_startup(self, scripted, sleeper):
        """Members [1, 1, 2, 2], service up from attempt 2: converges on 3."""
        provider = scripted(counts=[1, 1, 2, 2], services=[False, True])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        result = poller.poll(ConvergenceTarget(2, "svc", max_attempts=5))

        assert result.outcome == PollOutcome.CONVERGED
        assert result.attempts == 3
        assert len(sleeper.calls) == 2

    def test_scenario_never_converges(self, scripted, sleeper, caplog):
        """Membership stuck below 4 for 30 attempts: times out and logs why."""
        provider = scripted(counts=[1, 2, 3], services=[True])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        with caplog.at_level(logging.ERROR, logger="clusterctl_core.control.poller"):
            result = poller.poll(ConvergenceTarget(4, "DistributedCache", max_attempts=30))

        assert result.outcome == PollOutcome.TIMED_OUT
        assert result.attempts == 30
        assert result.last == ProbeResult(3, True)
        assert "expected 4 member(s), found 3" in caplog.text
        assert "DistributedCache found=True" in caplog.text

    def test_reports_last_snapshot(self, scripted, sleeper):
        """Test that the final snapshot, not an earlier one, is reported."""
        provider = scripted(counts=[5, 1], services=[True, False])
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        result = poller.poll(ConvergenceTarget(3, "svc", max_attempts=2))

        assert result.last == ProbeResult(1, False)

    def test_fault_aborts_poll(self, scripted, sleeper):
        """Test that a provider fault is not retried."""
        provider = scripted()
        provider.enumerate_error = ProviderError("unreachable")
        poller = ConvergencePoller(MembershipProbe(provider), sleep=sleeper)

        with pytest.raises(ProviderError):
            poller.poll(ConvergenceTarget(2, "svc", max_attempts=10))

        assert sleeper.calls == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
