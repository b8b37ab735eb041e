"""Shared fixtures for clusterctl tests.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from clusterctl_core.cluster.member import ClusterMember, MemberRole
from clusterctl_core.member.agent import AgentConfig, MemberAgent
from clusterctl_core.provider.backend import (
    ClusterProvider,
    ProviderConfig,
    ServiceHandle,
    ServiceLookupError,
)
from clusterctl_core.provider.memory import MemoryCluster, MemoryProvider


class ScriptedProvider(ClusterProvider):
    """Provider that replays scripted snapshots.

    The n-th enumeration reports counts[n] members (the local member
    included) and the n-th lookup succeeds if services[n] is true. The
    last entry repeats once a script runs out.
    """

    def __init__(self, counts=(1,), services=(True,)):
        super().__init__(
            ProviderConfig(),
            ClusterMember("control", role=MemberRole.CONTROL),
        )
        self.counts = list(counts)
        self.services = list(services)
        self.enumerate_error = None
        self.broadcast_error = None
        self.broadcasts = []
        self.joined = False
        self.close_calls = 0

    @staticmethod
    def _step(script, index):
        return script[min(index, len(script) - 1)]

    def join(self):
        self.joined = True

    def enumerate_members(self):
        if self.enumerate_error is not None:
            raise self.enumerate_error
        count = self._step(self.counts, self._stats.enumerations)
        self._stats.enumerations += 1
        if count == 0:
            return set()
        return {self._local} | {ClusterMember(f"member-{i}") for i in range(count - 1)}

    def resolve_service(self, name):
        found = self._step(self.services, self._stats.lookups)
        self._stats.lookups += 1
        if not found:
            raise ServiceLookupError(name)
        return ServiceHandle(name=name)

    def broadcast(self, handle, command, targets):
        if self.broadcast_error is not None:
            raise self.broadcast_error
        self.broadcasts.append((handle, command, frozenset(targets)))

    def register_service(self, name):
        pass

    def subscribe(self, service_name, handler):
        pass

    def _close(self):
        self.close_calls += 1


class SleepRecorder:
    """Stands in for time.sleep."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def scripted():
    """Factory for ScriptedProvider."""
    return ScriptedProvider


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def cluster():
    return MemoryCluster("test")


@pytest.fixture
def start_members(cluster):
    """Start member agents on the memory cluster; stops leftovers after the test."""
    agents = []

    def start(count, services=("DistributedCache",), on_terminate=None):
        started = []
        for _ in range(count):
            provider = MemoryProvider(
                cluster, local_member=ClusterMember(f"storage-{len(agents)}")
            )
            agent = MemberAgent(
                provider,
                AgentConfig(services=list(services)),
                on_terminate=on_terminate,
            )
            agent.start()
            agents.append(agent)
            started.append(agent)
        return started

    yield start

    for agent in agents:
        agent.stop()
