"""Member module - The receiving side of control commands."""

from clusterctl_core.member.agent import AgentConfig, MemberAgent
from clusterctl_core.member.executor import CommandExecutor

__all__ = [
    "AgentConfig",
    "MemberAgent",
    "CommandExecutor",
]
