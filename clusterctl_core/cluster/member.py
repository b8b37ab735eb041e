"""RoadCache Member - Cluster Member Identity.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import os
import socket
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class MemberRole(Enum):
    """Roles a process can play in the cluster."""

    STORAGE = "storage"   # Runs cache services
    CONTROL = "control"   # Control tool (clusterctl)


@dataclass(frozen=True, eq=False)
class ClusterMember:
    """A process participating in the cluster.

    Identity is the member ID alone; the remaining attributes are
    descriptive and never take part in equality or hashing.

    Attributes:
        member_id: Unique member identifier
        host: Hostname the member runs on
        pid: Process ID on that host
        role: Member role
        joined_at: When the member joined
    """

    member_id: str
    host: str = ""
    pid: int = 0
    role: MemberRole = MemberRole.STORAGE
    joined_at: Optional[datetime] = None

    @classmethod
    def local(cls, role: MemberRole = MemberRole.STORAGE) -> "ClusterMember":
        """Create an identity for the current process.

        Args:
            role: Member role

        Returns:
            New ClusterMember
        """
        host = socket.gethostname()
        pid = os.getpid()
        return cls(
            member_id=f"{host}-{pid}-{uuid.uuid4().hex[:8]}",
            host=host,
            pid=pid,
            role=role,
            joined_at=datetime.now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a wire-safe dictionary."""
        return {
            "member_id": self.member_id,
            "host": self.host,
            "pid": self.pid,
            "role": self.role.value,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterMember":
        """Create from dictionary."""
        joined_at = data.get("joined_at")
        return cls(
            member_id=data["member_id"],
            host=data.get("host", ""),
            pid=data.get("pid", 0),
            role=MemberRole(data.get("role", MemberRole.STORAGE.value)),
            joined_at=datetime.fromisoformat(joined_at) if joined_at else None,
        )

    def __repr__(self) -> str:
        return f"ClusterMember(id={self.member_id}, role={self.role.value})"

    def __hash__(self) -> int:
        return hash(self.member_id)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ClusterMember):
            return self.member_id == other.member_id
        return False


@dataclass(frozen=True)
class ProbeResult:
    """Point-in-time view of the cluster.

    Attributes:
        member_count: Number of members observed
        service_found: Whether the probed service resolved
    """

    member_count: int
    service_found: bool

    def satisfies(self, expected_member_count: int) -> bool:
        """Check whether this snapshot meets a membership goal."""
        return self.member_count == expected_member_count and self.service_found


__all__ = ["ClusterMember", "MemberRole", "ProbeResult"]
