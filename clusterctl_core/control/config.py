"""RoadCache Control Config - Control Tool Settings.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ControlConfig:
    """Control tool configuration.

    Attributes:
        required_service: Service that must be up for ensure to pass
        invocation_service: Service used to broadcast commands
        max_attempts: Probes before ensure gives up
        poll_interval_ms: Milliseconds between probes
        settle_seconds: Wait after a stop broadcast before re-checking
        terminate_delay_seconds: Grace period members wait before exiting
    """

    required_service: str = "DistributedCache"
    invocation_service: str = "InvocationService"
    max_attempts: int = 30
    poll_interval_ms: int = 1000
    settle_seconds: float = 10.0
    terminate_delay_seconds: float = 2.0


__all__ = ["ControlConfig"]
