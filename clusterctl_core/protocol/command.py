"""RoadCache Commands - Remote Units of Work.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Commands are a closed set of immutable values tagged by CommandKind.
On the wire a command travels inside an envelope:

    {"v": 1, "kind": "terminate-self", "args": {...},
     "sender": "<member id>", "targets": ["<member id>", ...]}

Receivers decode the envelope, drop it unless they are a target, and
hand the command to a CommandExecutor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from clusterctl_core.protocol.serializer import Serializer, get_serializer

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1


class CommandError(Exception):
    """Raised for undecodable or unsupported command payloads."""


class CommandKind(Enum):
    """Kinds of remote commands."""

    TERMINATE_SELF = "terminate-self"


@dataclass(frozen=True)
class TerminateSelf:
    """Ask a member to shut its own process down.

    Attributes:
        delay_seconds: Grace period before the process exits
    """

    delay_seconds: float = 2.0

    def __post_init__(self):
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")

    @property
    def kind(self) -> CommandKind:
        return CommandKind.TERMINATE_SELF

    def to_args(self) -> Dict[str, Any]:
        return {"delay_seconds": self.delay_seconds}

    @classmethod
    def from_args(cls, args: Dict[str, Any]) -> "TerminateSelf":
        return cls(delay_seconds=float(args.get("delay_seconds", 2.0)))


RemoteCommand = Union[TerminateSelf]

_COMMAND_TYPES = {
    CommandKind.TERMINATE_SELF: TerminateSelf,
}


@dataclass(frozen=True)
class Envelope:
    """A command addressed to a set of members.

    Attributes:
        command: The command to run
        sender: Member ID of the sender
        targets: Member IDs that should execute the command
    """

    command: RemoteCommand
    sender: str
    targets: FrozenSet[str] = field(default_factory=frozenset)

    def addressed_to(self, member_id: str) -> bool:
        """Check whether a member is one of the targets."""
        return member_id in self.targets


def encode_envelope(
    envelope: Envelope,
    serializer: Optional[Serializer] = None,
) -> bytes:
    """Encode an envelope for the wire.

    Args:
        envelope: Envelope to encode
        serializer: Serializer to use (default msgpack)

    Returns:
        Encoded bytes
    """
    serializer = serializer or get_serializer()
    return serializer.serialize({
        "v": ENVELOPE_VERSION,
        "kind": envelope.command.kind.value,
        "args": envelope.command.to_args(),
        "sender": envelope.sender,
        "targets": sorted(envelope.targets),
    })


def decode_envelope(
    data: bytes,
    serializer: Optional[Serializer] = None,
) -> Envelope:
    """Decode an envelope received from the wire.

    Args:
        data: Encoded bytes
        serializer: Serializer to use (default msgpack)

    Returns:
        Decoded envelope

    Raises:
        CommandError: If the payload is malformed or of an unknown kind
    """
    serializer = serializer or get_serializer()
    try:
        payload = serializer.deserialize(data)
    except Exception as e:
        raise CommandError(f"Undecodable command payload: {e}") from e

    if not isinstance(payload, dict):
        raise CommandError(f"Expected a mapping, got {type(payload).__name__}")

    version = payload.get("v")
    if version != ENVELOPE_VERSION:
        raise CommandError(f"Unsupported envelope version: {version!r}")

    try:
        kind = CommandKind(payload.get("kind"))
    except ValueError:
        raise CommandError(f"Unknown command kind: {payload.get('kind')!r}")

    command = _COMMAND_TYPES[kind].from_args(payload.get("args") or {})
    return Envelope(
        command=command,
        sender=payload.get("sender", ""),
        targets=frozenset(payload.get("targets") or ()),
    )


def make_envelope(
    command: RemoteCommand,
    sender: str,
    targets: Iterable[str],
) -> Envelope:
    """Build an envelope from any iterable of target IDs."""
    return Envelope(command=command, sender=sender, targets=frozenset(targets))


__all__ = [
    "CommandError",
    "CommandKind",
    "TerminateSelf",
    "RemoteCommand",
    "Envelope",
    "encode_envelope",
    "decode_envelope",
    "make_envelope",
]
