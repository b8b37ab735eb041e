"""RoadCache Command Executor - Run Received Commands.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from clusterctl_core.protocol.command import (
    CommandError,
    CommandKind,
    Envelope,
    RemoteCommand,
)

logger = logging.getLogger(__name__)

CommandHandler = Callable[[RemoteCommand], None]


class CommandExecutor:
    """Dispatches commands to the capabilities a member offers.

    A member only runs the command kinds it registered a handler for;
    anything else is rejected.

    Example:
        executor = CommandExecutor()
        executor.register(CommandKind.TERMINATE_SELF, agent.on_terminate)
        executor.execute(TerminateSelf(delay_seconds=1.0))
    """

    def __init__(self, capabilities: Optional[Dict[CommandKind, CommandHandler]] = None):
        self._capabilities: Dict[CommandKind, CommandHandler] = dict(capabilities or {})

    def register(self, kind: CommandKind, handler: CommandHandler) -> "CommandExecutor":
        """Register a capability.

        Args:
            kind: Command kind
            handler: Handler for that kind

        Returns:
            Self for chaining
        """
        self._capabilities[kind] = handler
        return self

    def supports(self, kind: CommandKind) -> bool:
        return kind in self._capabilities

    def execute(self, command: RemoteCommand) -> None:
        """Run a command.

        Raises:
            CommandError: If the command kind is not supported
        """
        handler = self._capabilities.get(command.kind)
        if handler is None:
            raise CommandError(f"Unsupported command: {command.kind.value}")
        handler(command)

    def handle(self, envelope: Envelope) -> None:
        """Run the command of a received envelope.

        Commands are one-way: failures are logged here, never reported
        back to the sender.
        """
        logger.info(f"Received {envelope.command.kind.value} from {envelope.sender}")
        try:
            self.execute(envelope.command)
        except CommandError as e:
            logger.warning(str(e))


__all__ = ["CommandExecutor", "CommandHandler"]
