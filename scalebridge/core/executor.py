"""Engine entry point: validate, route, retry once, timestamp."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from scalebridge.core.errors import CommandNotMappedError, ScaleBridgeError
from scalebridge.core.model import ErrorKind, ExecutionOutcome, LogicalCommand
from scalebridge.core.registry import DeviceRegistry

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommandExecutor:
    def __init__(self, registry: DeviceRegistry, *, clock: Clock | None = None) -> None:
        self.registry = registry
        self._clock = clock or _utcnow

    def run(self, device_id: str, command: str) -> ExecutionOutcome:
        """Execute one logical command against a device.

        A ``ConnectionLost`` failure is retried exactly once on a fresh
        connection; every other failure is returned as is.
        """
        try:
            logical, wire_token = self._resolve(device_id, command)
            outcome = self._execute(device_id, logical, wire_token)
            if outcome.error_kind is ErrorKind.CONNECTION_LOST:
                LOGGER.warning("Retrying %s on %s after lost connection: %s", command, device_id, outcome.error)
                outcome = self._execute(device_id, logical, wire_token)
        except ScaleBridgeError as exc:
            kind = exc.kind or ErrorKind.CONNECTION_LOST
            outcome = ExecutionOutcome.failure(device_id, command, kind, str(exc))

        if not outcome.success:
            LOGGER.error("Command %s on %s failed (%s): %s", command, device_id, outcome.error_kind, outcome.error)
            return outcome
        if outcome.result is not None:
            outcome = dataclasses.replace(
                outcome,
                result=dataclasses.replace(outcome.result, timestamp=self._clock()),
            )
        return outcome

    def _resolve(self, device_id: str, command: str) -> tuple[LogicalCommand, str]:
        descriptor = self.registry.executable_descriptor(device_id)
        mapped = ", ".join(sorted(descriptor.command_map)) or "<none>"
        try:
            logical = LogicalCommand(command)
        except ValueError:
            raise CommandNotMappedError(f"Unknown command '{command}'. Available: {mapped}") from None
        wire_token = descriptor.wire_token(logical)
        if wire_token is None:
            raise CommandNotMappedError(
                f"Device '{device_id}' does not map command '{command}'. Available: {mapped}"
            )
        return logical, wire_token

    def _execute(self, device_id: str, command: LogicalCommand, wire_token: str) -> ExecutionOutcome:
        # Resolve the session again on every attempt; a reload may have replaced it.
        _, session = self.registry.lookup_for_execution(device_id)
        return session.execute(command, wire_token)
