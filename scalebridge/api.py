"""Stable public API for embedding scalebridge.

This module is the supported integration surface for third-party callers such
as an HTTP front end. Avoid importing from private/internal modules unless
intentionally depending on non-stable internals.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from scalebridge.core.errors import (
    CodecError,
    CommandNotMappedError,
    ConfigLoadError,
    ConfigValidationError,
    ConnectionLostError,
    DecodeError,
    DeviceDisabledError,
    DeviceNotFoundError,
    EncodeError,
    ReadTimeoutError,
    ScaleBridgeError,
    TransportConnectError,
    TransportError,
)
from scalebridge.core.executor import Clock
from scalebridge.core.model import (
    DeviceDescriptor,
    ErrorKind,
    ExecutionOutcome,
    IndicatorProfile,
    LogicalCommand,
    Protocol,
    SerialConnection,
    Stability,
    TcpConnection,
    WeightReading,
)
from scalebridge.core.registry import ReloadSummary
from scalebridge.core.service import BridgeService
from scalebridge.transports.base import Transport, TransportFactory

__all__ = [
    "ScaleBridgeError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceNotFoundError",
    "DeviceDisabledError",
    "CommandNotMappedError",
    "TransportError",
    "TransportConnectError",
    "ReadTimeoutError",
    "ConnectionLostError",
    "CodecError",
    "DecodeError",
    "EncodeError",
    "DeviceDescriptor",
    "ErrorKind",
    "ExecutionOutcome",
    "IndicatorProfile",
    "LogicalCommand",
    "Protocol",
    "ReloadSummary",
    "SerialConnection",
    "Stability",
    "TcpConnection",
    "Transport",
    "WeightReading",
    "Client",
]


class Client:
    """Public client for driving scales through scalebridge.

    A `Client` instance wraps configuration loading, the device registry and
    the command executor behind a stable API. Results of `run` are already in
    the shape an HTTP layer returns: call `to_dict()` on them.
    """

    def __init__(
        self,
        *,
        config_path: Path | None = None,
        transport_factory: TransportFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._service = BridgeService(
            config_path=config_path,
            transport_factory=transport_factory,
            clock=clock,
        )

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_devices(self) -> list[DeviceDescriptor]:
        return self._service.list_devices()

    def list_indicators(self) -> list[IndicatorProfile]:
        return self._service.list_indicators()

    def run(self, device_id: str, command: str) -> ExecutionOutcome:
        return self._service.run(device_id, command)

    def run_dict(self, device_id: str, command: str) -> dict[str, Any]:
        return self._service.run(device_id, command).to_dict()

    def reload(self) -> ReloadSummary:
        return self._service.reload()

    def check_connection(self, device_id: str) -> str:
        return self._service.check_connection(device_id)

    def close(self) -> None:
        self._service.close()
