"""Service layer used by the CLI and by an embedding HTTP layer."""

from __future__ import annotations

import logging
from pathlib import Path

from scalebridge.core.config_loader import load_devices, load_indicators
from scalebridge.core.errors import DeviceNotFoundError, TransportConnectError
from scalebridge.core.executor import Clock, CommandExecutor
from scalebridge.core.model import DeviceDescriptor, ExecutionOutcome, IndicatorProfile, SerialConnection
from scalebridge.core.registry import DeviceRegistry, ReloadSummary
from scalebridge.core.session import DeviceSession
from scalebridge.transports.base import TransportFactory
from scalebridge.transports.factory import connect_transport
from scalebridge.transports.serial_port import available_ports

LOGGER = logging.getLogger(__name__)


class BridgeService:
    def __init__(
        self,
        *,
        config_path: Path | None = None,
        transport_factory: TransportFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config_path = config_path
        self._transport_factory = transport_factory or connect_transport
        loaded_indicators = load_indicators()
        self.indicators = loaded_indicators.indicators
        loaded_devices = load_devices(config_path, indicators=self.indicators)
        self.load_warnings = loaded_indicators.warnings + loaded_devices.warnings
        self.registry = DeviceRegistry(
            loaded_devices.devices.values(),
            session_factory=self._new_session,
        )
        self.executor = CommandExecutor(self.registry, clock=clock)

    def __enter__(self) -> BridgeService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def list_devices(self) -> list[DeviceDescriptor]:
        return self.registry.list()

    def list_indicators(self) -> list[IndicatorProfile]:
        return sorted(self.indicators.values(), key=lambda i: i.id)

    def get_device(self, device_id: str) -> DeviceDescriptor:
        descriptor = self.registry.lookup(device_id)
        if descriptor is None:
            raise DeviceNotFoundError(f"Device '{device_id}' is not configured")
        return descriptor

    def run(self, device_id: str, command: str) -> ExecutionOutcome:
        return self.executor.run(device_id, command)

    def reload(self) -> ReloadSummary:
        """Re-read indicator profiles and devices and apply the differences."""
        loaded_indicators = load_indicators()
        loaded_devices = load_devices(self.config_path, indicators=loaded_indicators.indicators)
        self.indicators = loaded_indicators.indicators
        self.load_warnings = loaded_indicators.warnings + loaded_devices.warnings
        return self.registry.reload(loaded_devices.devices.values())

    def check_connection(self, device_id: str) -> str:
        """Open and immediately close a throwaway link; the device session is untouched."""
        descriptor = self.get_device(device_id)
        try:
            transport = self._transport_factory(descriptor)
        except TransportConnectError as exc:
            if not isinstance(descriptor.connection, SerialConnection):
                raise
            ports = ", ".join(available_ports()) or "<none>"
            raise TransportConnectError(f"{exc}. Available serial ports: {ports}") from exc
        transport.close()
        message = f"Connection to {descriptor.connection.describe()} succeeded"
        LOGGER.info("Device %s: %s", device_id, message)
        return message

    def close(self) -> None:
        self.registry.close()

    def _new_session(self, descriptor: DeviceDescriptor) -> DeviceSession:
        return DeviceSession(descriptor, transport_factory=self._transport_factory)
