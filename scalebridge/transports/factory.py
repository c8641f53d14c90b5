"""Open the right transport for a device descriptor."""

from __future__ import annotations

from scalebridge.core.errors import TransportConnectError
from scalebridge.core.model import DeviceDescriptor, SerialConnection, TcpConnection
from scalebridge.transports.base import Transport
from scalebridge.transports.serial_port import SerialTransport
from scalebridge.transports.tcp import TcpTransport


def connect_transport(descriptor: DeviceDescriptor) -> Transport:
    connection = descriptor.connection
    if isinstance(connection, TcpConnection):
        return TcpTransport.open(connection.host, connection.port, timeout_s=descriptor.timeout_s)
    if isinstance(connection, SerialConnection):
        return SerialTransport.open(connection, timeout_s=descriptor.timeout_s)
    raise TransportConnectError(
        f"Unsupported connection type {type(connection).__name__} for device '{descriptor.id}'"
    )
