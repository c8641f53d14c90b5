"""Serial transport implementation using pyserial."""

from __future__ import annotations

import logging
import time

import serial
from serial.tools import list_ports

from scalebridge.core.errors import (
    ConnectionLostError,
    ReadTimeoutError,
    TransportConnectError,
)
from scalebridge.core.model import SerialConnection

LOGGER = logging.getLogger(__name__)

PARITIES = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
}
STOP_BITS = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
}
DATA_BITS = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}
# Upper bound on one blocking read; the reply deadline is checked between reads.
POLL_INTERVAL_S = 0.05


def available_ports() -> list[str]:
    """Device paths of the serial ports present on this machine."""
    return sorted(port.device for port in list_ports.comports())


class SerialTransport:
    def __init__(self, port: serial.Serial, *, address: str) -> None:
        self._port: serial.Serial | None = port
        self.address = address

    @classmethod
    def open(cls, connection: SerialConnection, *, timeout_s: float) -> SerialTransport:
        address = connection.port_path
        try:
            port = serial.Serial(
                port=connection.port_path,
                baudrate=connection.baud_rate,
                bytesize=DATA_BITS[connection.data_bits],
                parity=PARITIES[connection.parity],
                stopbits=STOP_BITS[connection.stop_bits],
                xonxoff=connection.flow_control == "software",
                rtscts=connection.flow_control == "hardware",
                timeout=POLL_INTERVAL_S,
                write_timeout=timeout_s,
            )
        except KeyError as exc:
            raise TransportConnectError(
                f"Unsupported serial setting {exc.args[0]!r} for {address}"
            ) from exc
        except (serial.SerialException, ValueError) as exc:
            raise TransportConnectError(f"Could not open serial port {address}: {exc}") from exc

        try:
            port.reset_input_buffer()
            port.reset_output_buffer()
        except serial.SerialException as exc:
            port.close()
            raise TransportConnectError(f"Could not reset serial port {address}: {exc}") from exc

        LOGGER.info("Opened serial port %s at %d baud", address, connection.baud_rate)
        return cls(port, address=address)

    def write_then_read(
        self,
        payload: bytes,
        *,
        terminator: bytes,
        timeout_s: float,
    ) -> bytes:
        if self._port is None:
            raise ConnectionLostError(f"Serial port {self.address} is closed")

        deadline = time.monotonic() + timeout_s
        try:
            # Drop bytes left over from an earlier, abandoned reply.
            self._port.reset_input_buffer()
            if self._port.write_timeout != timeout_s:
                self._port.write_timeout = timeout_s
            self._port.write(payload)
            self._port.flush()
        except serial.SerialTimeoutException as exc:
            raise ReadTimeoutError(f"Write to {self.address} timed out after {timeout_s}s") from exc
        except (serial.SerialException, OSError) as exc:
            raise ConnectionLostError(f"Write to {self.address} failed: {exc}") from exc

        buffer = bytearray()
        while terminator not in buffer:
            if time.monotonic() >= deadline:
                raise ReadTimeoutError(
                    f"No reply terminator from {self.address} within {timeout_s}s"
                )
            try:
                chunk = self._port.read(max(1, self._port.in_waiting))
            except (serial.SerialException, OSError) as exc:
                raise ConnectionLostError(f"Read from {self.address} failed: {exc}") from exc
            buffer.extend(chunk)

        end = buffer.index(terminator) + len(terminator)
        return bytes(buffer[:end])

    def close(self) -> None:
        port, self._port = self._port, None
        if port is None:
            return
        try:
            port.close()
        except (serial.SerialException, OSError) as exc:
            LOGGER.debug("Ignoring close error for %s: %s", self.address, exc)
        else:
            LOGGER.info("Closed serial port %s", self.address)
