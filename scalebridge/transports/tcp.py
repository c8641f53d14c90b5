"""TCP transport implementation using Python sockets."""

from __future__ import annotations

import logging
import socket
import time

from scalebridge.core.errors import (
    ConnectionLostError,
    ReadTimeoutError,
    TransportConnectError,
)

LOGGER = logging.getLogger(__name__)
_RECV_SIZE = 1024


class TcpTransport:
    def __init__(self, sock: socket.socket, *, address: str) -> None:
        self._sock: socket.socket | None = sock
        self.address = address

    @classmethod
    def open(cls, host: str, port: int, *, timeout_s: float) -> TcpTransport:
        address = f"{host}:{port}"
        try:
            sock = socket.create_connection((host, port), timeout=timeout_s)
        except TimeoutError as exc:
            raise TransportConnectError(
                f"TCP connect to {address} timed out after {timeout_s}s"
            ) from exc
        except OSError as exc:
            raise TransportConnectError(f"TCP connect to {address} failed: {exc}") from exc
        LOGGER.info("Connected to %s", address)
        return cls(sock, address=address)

    def write_then_read(
        self,
        payload: bytes,
        *,
        terminator: bytes,
        timeout_s: float,
    ) -> bytes:
        if self._sock is None:
            raise ConnectionLostError(f"TCP link to {self.address} is closed")

        self._discard_pending()
        deadline = time.monotonic() + timeout_s
        try:
            self._sock.settimeout(timeout_s)
            self._sock.sendall(payload)
        except TimeoutError as exc:
            raise ReadTimeoutError(f"Write to {self.address} timed out after {timeout_s}s") from exc
        except OSError as exc:
            raise ConnectionLostError(f"Write to {self.address} failed: {exc}") from exc

        buffer = bytearray()
        while terminator not in buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadTimeoutError(
                    f"No reply terminator from {self.address} within {timeout_s}s"
                )
            try:
                self._sock.settimeout(remaining)
                chunk = self._sock.recv(_RECV_SIZE)
            except TimeoutError as exc:
                raise ReadTimeoutError(
                    f"No reply terminator from {self.address} within {timeout_s}s"
                ) from exc
            except OSError as exc:
                raise ConnectionLostError(f"Read from {self.address} failed: {exc}") from exc
            if not chunk:
                raise ConnectionLostError(f"Connection closed by {self.address}")
            buffer.extend(chunk)

        end = buffer.index(terminator) + len(terminator)
        return bytes(buffer[:end])

    def _discard_pending(self) -> None:
        """Drop bytes left over from an earlier exchange so they cannot answer the next command."""
        stale = bytearray()
        self._sock.setblocking(False)
        try:
            while True:
                chunk = self._sock.recv(_RECV_SIZE)
                if not chunk:
                    raise ConnectionLostError(f"Connection closed by {self.address}")
                stale.extend(chunk)
        except BlockingIOError:
            pass
        except OSError as exc:
            raise ConnectionLostError(f"Read from {self.address} failed: {exc}") from exc
        finally:
            self._sock.setblocking(True)
        if stale:
            LOGGER.debug("Discarded %d stale byte(s) from %s: %r", len(stale), self.address, bytes(stale))

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as exc:
            LOGGER.debug("Ignoring close error for %s: %s", self.address, exc)
        else:
            LOGGER.info("Disconnected from %s", self.address)
