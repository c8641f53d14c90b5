"""Transport interfaces."""

from __future__ import annotations

from typing import Callable, Protocol

from scalebridge.core.model import DeviceDescriptor


class Transport(Protocol):
    def write_then_read(
        self,
        payload: bytes,
        *,
        terminator: bytes,
        timeout_s: float,
    ) -> bytes:
        """Write a full command, then return the reply up to and including ``terminator``."""

    def close(self) -> None:
        """Release the underlying handle. Safe to call more than once."""


TransportFactory = Callable[[DeviceDescriptor], Transport]
