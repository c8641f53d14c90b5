"""Per-device command serialization.

Every session owns one transport and one worker thread. Callers hand requests
to the worker through a FIFO queue and block on a future, so at most one
command is ever on the wire for a device and replies come back in admission
order. Connections are opened lazily by the next command after a failure.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass

from scalebridge.core import codec
from scalebridge.core.errors import CodecError, TransportError
from scalebridge.core.model import (
    DeviceDescriptor,
    ErrorKind,
    ExecutionOutcome,
    LogicalCommand,
    SessionState,
)
from scalebridge.transports.base import Transport, TransportFactory
from scalebridge.transports.factory import connect_transport

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Request:
    command: LogicalCommand
    wire_token: str
    future: Future


class DeviceSession:
    def __init__(
        self,
        descriptor: DeviceDescriptor,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.descriptor = descriptor
        self._connect = transport_factory or connect_transport
        self._transport: Transport | None = None
        self._state = SessionState.DISCONNECTED
        self._requests: queue.Queue[_Request | None] = queue.Queue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._transport is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, command: LogicalCommand, wire_token: str) -> ExecutionOutcome:
        """Queue one command behind any already admitted and wait for its outcome."""
        future: Future[ExecutionOutcome] = Future()
        with self._lock:
            if self._closed:
                return ExecutionOutcome.failure(
                    self.descriptor.id,
                    command.value,
                    ErrorKind.CONNECTION_LOST,
                    f"Session for device '{self.descriptor.id}' is closed",
                )
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run,
                    name=f"scalebridge-{self.descriptor.id}",
                    daemon=True,
                )
                self._worker.start()
            self._requests.put(_Request(command, wire_token, future))
        return future.result()

    def close(self, *, wait: bool = False, timeout: float | None = None) -> None:
        """Stop the worker after admitted commands drain, then release the transport."""
        with self._lock:
            worker = self._worker
            if not self._closed:
                self._closed = True
                if worker is not None:
                    self._requests.put(None)
        if wait and worker is not None and worker is not threading.current_thread():
            worker.join(timeout)

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                break
            try:
                outcome = self._process(request)
            except Exception as exc:
                LOGGER.exception("Unexpected failure executing %s on %s", request.command.value, self.descriptor.id)
                request.future.set_exception(exc)
            else:
                request.future.set_result(outcome)
        self._disconnect()

    def _process(self, request: _Request) -> ExecutionOutcome:
        descriptor = self.descriptor
        command = request.command
        try:
            if self._transport is None:
                self._state = SessionState.CONNECTING
                LOGGER.info("Connecting to device %s (%s)", descriptor.id, descriptor.connection.describe())
                self._transport = self._connect(descriptor)
                self._state = SessionState.READY

            payload = codec.encode(descriptor.protocol, request.wire_token)
            self._state = SessionState.EXECUTING
            LOGGER.debug("-> %s %s %r", descriptor.id, command.value, payload)
            raw = self._transport.write_then_read(
                payload,
                terminator=codec.terminator(descriptor.protocol),
                timeout_s=descriptor.timeout_s,
            )
            LOGGER.debug("<- %s %r", descriptor.id, raw)
            decoded = codec.decode(descriptor.protocol, raw, command)
        except TransportError as exc:
            # A timed out reply may still arrive later; never reuse that link.
            self._disconnect()
            LOGGER.warning("Device %s %s failed: %s", descriptor.id, command.value, exc)
            kind = exc.kind or ErrorKind.CONNECTION_LOST
            return ExecutionOutcome.failure(descriptor.id, command.value, kind, str(exc))
        except CodecError as exc:
            self._state = SessionState.READY
            LOGGER.warning("Device %s %s returned an undecodable reply: %s", descriptor.id, command.value, exc)
            return ExecutionOutcome.failure(descriptor.id, command.value, exc.kind, str(exc))

        self._state = SessionState.READY
        reading = None if decoded is codec.ACKNOWLEDGED else decoded
        return ExecutionOutcome.ok(descriptor.id, command.value, reading)

    def _disconnect(self) -> None:
        transport, self._transport = self._transport, None
        self._state = SessionState.DISCONNECTED
        if transport is not None:
            transport.close()
