"""Domain-specific errors for scalebridge."""

from __future__ import annotations

from scalebridge.core.model import ErrorKind


class ScaleBridgeError(Exception):
    """Base error for scalebridge."""

    kind: ErrorKind | None = None


class ConfigLoadError(ScaleBridgeError):
    """Raised when reading configuration sources fails."""


class ConfigValidationError(ScaleBridgeError):
    """Raised when a configuration file does not conform to schema or semantics."""


class DeviceNotFoundError(ScaleBridgeError):
    """Raised when no device is configured under the requested id."""

    kind = ErrorKind.DEVICE_NOT_FOUND


class DeviceDisabledError(ScaleBridgeError):
    """Raised when a command targets a device with enabled=false."""

    kind = ErrorKind.DEVICE_DISABLED


class CommandNotMappedError(ScaleBridgeError):
    """Raised when a device has no wire token for the logical command."""

    kind = ErrorKind.COMMAND_NOT_MAPPED


class TransportError(ScaleBridgeError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when a TCP or serial link cannot be established."""

    kind = ErrorKind.CONNECT_ERROR


class ReadTimeoutError(TransportError):
    """Raised when no terminator arrives before the device timeout."""

    kind = ErrorKind.READ_TIMEOUT


class ConnectionLostError(TransportError):
    """Raised on I/O failure in the middle of a command."""

    kind = ErrorKind.CONNECTION_LOST


class CodecError(ScaleBridgeError):
    """Base protocol codec error."""

    kind = ErrorKind.DECODE_ERROR


class DecodeError(CodecError):
    """Raised when response bytes do not match the protocol's expected shape."""


class EncodeError(CodecError):
    """Raised when a wire token cannot be framed."""
