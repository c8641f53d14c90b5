"""Core data models used across loader, engine, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union


class LogicalCommand(str, Enum):
    READ_GROSS = "readGross"
    READ_NET = "readNet"
    TARE = "tare"
    ZERO = "zero"

    @property
    def is_read(self) -> bool:
        return self in (LogicalCommand.READ_GROSS, LogicalCommand.READ_NET)


class Protocol(str, Enum):
    RINCMD = "RINCMD"
    DFW_ASCII = "DFW_ASCII"

    @classmethod
    def from_name(cls, name: str) -> Protocol:
        """Resolve a configured protocol tag, accepting vendor aliases."""
        key = name.strip().upper()
        try:
            return _PROTOCOL_ALIASES[key]
        except KeyError:
            raise ValueError(f"Unsupported protocol '{name}'") from None


_PROTOCOL_ALIASES = {
    "RINCMD": Protocol.RINCMD,
    "RINSTRUM": Protocol.RINCMD,
    "DFW_ASCII": Protocol.DFW_ASCII,
    "DINI_ARGEO": Protocol.DFW_ASCII,
    "DINI_ASCII": Protocol.DFW_ASCII,
    "ASCII": Protocol.DFW_ASCII,
}


class Stability(str, Enum):
    STABLE = "Stable"
    UNSTABLE = "Unstable"
    OVERLOAD = "Overload"
    UNDERLOAD = "Underload"
    UNKNOWN = "Unknown"


class ErrorKind(str, Enum):
    DEVICE_NOT_FOUND = "DeviceNotFound"
    DEVICE_DISABLED = "DeviceDisabled"
    COMMAND_NOT_MAPPED = "CommandNotMapped"
    CONNECT_ERROR = "ConnectError"
    READ_TIMEOUT = "ReadTimeout"
    CONNECTION_LOST = "ConnectionLost"
    DECODE_ERROR = "DecodeError"


class SessionState(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    READY = "Ready"
    EXECUTING = "Executing"


@dataclass(frozen=True)
class TcpConnection:
    host: str
    port: int = 4001

    def describe(self) -> str:
        return f"tcp://{self.host}:{self.port}"


@dataclass(frozen=True)
class SerialConnection:
    port_path: str
    baud_rate: int = 9600
    data_bits: int = 8
    stop_bits: int = 1
    parity: str = "none"
    flow_control: str = "none"

    def describe(self) -> str:
        return f"serial://{self.port_path}@{self.baud_rate}"


Connection = Union[TcpConnection, SerialConnection]


@dataclass(frozen=True)
class IndicatorProfile:
    """Protocol and default command tokens shared by one indicator model."""

    id: str
    name: str
    manufacturer: str
    model: str
    protocol: Protocol
    commands: dict[str, str]


@dataclass(frozen=True)
class DeviceDescriptor:
    id: str
    name: str
    manufacturer: str
    model: str
    protocol: Protocol
    connection: Connection
    command_map: dict[str, str]
    timeout_s: float = 1.0
    enabled: bool = True

    def wire_token(self, command: LogicalCommand) -> str | None:
        return self.command_map.get(command.value)


@dataclass(frozen=True)
class WeightReading:
    gross_weight: float | None = None
    net_weight: float | None = None
    tare_weight: float | None = None
    unit: str = ""
    stability: Stability = Stability.UNKNOWN
    raw_status_code: str = ""
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "gross_weight": self.gross_weight,
            "net_weight": self.net_weight,
            "tare_weight": self.tare_weight,
            "unit": self.unit,
            "stability": self.stability.value,
            "raw_status_code": self.raw_status_code,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class ExecutionOutcome:
    """Tagged result of one command: success with optional reading, or failure with a kind."""

    success: bool
    device_id: str
    command: str
    result: WeightReading | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @classmethod
    def ok(cls, device_id: str, command: str, result: WeightReading | None = None) -> ExecutionOutcome:
        return cls(success=True, device_id=device_id, command=command, result=result)

    @classmethod
    def failure(cls, device_id: str, command: str, kind: ErrorKind, message: str) -> ExecutionOutcome:
        return cls(success=False, device_id=device_id, command=command, error_kind=kind, error=message)

    def to_dict(self) -> dict[str, Any]:
        error = None
        if not self.success:
            error = f"{self.error_kind.value}: {self.error}" if self.error_kind else self.error
        return {
            "success": self.success,
            "device_id": self.device_id,
            "command": self.command,
            "result": self.result.to_dict() if self.result else None,
            "error": error,
        }
