from __future__ import annotations

import json
from datetime import datetime, timezone

from typer.testing import CliRunner

from scalebridge import cli
from scalebridge.core.errors import DeviceNotFoundError
from scalebridge.core.model import (
    DeviceDescriptor,
    ErrorKind,
    ExecutionOutcome,
    IndicatorProfile,
    Protocol,
    SerialConnection,
    Stability,
    TcpConnection,
    WeightReading,
)


class FakeService:
    def __init__(self, config_path=None) -> None:
        self.config_path = config_path
        self.load_warnings = ()
        self.closed = False
        self.devices = [
            DeviceDescriptor(
                id="c320",
                name="Dock scale",
                manufacturer="Rinstrum",
                model="C320",
                protocol=Protocol.RINCMD,
                connection=TcpConnection(host="192.168.1.254", port=4001),
                command_map={"readGross": "20050026", "tare": "21120008:0C"},
            ),
            DeviceDescriptor(
                id="dfw",
                name="Bench scale",
                manufacturer="Dini Argeo",
                model="DFW",
                protocol=Protocol.DFW_ASCII,
                connection=SerialConnection(port_path="/dev/ttyUSB0"),
                command_map={"readGross": "READ"},
                enabled=False,
            ),
        ]

    def list_devices(self):
        return self.devices

    def list_indicators(self):
        return [
            IndicatorProfile(
                id="dini_argeo_dfw",
                name="Dini Argeo DFW",
                manufacturer="Dini Argeo",
                model="DFW",
                protocol=Protocol.DFW_ASCII,
                commands={"readGross": "READ", "tare": "TARE"},
            )
        ]

    def run(self, device_id, command):
        if command == "tare":
            return ExecutionOutcome.ok(device_id, command)
        reading = WeightReading(
            gross_weight=25.5,
            unit="kg",
            stability=Stability.STABLE,
            raw_status_code="st",
            timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        )
        return ExecutionOutcome.ok(device_id, command, reading)

    def check_connection(self, device_id):
        return "Connection to tcp://192.168.1.254:4001 succeeded"

    def close(self):
        self.closed = True


runner = CliRunner()


def test_devices_command(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert "c320: Dock scale (Rinstrum C320) RINCMD tcp://192.168.1.254:4001" in result.stdout
    assert "  commands: readGross, tare" in result.stdout
    assert "serial:///dev/ttyUSB0@9600 [disabled]" in result.stdout


def test_devices_command_without_devices(monkeypatch):
    class EmptyService(FakeService):
        def list_devices(self):
            return []

    monkeypatch.setattr(cli, "BridgeService", EmptyService)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert "No devices configured" in result.stdout


def test_indicators_command(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["indicators"])
    assert result.exit_code == 0
    assert "dini_argeo_dfw: Dini Argeo DFW (DFW_ASCII)" in result.stdout
    assert "  tare: TARE" in result.stdout


def test_run_command_prints_reading(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["run", "c320", "readGross"])
    assert result.exit_code == 0
    assert "c320 readGross gross=25.5kg (Stable)" in result.stdout


def test_run_command_json_envelope(monkeypatch):
    monkeypatch.setattr(cli, "BridgeService", FakeService)
    result = runner.invoke(cli.app, ["run", "c320", "tare", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "success": True,
        "device_id": "c320",
        "command": "tare",
        "result": None,
        "error": None,
    }


def test_run_command_failure_exits_nonzero(monkeypatch):
    class TimeoutService(FakeService):
        def run(self, device_id, command):
            return ExecutionOutcome.failure(device_id, command, ErrorKind.READ_TIMEOUT, "no reply within 1.0s")

    monkeypatch.setattr(cli, "BridgeService", TimeoutService)
    result = runner.invoke(cli.app, ["run", "c320", "readGross"])
    assert result.exit_code == 1
    assert "Error: c320 readGross failed: ReadTimeout: no reply within 1.0s" in result.stderr


def test_config_option_reaches_service(monkeypatch, tmp_path):
    seen = []

    class RecordingService(FakeService):
        def __init__(self, config_path=None) -> None:
            super().__init__(config_path)
            seen.append(config_path)

    monkeypatch.setattr(cli, "BridgeService", RecordingService)
    config = tmp_path / "devices.yaml"
    result = runner.invoke(cli.app, ["--config", str(config), "devices"])
    assert result.exit_code == 0
    assert seen == [config]


def test_check_command_error_is_clean(monkeypatch):
    class MissingService(FakeService):
        def check_connection(self, device_id):
            raise DeviceNotFoundError(f"Device '{device_id}' is not configured")

    monkeypatch.setattr(cli, "BridgeService", MissingService)
    result = runner.invoke(cli.app, ["check", "nonexistent"])
    assert result.exit_code == 1
    assert "Error: Device 'nonexistent' is not configured" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr
