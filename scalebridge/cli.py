"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from scalebridge.core.errors import ScaleBridgeError
from scalebridge.core.model import ExecutionOutcome, LogicalCommand
from scalebridge.core.service import BridgeService

app = typer.Typer(help="Uniform weighing commands for TCP and serial scale indicators")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Devices YAML file"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level"),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config": config}


def _build_service(ctx: typer.Context) -> BridgeService:
    config = (ctx.obj or {}).get("config")
    service = BridgeService(config_path=config)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _format_outcome(outcome: ExecutionOutcome) -> str:
    if not outcome.success:
        return f"{outcome.device_id} {outcome.command} failed: {outcome.error_kind.value}: {outcome.error}"
    reading = outcome.result
    if reading is None:
        return f"{outcome.device_id} {outcome.command} OK"
    parts = []
    for label, value in (
        ("gross", reading.gross_weight),
        ("net", reading.net_weight),
        ("tare", reading.tare_weight),
    ):
        if value is not None:
            parts.append(f"{label}={value:g}{reading.unit}")
    return f"{outcome.device_id} {outcome.command} {' '.join(parts)} ({reading.stability.value})"


@app.command("devices")
def list_devices(ctx: typer.Context) -> None:
    """List configured devices."""
    try:
        service = _build_service(ctx)
        devices = service.list_devices()
        if not devices:
            typer.echo("No devices configured")
            return

        for device in devices:
            state = "" if device.enabled else " [disabled]"
            typer.echo(
                f"{device.id}: {device.name} ({device.manufacturer} {device.model}) "
                f"{device.protocol.value} {device.connection.describe()}{state}"
            )
            commands = ", ".join(sorted(device.command_map)) or "<none>"
            typer.echo(f"  commands: {commands}")
    except ScaleBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("indicators")
def list_indicators(ctx: typer.Context) -> None:
    """List indicator profiles and their command tokens."""
    try:
        service = _build_service(ctx)
        for indicator in service.list_indicators():
            typer.echo(f"{indicator.id}: {indicator.name} ({indicator.protocol.value})")
            for command, token in sorted(indicator.commands.items()):
                typer.echo(f"  {command}: {token}")
    except ScaleBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("run")
def run_command(
    ctx: typer.Context,
    device: str,
    command: str = typer.Argument(..., help=", ".join(c.value for c in LogicalCommand)),
    as_json: bool = typer.Option(False, "--json", help="Print the result envelope as JSON"),
) -> None:
    """Execute a logical command on a device."""
    try:
        service = _build_service(ctx)
        try:
            outcome = service.run(device, command)
        finally:
            service.close()
    except ScaleBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if as_json:
        typer.echo(json.dumps(outcome.to_dict(), indent=2))
    elif outcome.success:
        typer.echo(_format_outcome(outcome))
    else:
        typer.echo(f"Error: {_format_outcome(outcome)}", err=True)
    if not outcome.success:
        raise typer.Exit(code=1)


@app.command("check")
def check_connection(ctx: typer.Context, device: str) -> None:
    """Open and close a test connection to a device."""
    try:
        service = _build_service(ctx)
        typer.echo(service.check_connection(device))
    except ScaleBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
