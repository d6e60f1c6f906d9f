"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import typer

from ecoctl.core.config import load_settings
from ecoctl.core.errors import AuthenticationRequired, EcoctlError
from ecoctl.core.model import Thermostat
from ecoctl.core.service import ThermostatService

app = typer.Typer(help="Pair with and read Danfoss Eco style Bluetooth thermostats")

AUTH_REQUIRED_EXIT_CODE = 2
_DATETIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%d"]


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
    registry: Path | None = typer.Option(None, "--registry", help="Path to the thermostat registry XML"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log protocol steps to stderr"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    ctx.obj = {"config": config, "registry": registry}


def _build_service(ctx: typer.Context) -> ThermostatService:
    options = ctx.obj or {}
    settings = load_settings(options.get("config"), registry_path=options.get("registry"))
    return ThermostatService(settings=settings)


def _fail(exc: EcoctlError) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _pending_summary(thermostat: Thermostat) -> str:
    parts: list[str] = []
    if thermostat.updated_set_point_temperature is not None:
        parts.append(f"set-point {thermostat.updated_set_point_temperature.degrees_celsius:g}C")
    if thermostat.has_updated_vacation_period:
        period = thermostat.updated_vacation_period
        if period is None:
            parts.append("cancel vacation")
        else:
            parts.append(f"vacation {period.start.isoformat()} -> {period.end.isoformat()}")
    return ", ".join(parts)


@app.command("read")
def read(ctx: typer.Context, serial: str) -> None:
    """Unlock the thermostat SERIAL, read its state and store it in the registry."""
    try:
        service = _build_service(ctx)
        thermostat = service.read(serial)
    except AuthenticationRequired as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=AUTH_REQUIRED_EXIT_CODE) from None
    except EcoctlError as exc:
        raise _fail(exc) from None
    typer.echo(f"Read {thermostat.serial} via {thermostat.uuid}", err=True)
    typer.echo("Done", err=True)


@app.command("list")
def list_thermostats(ctx: typer.Context) -> None:
    """List thermostats in the registry."""
    try:
        thermostats = _build_service(ctx).list_thermostats()
    except EcoctlError as exc:
        raise _fail(exc) from None

    if not thermostats:
        typer.echo("No thermostats registered")
        return

    for thermostat in thermostats:
        state = "paired" if thermostat.has_secret_and_uuid else "unpaired"
        line = f"{thermostat.serial or '<no serial>'} {state}"
        pending = _pending_summary(thermostat)
        if pending:
            line += f" pending: {pending}"
        typer.echo(line)


@app.command("show")
def show(ctx: typer.Context, serial: str) -> None:
    """Print everything stored for the thermostat SERIAL."""
    try:
        thermostat = _build_service(ctx).thermostat(serial)
    except EcoctlError as exc:
        raise _fail(exc) from None

    typer.echo(f"Serial: {thermostat.serial}")
    typer.echo(f"Uuid: {thermostat.uuid or '-'}")
    typer.echo(f"Secret key: {'stored' if thermostat.secret_key else '-'}")
    for label, value in (
        ("Name", thermostat.name),
        ("Temperature", thermostat.temperature),
        ("Settings", thermostat.settings),
        ("Schedule 1", thermostat.schedule1),
        ("Schedule 2", thermostat.schedule2),
        ("Schedule 3", thermostat.schedule3),
        ("Battery level", thermostat.battery_level),
    ):
        typer.echo(f"{label}: {value or '-'}")
    pending = _pending_summary(thermostat)
    if pending:
        typer.echo(f"Pending: {pending}")


@app.command("forget")
def forget(ctx: typer.Context, serial: str) -> None:
    """Remove the thermostat SERIAL, including its secret key, from the registry."""
    try:
        removed = _build_service(ctx).forget(serial)
    except EcoctlError as exc:
        raise _fail(exc) from None
    if removed:
        typer.echo(f"Forgot {serial}")
    else:
        typer.echo(f"No thermostat with serial '{serial}'")


@app.command("set-temperature")
def set_temperature(ctx: typer.Context, serial: str, degrees: float) -> None:
    """Store a set-point for SERIAL to be written on the next write session."""
    try:
        _build_service(ctx).set_temperature(serial, degrees)
    except EcoctlError as exc:
        raise _fail(exc) from None
    typer.echo(f"Pending set-point for {serial}: {degrees:g}C")


@app.command("set-vacation")
def set_vacation(
    ctx: typer.Context,
    serial: str,
    start: datetime = typer.Argument(..., formats=_DATETIME_FORMATS),
    end: datetime = typer.Argument(..., formats=_DATETIME_FORMATS),
) -> None:
    """Store a vacation period for SERIAL to be written on the next write session."""
    try:
        _build_service(ctx).set_vacation(serial, start, end)
    except EcoctlError as exc:
        raise _fail(exc) from None
    typer.echo(f"Pending vacation for {serial}: {start.isoformat()} -> {end.isoformat()}")


@app.command("cancel-vacation")
def cancel_vacation(ctx: typer.Context, serial: str) -> None:
    """Store a vacation cancellation for SERIAL."""
    try:
        _build_service(ctx).cancel_vacation(serial)
    except EcoctlError as exc:
        raise _fail(exc) from None
    typer.echo(f"Pending vacation cancellation for {serial}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
