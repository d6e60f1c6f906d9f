from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ecoctl import cli
from ecoctl.core.errors import AuthenticationRequired, CompatibilityError, UnknownThermostatError
from ecoctl.core.model import Period, Temperature, Thermostat


class FakeService:
    def __init__(self, settings=None) -> None:
        self.settings = settings
        self.thermostats = {
            "T1": Thermostat(serial="T1", uuid="AA:BB", secret_key="11-22", name="45-63"),
            "T2": Thermostat(
                serial="T2",
                updated_set_point_temperature=Temperature(degrees_celsius=21.5),
                has_updated_vacation_period=True,
            ),
        }

    def list_thermostats(self):
        return list(self.thermostats.values())

    def thermostat(self, serial):
        if serial not in self.thermostats:
            raise UnknownThermostatError(f"No thermostat with serial '{serial}'.")
        return self.thermostats[serial]

    def read(self, serial):
        return Thermostat(serial=serial, uuid="CC:DD", secret_key="33")

    def forget(self, serial):
        return self.thermostats.pop(serial, None) is not None

    def set_temperature(self, serial, degrees_celsius):
        thermostat = self.thermostat(serial)
        thermostat.updated_set_point_temperature = Temperature.set_point(degrees_celsius)
        return thermostat

    def set_vacation(self, serial, start, end):
        thermostat = self.thermostat(serial)
        thermostat.has_updated_vacation_period = True
        thermostat.updated_vacation_period = Period(start=start, end=end)
        return thermostat

    def cancel_vacation(self, serial):
        thermostat = self.thermostat(serial)
        thermostat.has_updated_vacation_period = True
        thermostat.updated_vacation_period = None
        return thermostat


runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("ECOCTL_REGISTRY", raising=False)


def test_list_command(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["list"])
    assert result.exit_code == 0
    assert "T1 paired" in result.stdout
    assert "T2 unpaired pending: set-point 21.5C, cancel vacation" in result.stdout


def test_read_command(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["read", "T9"])
    assert result.exit_code == 0
    assert "Done" in result.stderr


def test_read_command_asks_for_timer_button(monkeypatch):
    class LockedService(FakeService):
        def read(self, serial):
            raise AuthenticationRequired(serial)

    monkeypatch.setattr(cli, "ThermostatService", LockedService)
    result = runner.invoke(cli.app, ["read", "T9"])
    assert result.exit_code == cli.AUTH_REQUIRED_EXIT_CODE
    assert "push the timer button" in result.stderr
    assert "Traceback" not in result.stderr


def test_read_command_error_is_clean(monkeypatch):
    class IncompatibleService(FakeService):
        def read(self, serial):
            raise CompatibilityError("Did not find service with UUID 10020000")

    monkeypatch.setattr(cli, "ThermostatService", IncompatibleService)
    result = runner.invoke(cli.app, ["read", "T9"])
    assert result.exit_code == 1
    assert "Error: Did not find service with UUID 10020000" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_show_command_hides_secret(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["show", "T1"])
    assert result.exit_code == 0
    assert "Uuid: AA:BB" in result.stdout
    assert "Secret key: stored" in result.stdout
    assert "11-22" not in result.stdout
    assert "Name: 45-63" in result.stdout


def test_show_unknown_serial_fails(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["show", "nope"])
    assert result.exit_code == 1
    assert "Error: No thermostat with serial 'nope'" in result.stderr


def test_forget_command(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["forget", "T1"])
    assert result.exit_code == 0
    assert "Forgot T1" in result.stdout

    result = runner.invoke(cli.app, ["forget", "nope"])
    assert result.exit_code == 0
    assert "No thermostat with serial 'nope'" in result.stdout


def test_set_temperature_rejects_off_step_value(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["set-temperature", "T1", "21.3"])
    assert result.exit_code == 1
    assert "Error:" in result.stderr

    result = runner.invoke(cli.app, ["set-temperature", "T1", "21.5"])
    assert result.exit_code == 0
    assert "Pending set-point for T1: 21.5C" in result.stdout


def test_set_vacation_command(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["set-vacation", "T1", "2026-12-20T10:00", "2026-12-27T18:00"])
    assert result.exit_code == 0
    assert "2026-12-20T10:00:00 -> 2026-12-27T18:00:00" in result.stdout

    result = runner.invoke(cli.app, ["set-vacation", "T1", "2026-12-27", "2026-12-20"])
    assert result.exit_code == 1
    assert "must end after it starts" in result.stderr


def test_cancel_vacation_command(monkeypatch):
    monkeypatch.setattr(cli, "ThermostatService", FakeService)
    result = runner.invoke(cli.app, ["cancel-vacation", "T1"])
    assert result.exit_code == 0
    assert "Pending vacation cancellation for T1" in result.stdout


def test_end_to_end_with_real_service(monkeypatch, tmp_path: Path):
    registry = tmp_path / "thermostats.xml"
    result = runner.invoke(cli.app, ["--registry", str(registry), "list"])
    assert result.exit_code == 0
    assert "No thermostats registered" in result.stdout

    result = runner.invoke(cli.app, ["--registry", str(registry), "set-temperature", "T1", "21"])
    assert result.exit_code == 1
    assert "ecoctl read T1" in result.stderr
    assert not registry.exists()


def test_invalid_config_is_reported(tmp_path: Path):
    config = tmp_path / "config.yaml"
    config.write_text("bogus: 1\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["--config", str(config), "list"])
    assert result.exit_code == 1
    assert "Schema validation failed" in result.stderr


def test_vacation_arguments_parse_as_datetimes(monkeypatch):
    seen = {}

    class CapturingService(FakeService):
        def set_vacation(self, serial, start, end):
            seen["period"] = (start, end)
            return super().set_vacation(serial, start, end)

    monkeypatch.setattr(cli, "ThermostatService", CapturingService)
    runner.invoke(cli.app, ["set-vacation", "T1", "2026-12-20", "2026-12-27 18:00"])
    assert seen["period"] == (datetime(2026, 12, 20), datetime(2026, 12, 27, 18, 0))
