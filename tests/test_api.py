from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from ecoctl.api import (
    AuthenticationRequired,
    Client,
    PendingChangeError,
    Settings,
    Thermostat,
    UnknownThermostatError,
)
from ecoctl.core import uuids
from ecoctl.core.model import Characteristic, Peripheral, Service


class FakeAccessor:
    """Thermostat that exposes its secret key and every data characteristic."""

    def __init__(self, *, expose_secret: bool = True) -> None:
        self.main = Service(uuid=uuids.MAIN_SERVICE, handle=1)
        self.battery = Service(uuid=uuids.BATTERY_SERVICE, handle=2)
        self.expose_secret = expose_secret

    async def connect(self, name: str, transport_id: str | None) -> Peripheral:
        return Peripheral(uuid="AA:BB:CC:DD:EE:FF", name=name, services=(self.main, self.battery))

    async def discover_characteristics(self, service: Service) -> list[Characteristic]:
        if service == self.battery:
            return [Characteristic(uuid=uuids.BATTERY_LEVEL, handle=20)]
        found = [
            Characteristic(uuid=uuids.PIN_CODE, handle=10),
            Characteristic(uuid=uuids.TEMPERATURE, handle=11),
        ]
        if self.expose_secret:
            found.append(Characteristic(uuid=uuids.SECRET_KEY, handle=12))
        return found

    async def read_characteristic_value(self, service: Service, characteristic: Characteristic) -> bytes:
        return bytes([characteristic.handle])

    async def write_characteristic_value(self, service, characteristic, value) -> None:
        return None

    async def disconnect(self) -> None:
        return None


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(registry_path=tmp_path / "thermostats.xml")


def test_public_client_read_and_list(settings: Settings) -> None:
    client = Client(settings=settings, accessor=FakeAccessor())

    thermostat = client.read("T1")
    assert isinstance(thermostat, Thermostat)
    assert thermostat.secret_key == "0C"
    assert thermostat.temperature == "0B"
    assert thermostat.battery_level == "14"
    assert thermostat.name is None

    assert [t.serial for t in client.list_thermostats()] == ["T1"]
    assert client.get_thermostat("T1").uuid == "AA:BB:CC:DD:EE:FF"


def test_public_client_requires_button_for_new_device(settings: Settings) -> None:
    client = Client(settings=settings, accessor=FakeAccessor(expose_secret=False))

    with pytest.raises(AuthenticationRequired):
        client.read("T1")
    assert client.list_thermostats() == []


def test_public_client_pending_changes(settings: Settings) -> None:
    client = Client(settings=settings, accessor=FakeAccessor())
    client.read("T1")

    client.set_temperature("T1", 19.5)
    client.set_vacation("T1", datetime(2026, 12, 20), datetime(2026, 12, 27))
    stored = Client(settings=settings).get_thermostat("T1")
    assert stored.updated_set_point_temperature.degrees_celsius == 19.5
    assert stored.has_updated_vacation_period is True
    assert stored.updated_vacation_period.end == datetime(2026, 12, 27)
    assert stored.secret_key == "0C"

    client.cancel_vacation("T1")
    stored = client.get_thermostat("T1")
    assert stored.has_updated_vacation_period is True
    assert stored.updated_vacation_period is None


def test_public_client_forget(settings: Settings) -> None:
    client = Client(settings=settings, accessor=FakeAccessor())
    client.read("T1")

    assert client.forget("T1") is True
    assert client.forget("T1") is False
    with pytest.raises(UnknownThermostatError):
        client.get_thermostat("T1")


def test_pending_change_for_unknown_thermostat(settings: Settings) -> None:
    client = Client(settings=settings)
    with pytest.raises(UnknownThermostatError):
        client.set_temperature("T1", 20.0)


def test_vacation_mixing_timezones_is_rejected(settings: Settings) -> None:
    client = Client(settings=settings, accessor=FakeAccessor())
    client.read("T1")

    with pytest.raises(PendingChangeError):
        client.set_vacation("T1", datetime(2026, 12, 20, tzinfo=timezone.utc), datetime(2026, 12, 27))
    assert client.get_thermostat("T1").has_updated_vacation_period is False
