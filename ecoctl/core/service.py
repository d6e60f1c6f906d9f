"""Service layer used by CLI and the public API."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ecoctl.core.config import Settings, load_settings
from ecoctl.core.errors import UnknownThermostatError
from ecoctl.core.model import Period, Temperature, Thermostat
from ecoctl.core.registry import Registry
from ecoctl.core.sync import SyncSession
from ecoctl.transports.base import PeripheralAccessor
from ecoctl.transports.ble_gatt import BLEGATTAccessor

LOGGER = logging.getLogger(__name__)


class ThermostatService:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        accessor: PeripheralAccessor | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self._accessor = accessor

    def _new_accessor(self) -> PeripheralAccessor:
        if self._accessor is not None:
            return self._accessor
        return BLEGATTAccessor(
            connect_timeout_s=self.settings.connect_timeout_s,
            scan_timeout_s=self.settings.scan_timeout_s,
        )

    def load_registry(self) -> Registry:
        return Registry.load(self.settings.registry_path)

    def list_thermostats(self) -> list[Thermostat]:
        return list(self.load_registry())

    def thermostat(self, serial: str) -> Thermostat:
        return _known(self.load_registry(), serial)

    async def read_async(self, serial: str) -> Thermostat:
        session = SyncSession(serial, registry=self.load_registry(), accessor=self._new_accessor())
        return await session.run()

    def read(self, serial: str) -> Thermostat:
        """Pair with or refresh one thermostat and persist what was read."""
        return asyncio.run(self.read_async(serial))

    def forget(self, serial: str) -> bool:
        registry = self.load_registry()
        if registry.get(serial) is None:
            return False
        registry.remove_with_serial(serial)
        registry.save()
        LOGGER.info("Forgot %s", serial)
        return True

    def _update_known(
        self,
        serial: str,
        *,
        set_point: Temperature | None = None,
        vacation: Period | None = None,
        cancel_vacation: bool = False,
    ) -> Thermostat:
        registry = self.load_registry()
        _known(registry, serial)
        thermostat = registry.checkout(serial)
        if set_point is not None:
            thermostat.updated_set_point_temperature = set_point
        if vacation is not None or cancel_vacation:
            thermostat.has_updated_vacation_period = True
            thermostat.updated_vacation_period = vacation
        registry.commit(thermostat)
        registry.save()
        return thermostat

    def set_temperature(self, serial: str, degrees_celsius: float) -> Thermostat:
        return self._update_known(serial, set_point=Temperature.set_point(degrees_celsius))

    def set_vacation(self, serial: str, start: datetime, end: datetime) -> Thermostat:
        return self._update_known(serial, vacation=Period(start=start, end=end))

    def cancel_vacation(self, serial: str) -> Thermostat:
        return self._update_known(serial, cancel_vacation=True)


def _known(registry: Registry, serial: str) -> Thermostat:
    thermostat = registry.get(serial)
    if thermostat is None:
        raise UnknownThermostatError(
            f"No thermostat with serial '{serial}'. Use 'ecoctl read {serial}' first."
        )
    return thermostat
