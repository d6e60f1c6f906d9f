"""Stable public API for building tooling on top of ecoctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from datetime import datetime

from ecoctl.core.config import Settings, load_settings
from ecoctl.core.errors import (
    AuthenticationRequired,
    CompatibilityError,
    ConfigError,
    EcoctlError,
    PendingChangeError,
    PersistenceError,
    RegistryFormatError,
    TransportConnectError,
    TransportError,
    TransportReadError,
    TransportWriteError,
    UnknownThermostatError,
)
from ecoctl.core.model import Characteristic, Peripheral, Period, Service, Temperature, Thermostat
from ecoctl.core.registry import Registry
from ecoctl.core.service import ThermostatService
from ecoctl.core.sync import SyncSession, SyncState
from ecoctl.transports.base import PeripheralAccessor
from ecoctl.transports.ble_gatt import BLEGATTAccessor

__all__ = [
    "AuthenticationRequired",
    "CompatibilityError",
    "ConfigError",
    "EcoctlError",
    "PendingChangeError",
    "PersistenceError",
    "RegistryFormatError",
    "TransportError",
    "TransportConnectError",
    "TransportReadError",
    "TransportWriteError",
    "UnknownThermostatError",
    "Characteristic",
    "Peripheral",
    "Period",
    "Service",
    "Temperature",
    "Thermostat",
    "Registry",
    "Settings",
    "SyncSession",
    "SyncState",
    "PeripheralAccessor",
    "BLEGATTAccessor",
    "load_settings",
    "Client",
]


class Client:
    """Public client for interacting with ecoctl core capabilities.

    A `Client` instance wraps settings resolution, the thermostat registry and
    BLE read-out sessions behind a stable API intended for third-party tools
    (home automation bridges/services/scripts).
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        accessor: PeripheralAccessor | None = None,
    ) -> None:
        self._service = ThermostatService(settings=settings, accessor=accessor)

    @property
    def settings(self) -> Settings:
        return self._service.settings

    def list_thermostats(self) -> list[Thermostat]:
        return self._service.list_thermostats()

    def get_thermostat(self, serial: str) -> Thermostat:
        return self._service.thermostat(serial)

    def read(self, serial: str) -> Thermostat:
        return self._service.read(serial)

    async def read_async(self, serial: str) -> Thermostat:
        return await self._service.read_async(serial)

    def forget(self, serial: str) -> bool:
        return self._service.forget(serial)

    def set_temperature(self, serial: str, degrees_celsius: float) -> Thermostat:
        return self._service.set_temperature(serial, degrees_celsius)

    def set_vacation(self, serial: str, start: datetime, end: datetime) -> Thermostat:
        return self._service.set_vacation(serial, start, end)

    def cancel_vacation(self, serial: str) -> Thermostat:
        return self._service.cancel_vacation(serial)
