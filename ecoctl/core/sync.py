"""Pairing and read-out session against one thermostat.

The session is an explicit state machine. Each state handler performs exactly
one step of the exchange and returns the next state; `TRANSITIONS` lists every
move the session may make, and any failure moves it to `ABORTED`.

The device only answers privileged reads after the pin code characteristic
has been written with four zero bytes, and it only exposes the secret key
characteristic in the session that follows a press of its timer button. The
unlock write is issued once and never retried: its effect on a repeated write
is not known for every firmware revision.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from ecoctl.core import uuids
from ecoctl.core.errors import AuthenticationRequired, CompatibilityError
from ecoctl.core.model import Characteristic, Peripheral, Service, Thermostat
from ecoctl.core.registry import Registry
from ecoctl.transports.base import PeripheralAccessor

LOGGER = logging.getLogger(__name__)

UNLOCK_VALUE = bytes(4)


class SyncState(Enum):
    CONNECT = "connect"
    DISCOVER_MAIN_SERVICE = "discover-main-service"
    DISCOVER_BATTERY_SERVICE = "discover-battery-service"
    ENUMERATE_MAIN = "enumerate-main"
    AUTHENTICATION_GATE = "authentication-gate"
    UNLOCK = "unlock"
    ENUMERATE_BATTERY = "enumerate-battery"
    CAPTURE = "capture"
    UPDATE_IDENTITY = "update-identity"
    DISCONNECT = "disconnect"
    PERSIST = "persist"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({SyncState.DONE, SyncState.ABORTED})

TRANSITIONS: dict[SyncState, frozenset[SyncState]] = {
    SyncState.CONNECT: frozenset({SyncState.DISCOVER_MAIN_SERVICE, SyncState.ABORTED}),
    SyncState.DISCOVER_MAIN_SERVICE: frozenset({SyncState.DISCOVER_BATTERY_SERVICE, SyncState.ABORTED}),
    SyncState.DISCOVER_BATTERY_SERVICE: frozenset({SyncState.ENUMERATE_MAIN, SyncState.ABORTED}),
    SyncState.ENUMERATE_MAIN: frozenset({SyncState.AUTHENTICATION_GATE, SyncState.ABORTED}),
    SyncState.AUTHENTICATION_GATE: frozenset({SyncState.UNLOCK, SyncState.ABORTED}),
    SyncState.UNLOCK: frozenset({SyncState.ENUMERATE_BATTERY, SyncState.ABORTED}),
    SyncState.ENUMERATE_BATTERY: frozenset({SyncState.CAPTURE, SyncState.ABORTED}),
    # Missing optional characteristics leave a field empty; only transport failures abort.
    SyncState.CAPTURE: frozenset({SyncState.UPDATE_IDENTITY, SyncState.ABORTED}),
    SyncState.UPDATE_IDENTITY: frozenset({SyncState.DISCONNECT}),
    SyncState.DISCONNECT: frozenset({SyncState.PERSIST, SyncState.ABORTED}),
    SyncState.PERSIST: frozenset({SyncState.DONE, SyncState.ABORTED}),
    SyncState.DONE: frozenset(),
    SyncState.ABORTED: frozenset(),
}

# (record attribute, characteristic uuid, read from battery service)
CAPTURED_FIELDS: tuple[tuple[str, str, bool], ...] = (
    ("battery_level", uuids.BATTERY_LEVEL, True),
    ("name", uuids.DEVICE_NAME, False),
    ("temperature", uuids.TEMPERATURE, False),
    ("settings", uuids.SETTINGS, False),
    ("schedule1", uuids.SCHEDULE_1, False),
    ("schedule2", uuids.SCHEDULE_2, False),
    ("schedule3", uuids.SCHEDULE_3, False),
)


def hex_string(data: bytes) -> str:
    """Encode bytes as uppercase hyphen-separated hex, e.g. ``01-AF-3C``."""
    return "-".join(f"{byte:02X}" for byte in data)


def find_service(peripheral: Peripheral, uuid: str) -> Service | None:
    return next((s for s in peripheral.services if uuids.same_uuid(s.uuid, uuid)), None)


def find_characteristic(characteristics: list[Characteristic], uuid: str) -> Characteristic | None:
    return next((c for c in characteristics if uuids.same_uuid(c.uuid, uuid)), None)


class SyncSession:
    """One connect, unlock, read and persist session for a single serial."""

    def __init__(self, serial: str, *, registry: Registry, accessor: PeripheralAccessor) -> None:
        self.serial = serial
        self.registry = registry
        self.accessor = accessor
        self.state = SyncState.CONNECT
        self.history: list[SyncState] = [SyncState.CONNECT]
        self.record = registry.checkout(serial)

        self._already_paired = registry.has_secret_and_uuid_for(serial)
        self._peripheral: Peripheral | None = None
        self._main_service: Service | None = None
        self._battery_service: Service | None = None
        self._main_characteristics: list[Characteristic] = []
        self._battery_characteristics: list[Characteristic] = []
        self._secret_characteristic: Characteristic | None = None

        self._handlers: dict[SyncState, Callable[[], Awaitable[SyncState]]] = {
            SyncState.CONNECT: self._connect,
            SyncState.DISCOVER_MAIN_SERVICE: self._discover_main_service,
            SyncState.DISCOVER_BATTERY_SERVICE: self._discover_battery_service,
            SyncState.ENUMERATE_MAIN: self._enumerate_main,
            SyncState.AUTHENTICATION_GATE: self._authentication_gate,
            SyncState.UNLOCK: self._unlock,
            SyncState.ENUMERATE_BATTERY: self._enumerate_battery,
            SyncState.CAPTURE: self._capture,
            SyncState.UPDATE_IDENTITY: self._update_identity,
            SyncState.DISCONNECT: self._disconnect,
            SyncState.PERSIST: self._persist,
        }

    def _move(self, target: SyncState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal sync transition {self.state.value} -> {target.value}")
        LOGGER.debug("%s: %s -> %s", self.serial, self.state.value, target.value)
        self.state = target
        self.history.append(target)

    async def run(self) -> Thermostat:
        """Drive the session to completion and return the persisted record.

        Any error aborts the session; the registry is neither changed in
        memory nor written unless the session reached `PERSIST`.
        """
        if self.state is not SyncState.CONNECT:
            raise RuntimeError(f"Sync session for {self.serial} was already run")

        while self.state not in TERMINAL_STATES:
            try:
                next_state = await self._handlers[self.state]()
            except Exception:
                LOGGER.debug("%s: aborted in %s", self.serial, self.state.value)
                self._move(SyncState.ABORTED)
                raise
            self._move(next_state)

        return self.record

    def _connected_peripheral(self) -> Peripheral:
        if self._peripheral is None:
            raise RuntimeError(f"Sync session for {self.serial} is not connected")
        return self._peripheral

    def _discovered_main(self) -> Service:
        if self._main_service is None:
            raise RuntimeError(f"Main service of {self.serial} was not discovered")
        return self._main_service

    def _discovered_battery(self) -> Service:
        if self._battery_service is None:
            raise RuntimeError(f"Battery service of {self.serial} was not discovered")
        return self._battery_service

    async def _connect(self) -> SyncState:
        LOGGER.info("Connecting to %s", self.serial)
        self._peripheral = await self.accessor.connect(self.serial, self.record.uuid)
        return SyncState.DISCOVER_MAIN_SERVICE

    def _required_service(self, uuid: str) -> Service:
        service = find_service(self._connected_peripheral(), uuid)
        if service is None:
            raise CompatibilityError(f"Did not find service with UUID {uuid}")
        return service

    async def _discover_main_service(self) -> SyncState:
        self._main_service = self._required_service(uuids.MAIN_SERVICE)
        return SyncState.DISCOVER_BATTERY_SERVICE

    async def _discover_battery_service(self) -> SyncState:
        self._battery_service = self._required_service(uuids.BATTERY_SERVICE)
        return SyncState.ENUMERATE_MAIN

    async def _enumerate_main(self) -> SyncState:
        self._main_characteristics = await self.accessor.discover_characteristics(self._discovered_main())
        LOGGER.debug("%s: %d main service characteristics", self.serial, len(self._main_characteristics))
        return SyncState.AUTHENTICATION_GATE

    async def _authentication_gate(self) -> SyncState:
        self._secret_characteristic = find_characteristic(self._main_characteristics, uuids.SECRET_KEY)
        if self._secret_characteristic is None and not self._already_paired:
            raise AuthenticationRequired(self.serial)
        if self._secret_characteristic is None:
            LOGGER.debug("%s: secret key not exposed, using stored one", self.serial)
        return SyncState.UNLOCK

    async def _unlock(self) -> SyncState:
        main_service = self._discovered_main()
        pin_code = find_characteristic(self._main_characteristics, uuids.PIN_CODE)
        if pin_code is None:
            raise CompatibilityError(f"Did not find pin code characteristic ({uuids.PIN_CODE})")

        LOGGER.info("Writing pin code to %s", self.serial)
        await self.accessor.write_characteristic_value(main_service, pin_code, UNLOCK_VALUE)
        return SyncState.ENUMERATE_BATTERY

    async def _enumerate_battery(self) -> SyncState:
        self._battery_characteristics = await self.accessor.discover_characteristics(self._discovered_battery())
        LOGGER.debug("%s: %d battery service characteristics", self.serial, len(self._battery_characteristics))
        return SyncState.CAPTURE

    async def _read_optional(self, service: Service, characteristics: list[Characteristic], uuid: str) -> str | None:
        characteristic = find_characteristic(characteristics, uuid)
        if characteristic is None:
            LOGGER.info("%s: characteristic %s not exposed", self.serial, uuid)
            return None
        LOGGER.debug("%s: reading characteristic %s", self.serial, uuid)
        return hex_string(await self.accessor.read_characteristic_value(service, characteristic))

    async def _capture(self) -> SyncState:
        main_service = self._discovered_main()
        battery_service = self._discovered_battery()
        if self._secret_characteristic is not None:
            LOGGER.debug("%s: reading secret key", self.serial)
            raw = await self.accessor.read_characteristic_value(main_service, self._secret_characteristic)
            if raw:
                self.record.secret_key = hex_string(raw)
            else:
                LOGGER.warning("%s: secret key characteristic returned no data, keeping stored key", self.serial)

        for attr, uuid, on_battery in CAPTURED_FIELDS:
            if on_battery:
                value = await self._read_optional(battery_service, self._battery_characteristics, uuid)
            else:
                value = await self._read_optional(main_service, self._main_characteristics, uuid)
            setattr(self.record, attr, value)
        return SyncState.UPDATE_IDENTITY

    async def _update_identity(self) -> SyncState:
        peripheral = self._connected_peripheral()
        if self.record.uuid != peripheral.uuid:
            LOGGER.info("%s: transport id is now %s", self.serial, peripheral.uuid)
        self.record.uuid = peripheral.uuid
        return SyncState.DISCONNECT

    async def _disconnect(self) -> SyncState:
        await self.accessor.disconnect()
        return SyncState.PERSIST

    async def _persist(self) -> SyncState:
        self.registry.commit(self.record)
        self.registry.save()
        LOGGER.info("Saved %s to %s", self.serial, self.registry.path)
        return SyncState.DONE
