"""BLE GATT accessor implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ecoctl.core.errors import (
    TransportConnectError,
    TransportError,
    TransportReadError,
    TransportWriteError,
)
from ecoctl.core.model import Characteristic, Peripheral, Service

LOGGER = logging.getLogger(__name__)


def _import_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportConnectError(
            "BLE transport requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


class BLEGATTAccessor:
    """Peripheral accessor backed by a single bleak client.

    Services and characteristics are addressed by handle so that duplicated
    UUIDs on a peripheral cannot be confused.
    """

    def __init__(self, *, connect_timeout_s: float = 20.0, scan_timeout_s: float = 10.0) -> None:
        self.connect_timeout_s = connect_timeout_s
        self.scan_timeout_s = scan_timeout_s
        self._client: Any = None

    async def connect(self, name: str, transport_id: str | None) -> Peripheral:
        bleak = _import_bleak()
        if self._client is not None:
            raise TransportConnectError("Accessor is already connected")

        target: Any = transport_id
        if not target:
            LOGGER.info("Scanning for a peripheral named like %s", name)
            try:
                target = await bleak.BleakScanner.find_device_by_filter(
                    lambda device, _adv: name in (device.name or ""),
                    timeout=self.scan_timeout_s,
                )
            except (bleak.exc.BleakError, OSError) as exc:
                raise TransportConnectError(f"BLE scan for {name} failed: {exc}") from exc
            if target is None:
                raise TransportConnectError(f"No BLE peripheral named like {name} found")

        client = bleak.BleakClient(target, timeout=self.connect_timeout_s)
        try:
            await client.connect()
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            raise TransportConnectError(f"BLE connect failed for {name}: {exc}") from exc
        if not client.is_connected:
            try:
                await client.disconnect()
            except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
                LOGGER.debug("Releasing half-open client for %s failed: %s", name, exc)
            raise TransportConnectError(f"BLE connect failed for {name}")

        self._client = client
        services = tuple(Service(uuid=str(s.uuid), handle=s.handle) for s in client.services)
        LOGGER.info("Connected to %s at %s (%d services)", name, client.address, len(services))
        return Peripheral(
            uuid=client.address,
            name=getattr(target, "name", None) or name,
            services=services,
        )

    def _connected_client(self) -> Any:
        if self._client is None:
            raise TransportError("Accessor is not connected")
        return self._client

    async def discover_characteristics(self, service: Service) -> list[Characteristic]:
        client = self._connected_client()
        gatt_service = client.services.get_service(service.handle)
        if gatt_service is None:
            raise TransportReadError(f"Service {service.uuid} disappeared from {client.address}")
        return [Characteristic(uuid=str(c.uuid), handle=c.handle) for c in gatt_service.characteristics]

    async def read_characteristic_value(self, service: Service, characteristic: Characteristic) -> bytes:
        bleak = _import_bleak()
        client = self._connected_client()
        try:
            data = await client.read_gatt_char(characteristic.handle)
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            raise TransportReadError(f"BLE read of {characteristic.uuid} failed: {exc}") from exc
        return bytes(data)

    async def write_characteristic_value(
        self,
        service: Service,
        characteristic: Characteristic,
        value: bytes,
    ) -> None:
        bleak = _import_bleak()
        client = self._connected_client()
        try:
            await client.write_gatt_char(characteristic.handle, value, response=True)
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            raise TransportWriteError(f"BLE write of {characteristic.uuid} failed: {exc}") from exc

    async def disconnect(self) -> None:
        bleak = _import_bleak()
        client = self._connected_client()
        self._client = None
        try:
            await client.disconnect()
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            raise TransportError(f"BLE disconnect failed: {exc}") from exc
