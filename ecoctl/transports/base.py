"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from ecoctl.core.model import Characteristic, Peripheral, Service


class PeripheralAccessor(Protocol):
    async def connect(self, name: str, transport_id: str | None) -> Peripheral:
        """Connect by transport id when known, otherwise find the peripheral by name."""

    async def discover_characteristics(self, service: Service) -> list[Characteristic]:
        """Return the characteristics of a service on the connected peripheral."""

    async def read_characteristic_value(self, service: Service, characteristic: Characteristic) -> bytes:
        """Read the raw value of a characteristic."""

    async def write_characteristic_value(
        self,
        service: Service,
        characteristic: Characteristic,
        value: bytes,
    ) -> None:
        """Write a raw value to a characteristic, waiting for the response."""

    async def disconnect(self) -> None:
        """Release the connection."""
