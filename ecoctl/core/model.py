"""Core data models used across registry, sync workflow, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ecoctl.core.errors import PendingChangeError

MIN_SET_POINT_C = 10.0
MAX_SET_POINT_C = 40.0
SET_POINT_STEP_C = 0.5


@dataclass(frozen=True)
class Temperature:
    degrees_celsius: float

    @classmethod
    def set_point(cls, degrees_celsius: float) -> Temperature:
        """Validate a set-point the thermostat can represent."""
        if not MIN_SET_POINT_C <= degrees_celsius <= MAX_SET_POINT_C:
            raise PendingChangeError(
                f"Set-point {degrees_celsius} is outside {MIN_SET_POINT_C}-{MAX_SET_POINT_C} degrees"
            )
        steps = degrees_celsius / SET_POINT_STEP_C
        if steps != int(steps):
            raise PendingChangeError(
                f"Set-point {degrees_celsius} is not a multiple of {SET_POINT_STEP_C} degrees"
            )
        return cls(degrees_celsius=float(degrees_celsius))


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if (self.start.utcoffset() is None) != (self.end.utcoffset() is None):
            raise PendingChangeError(
                f"Vacation period mixes timestamps with and without a timezone "
                f"({self.start.isoformat()}, {self.end.isoformat()})"
            )
        if self.start >= self.end:
            raise PendingChangeError(
                f"Vacation period must end after it starts ({self.start.isoformat()} >= {self.end.isoformat()})"
            )


@dataclass
class Thermostat:
    """Everything known about one thermostat, keyed by its serial.

    An empty serial marks a hand-written entry that cannot be looked up.

    Captured payloads are kept as the hex strings read from the device; they
    are decoded elsewhere.
    """

    serial: str
    uuid: str | None = None
    secret_key: str | None = None
    name: str | None = None
    temperature: str | None = None
    settings: str | None = None
    schedule1: str | None = None
    schedule2: str | None = None
    schedule3: str | None = None
    battery_level: str | None = None
    updated_set_point_temperature: Temperature | None = None
    has_updated_vacation_period: bool = False
    updated_vacation_period: Period | None = None

    @property
    def has_secret_and_uuid(self) -> bool:
        return bool(self.secret_key) and bool(self.uuid)

    @property
    def has_pending_changes(self) -> bool:
        return self.updated_set_point_temperature is not None or self.has_updated_vacation_period


@dataclass(frozen=True)
class Characteristic:
    uuid: str
    handle: int


@dataclass(frozen=True)
class Service:
    uuid: str
    handle: int


@dataclass(frozen=True)
class Peripheral:
    """A connected thermostat as seen by the transport."""

    uuid: str
    name: str | None
    services: tuple[Service, ...] = field(default_factory=tuple)
