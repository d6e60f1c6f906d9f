"""Durable per-serial registry of thermostats, stored as one XML document."""

from __future__ import annotations

import logging
import os
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from copy import deepcopy
from datetime import datetime
from pathlib import Path

from ecoctl.core.errors import PendingChangeError, PersistenceError, RegistryFormatError
from ecoctl.core.model import Period, Temperature, Thermostat

LOGGER = logging.getLogger(__name__)

_ROOT_TAG = "Thermostats"
_RECORD_TAG = "Thermostat"
_TEXT_FIELDS = (
    ("Serial", "serial"),
    ("Uuid", "uuid"),
    ("SecretKey", "secret_key"),
    ("Name", "name"),
    ("Temperature", "temperature"),
    ("Settings", "settings"),
    ("Schedule1", "schedule1"),
    ("Schedule2", "schedule2"),
    ("Schedule3", "schedule3"),
    ("BatteryLevel", "battery_level"),
)
_SET_POINT_TAG = "UpdatedSetPointTemperature"
_HAS_VACATION_TAG = "HasUpdatedVacationPeriod"
_VACATION_TAG = "UpdatedVacationPeriod"


class Registry:
    """Ordered collection of thermostats loaded and saved as a single unit.

    Only one process is expected to write the backing file at a time; nothing
    here locks it.
    """

    def __init__(self, path: Path, thermostats: list[Thermostat] | None = None) -> None:
        self.path = path
        self.thermostats: list[Thermostat] = list(thermostats or [])

    @classmethod
    def load(cls, path: Path) -> Registry:
        if not path.exists():
            LOGGER.debug("No registry at %s, starting empty", path)
            return cls(path)

        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as exc:
            raise RegistryFormatError(f"Invalid XML in registry {path}: {exc}") from exc
        except OSError as exc:
            raise RegistryFormatError(f"Could not read registry {path}: {exc}") from exc

        if root.tag != _ROOT_TAG:
            raise RegistryFormatError(f"Registry {path} must have <{_ROOT_TAG}> at root, found <{root.tag}>")

        thermostats: list[Thermostat] = []
        seen: set[str] = set()
        for element in root.findall(_RECORD_TAG):
            thermostat = _decode_thermostat(element, source=path)
            if not thermostat.serial:
                LOGGER.warning(
                    "Registry %s has a <%s> without <Serial>; it is kept but cannot be looked up",
                    path,
                    _RECORD_TAG,
                )
            elif thermostat.serial in seen:
                raise RegistryFormatError(f"Duplicate serial '{thermostat.serial}' in registry {path}")
            else:
                seen.add(thermostat.serial)
            thermostats.append(thermostat)

        LOGGER.debug("Loaded %d thermostat(s) from %s", len(thermostats), path)
        return cls(path, thermostats)

    def __iter__(self) -> Iterator[Thermostat]:
        return iter(self.thermostats)

    def __len__(self) -> int:
        return len(self.thermostats)

    def serials(self) -> list[str]:
        return [t.serial for t in self.thermostats]

    def get(self, serial: str) -> Thermostat | None:
        if not serial:
            return None
        for thermostat in self.thermostats:
            if thermostat.serial == serial:
                return thermostat
        return None

    def record_with_serial(self, serial: str) -> Thermostat:
        """Return the record for `serial`, creating and appending it if unknown."""
        thermostat = self.get(serial)
        if thermostat is None:
            thermostat = Thermostat(serial=serial)
            self.thermostats.append(thermostat)
        return thermostat

    def remove_with_serial(self, serial: str) -> None:
        if not serial:
            return
        self.thermostats = [t for t in self.thermostats if t.serial != serial]

    def has_secret_and_uuid_for(self, serial: str) -> bool:
        thermostat = self.get(serial)
        return thermostat is not None and thermostat.has_secret_and_uuid

    def checkout(self, serial: str) -> Thermostat:
        """Return a private copy of the record for `serial` to mutate and `commit`.

        Unknown serials yield a fresh record that is not inserted until committed.
        """
        thermostat = self.get(serial)
        return deepcopy(thermostat) if thermostat is not None else Thermostat(serial=serial)

    def commit(self, thermostat: Thermostat) -> None:
        snapshot = deepcopy(thermostat)
        for index, existing in enumerate(self.thermostats):
            if snapshot.serial and existing.serial == snapshot.serial:
                self.thermostats[index] = snapshot
                return
        self.thermostats.append(snapshot)

    def save(self) -> None:
        """Replace the backing file with the whole collection in one step."""
        root = ET.Element(_ROOT_TAG)
        for thermostat in self.thermostats:
            root.append(_encode_thermostat(thermostat))
        tree = ET.ElementTree(root)
        ET.indent(tree)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle = tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            )
        except OSError as exc:
            raise PersistenceError(f"Could not stage registry {self.path}: {exc}") from exc

        staging_path = Path(handle.name)
        try:
            with handle:
                tree.write(handle, encoding="utf-8", xml_declaration=True)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            staging_path.unlink(missing_ok=True)
            raise PersistenceError(f"Could not write registry {self.path}: {exc}") from exc

        try:
            os.replace(staging_path, self.path)
        except OSError as exc:
            raise PersistenceError(
                f"Could not replace registry {self.path}: {exc}. New content kept at {staging_path}",
                staging_path=staging_path,
            ) from exc

        LOGGER.debug("Saved %d thermostat(s) to %s", len(self.thermostats), self.path)


def _text(element: ET.Element, tag: str) -> str | None:
    child = element.find(tag)
    if child is None:
        return None
    return (child.text or "").strip()


def _parse_datetime(value: str | None, *, context: str) -> datetime:
    if not value:
        raise RegistryFormatError(f"{context} is missing")
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise RegistryFormatError(f"{context} is not an ISO timestamp: {value!r}") from exc


def _parse_bool(value: str | None, *, context: str) -> bool:
    if value is None:
        return False
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise RegistryFormatError(f"{context} must be true/false, got {value!r}")


def _decode_thermostat(element: ET.Element, *, source: Path) -> Thermostat:
    values: dict[str, str | None] = {attr: _text(element, tag) for tag, attr in _TEXT_FIELDS}
    serial = values.pop("serial") or ""
    context = f"{source} ({serial or 'no serial'})"

    set_point: Temperature | None = None
    raw_set_point = _text(element, _SET_POINT_TAG)
    if raw_set_point:
        try:
            set_point = Temperature(degrees_celsius=float(raw_set_point))
        except ValueError as exc:
            raise RegistryFormatError(
                f"{context}: {_SET_POINT_TAG} is not a number: {raw_set_point!r}"
            ) from exc

    vacation: Period | None = None
    vacation_element = element.find(_VACATION_TAG)
    if vacation_element is not None:
        start = _parse_datetime(_text(vacation_element, "From"), context=f"{context}: {_VACATION_TAG}.From")
        end = _parse_datetime(_text(vacation_element, "To"), context=f"{context}: {_VACATION_TAG}.To")
        try:
            vacation = Period(start=start, end=end)
        except PendingChangeError as exc:
            raise RegistryFormatError(f"{context}: {exc}") from exc

    return Thermostat(
        serial=serial,
        updated_set_point_temperature=set_point,
        has_updated_vacation_period=_parse_bool(
            _text(element, _HAS_VACATION_TAG), context=f"{context}: {_HAS_VACATION_TAG}"
        ),
        updated_vacation_period=vacation,
        **values,
    )


def _encode_thermostat(thermostat: Thermostat) -> ET.Element:
    element = ET.Element(_RECORD_TAG)
    for tag, attr in _TEXT_FIELDS:
        value = getattr(thermostat, attr)
        if value is None or (attr == "serial" and not value):
            continue
        ET.SubElement(element, tag).text = value

    if thermostat.updated_set_point_temperature is not None:
        ET.SubElement(element, _SET_POINT_TAG).text = repr(
            thermostat.updated_set_point_temperature.degrees_celsius
        )

    ET.SubElement(element, _HAS_VACATION_TAG).text = "true" if thermostat.has_updated_vacation_period else "false"

    if thermostat.updated_vacation_period is not None:
        vacation = ET.SubElement(element, _VACATION_TAG)
        ET.SubElement(vacation, "From").text = thermostat.updated_vacation_period.start.isoformat()
        ET.SubElement(vacation, "To").text = thermostat.updated_vacation_period.end.isoformat()

    return element
