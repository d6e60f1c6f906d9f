"""GATT identifiers exposed by the thermostat."""

from __future__ import annotations

MAIN_SERVICE = "10020000-2749-0001-0000-00805f9b042f"
BATTERY_SERVICE = "0000180f-0000-1000-8000-00805f9b34fb"

PIN_CODE = "10020001-2749-0001-0000-00805f9b042f"
SETTINGS = "10020003-2749-0001-0000-00805f9b042f"
TEMPERATURE = "10020005-2749-0001-0000-00805f9b042f"
DEVICE_NAME = "10020006-2749-0001-0000-00805f9b042f"
SCHEDULE_1 = "10020007-2749-0001-0000-00805f9b042f"
SCHEDULE_2 = "10020008-2749-0001-0000-00805f9b042f"
SCHEDULE_3 = "10020009-2749-0001-0000-00805f9b042f"
SECRET_KEY = "1002000b-2749-0001-0000-00805f9b042f"

BATTERY_LEVEL = "00002a19-0000-1000-8000-00805f9b34fb"


def same_uuid(left: str, right: str) -> bool:
    return left.strip().lower() == right.strip().lower()
