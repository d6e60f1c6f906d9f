"""Domain-specific errors for ecoctl."""

from __future__ import annotations

from pathlib import Path

TIMER_BUTTON_INSTRUCTION = "You need to push the timer button on the thermostat"


class EcoctlError(Exception):
    """Base error for ecoctl."""


class ConfigError(EcoctlError):
    """Raised when the configuration file does not conform to schema."""


class RegistryFormatError(EcoctlError):
    """Raised when the registry file cannot be parsed."""


class PersistenceError(EcoctlError):
    """Raised when writing the registry file fails.

    When the new content reached a staging file but could not replace the
    registry, `staging_path` points at that file so it can be recovered by hand.
    """

    def __init__(self, message: str, *, staging_path: Path | None = None) -> None:
        super().__init__(message)
        self.staging_path = staging_path


class PendingChangeError(EcoctlError):
    """Raised when a pending set-point or vacation period is invalid."""


class UnknownThermostatError(EcoctlError):
    """Raised when a command targets a serial that is not in the registry."""


class CompatibilityError(EcoctlError):
    """Raised when a required service or characteristic is not exposed."""


class AuthenticationRequired(EcoctlError):
    """Raised when the secret is not exposed and the device was never paired."""

    def __init__(self, serial: str) -> None:
        super().__init__(f"{TIMER_BUTTON_INSTRUCTION} ({serial})")
        self.serial = serial


class TransportError(EcoctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on BLE connect failures."""


class TransportReadError(TransportError):
    """Raised when reading a characteristic or discovering characteristics fails."""


class TransportWriteError(TransportError):
    """Raised when writing a characteristic fails."""
