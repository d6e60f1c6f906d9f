"""Configuration loading and validation for ecoctl."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from ecoctl.core.errors import ConfigError

REGISTRY_ENV = "ECOCTL_REGISTRY"
REGISTRY_FILENAME = "thermostats.xml"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    registry_path: Path
    connect_timeout_s: float = 20.0
    scan_timeout_s: float = 10.0


def _load_schema_validator() -> Any:
    schema_text = resources.files("ecoctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def config_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "ecoctl"


def default_registry_path() -> Path:
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_data / "ecoctl" / REGISTRY_FILENAME


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def load_settings(
    config_path: Path | None = None,
    *,
    registry_path: Path | None = None,
) -> Settings:
    """Resolve settings from defaults, the config file, the environment and overrides.

    An explicitly given `config_path` must exist; the default one is optional.
    Precedence for the registry location, highest first: `registry_path`,
    ``$ECOCTL_REGISTRY``, the config file, the XDG data directory.
    """
    doc: dict[str, Any] = {}
    path = config_path or config_dir() / "config.yaml"
    if config_path is not None or path.exists():
        doc = _read_yaml(path)
        try:
            _load_schema_validator().validate(doc)
        except ValidationError as exc:
            where = ".".join(str(p) for p in exc.path)
            where = f" ({where})" if where else ""
            raise ConfigError(f"Schema validation failed for {path}{where}: {exc.message}") from exc
        LOGGER.debug("Loaded config from %s", path)

    resolved_registry = default_registry_path()
    if "registry_path" in doc:
        resolved_registry = Path(doc["registry_path"]).expanduser()
    if os.environ.get(REGISTRY_ENV):
        resolved_registry = Path(os.environ[REGISTRY_ENV]).expanduser()
    if registry_path is not None:
        resolved_registry = registry_path

    return Settings(
        registry_path=resolved_registry,
        connect_timeout_s=float(doc.get("connect_timeout_s", 20.0)),
        scan_timeout_s=float(doc.get("scan_timeout_s", 10.0)),
    )
