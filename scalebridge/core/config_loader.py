"""Loading and validation of YAML indicator profiles and device definitions."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from scalebridge.core.errors import ConfigLoadError, ConfigValidationError
from scalebridge.core.model import (
    Connection,
    DeviceDescriptor,
    IndicatorProfile,
    Protocol,
    SerialConnection,
    TcpConnection,
)

DEFAULT_TIMEOUT_MS = 1000
DEFAULT_TCP_PORT = 4001
CONFIG_ENV_VAR = "SCALEBRIDGE_CONFIG"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedIndicators:
    indicators: dict[str, IndicatorProfile]
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class LoadedDevices:
    devices: dict[str, DeviceDescriptor]
    warnings: tuple[str, ...]
    source: Path


def _load_schema_validator(name: str) -> Any:
    schema_text = resources.files("scalebridge.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _validate(doc: dict[str, Any], schema_name: str, source: Path | Traversable) -> None:
    validator = _load_schema_validator(schema_name)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "scalebridge"


def _indicator_dirs() -> tuple[Path, Path]:
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return _config_home() / "indicators", xdg_data / "scalebridge/indicators"


def default_devices_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return _config_home() / "devices.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read configuration file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Configuration file {path} must contain a mapping at root")
    return loaded


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def _normalize_protocol(value: str, *, context: str) -> Protocol:
    try:
        return Protocol.from_name(value)
    except ValueError as exc:
        supported = ", ".join(p.value for p in Protocol)
        raise ConfigValidationError(f"{context}: {exc}. Supported: {supported}") from None


def _normalize_commands(commands: dict[str, Any], *, context: str) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for command, token in commands.items():
        text = token.strip()
        if not text:
            raise ConfigValidationError(f"{context}.{command} must not be empty")
        normalized[command] = text
    return normalized


def _build_indicator(doc: dict[str, Any], source: Path | Traversable) -> IndicatorProfile:
    _validate(doc, "indicator.schema.json", source)
    return IndicatorProfile(
        id=doc["id"],
        name=doc["name"],
        manufacturer=doc["manufacturer"],
        model=doc["model"],
        protocol=_normalize_protocol(doc["protocol"], context=f"{doc['id']}.protocol"),
        commands=_normalize_commands(doc["commands"], context=f"{doc['id']}.commands"),
    )


def _build_connection(spec: dict[str, Any]) -> Connection:
    if spec["type"] == "tcp":
        return TcpConnection(host=spec["host"], port=int(spec.get("port", DEFAULT_TCP_PORT)))
    return SerialConnection(
        port_path=spec["port"],
        baud_rate=int(spec.get("baud_rate", 9600)),
        data_bits=int(spec.get("data_bits", 8)),
        stop_bits=int(spec.get("stop_bits", 1)),
        parity=spec.get("parity", "none"),
        flow_control=spec.get("flow_control", "none"),
    )


def _build_device(
    device_id: str,
    doc: dict[str, Any],
    indicators: dict[str, IndicatorProfile],
    source: Path,
) -> DeviceDescriptor:
    profile: IndicatorProfile | None = None
    if "indicator" in doc:
        profile = indicators.get(doc["indicator"])
        if profile is None:
            available = ", ".join(sorted(indicators)) or "<none>"
            raise ConfigValidationError(
                f"Device '{device_id}' in {source} references unknown indicator "
                f"'{doc['indicator']}'. Available: {available}"
            )

    if "protocol" in doc:
        protocol = _normalize_protocol(doc["protocol"], context=f"{device_id}.protocol")
    elif profile is not None:
        protocol = profile.protocol
    else:
        raise ConfigValidationError(
            f"Device '{device_id}' in {source} needs either 'indicator' or 'protocol'"
        )

    commands = dict(profile.commands) if profile else {}
    commands.update(_normalize_commands(doc.get("commands", {}), context=f"{device_id}.commands"))

    return DeviceDescriptor(
        id=device_id,
        name=doc.get("name", profile.name if profile else device_id),
        manufacturer=doc.get("manufacturer", profile.manufacturer if profile else ""),
        model=doc.get("model", profile.model if profile else ""),
        protocol=protocol,
        connection=_build_connection(doc["connection"]),
        command_map=commands,
        timeout_s=int(doc.get("timeout_ms", DEFAULT_TIMEOUT_MS)) / 1000.0,
        enabled=_normalize_bool(doc.get("enabled", True), context=f"{device_id}.enabled"),
    )


def _iter_packaged_indicator_paths() -> list[Traversable]:
    indicator_root = resources.files("scalebridge.indicators")
    return [item for item in indicator_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_indicator_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _indicator_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_indicators() -> LoadedIndicators:
    indicators: dict[str, IndicatorProfile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_indicator_paths(), key=lambda p: p.name):
        indicator = _build_indicator(_read_yaml(path), path)
        indicators[indicator.id] = indicator

    for path in _iter_user_indicator_paths():
        indicator = _build_indicator(_read_yaml(path), path)
        if indicator.id in indicators:
            warning = f"User indicator '{indicator.id}' overrides packaged indicator"
            LOGGER.warning(warning)
            warnings.append(warning)
        indicators[indicator.id] = indicator

    return LoadedIndicators(indicators=indicators, warnings=tuple(warnings))


def load_devices(
    path: Path | None = None,
    *,
    indicators: dict[str, IndicatorProfile] | None = None,
) -> LoadedDevices:
    """Read the devices file; a missing file means no devices are configured."""
    source = path or default_devices_path()
    if indicators is None:
        indicators = load_indicators().indicators

    if not source.exists():
        LOGGER.info("No devices file at %s; starting with no devices", source)
        return LoadedDevices(devices={}, warnings=(), source=source)

    doc = _read_yaml(source)
    _validate(doc, "devices.schema.json", source)

    devices: dict[str, DeviceDescriptor] = {}
    warnings: list[str] = []
    for device_id, device_doc in (doc["devices"] or {}).items():
        device = _build_device(str(device_id), device_doc, indicators, source)
        if not device.command_map:
            warning = f"Device '{device.id}' maps no commands"
            LOGGER.warning(warning)
            warnings.append(warning)
        devices[device.id] = device

    LOGGER.info("Loaded %d device(s) from %s", len(devices), source)
    return LoadedDevices(devices=devices, warnings=tuple(warnings), source=source)
