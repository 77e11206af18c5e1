"""Controller configuration of the networking extension and its loading."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from fractions import Fraction
from pathlib import Path
from typing import Any

import yaml

GROUP_NAME = "calico.networking.extensions.config.gardener.cloud"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP_NAME}/{VERSION}"
KIND = "ControllerConfiguration"


class ConfigLoadError(ValueError):
    """Raised when a controller configuration cannot be decoded."""


_DURATION_UNITS_NS = {
    "ns": Fraction(1),
    "us": Fraction(1_000),
    "\u00b5s": Fraction(1_000),
    "\u03bcs": Fraction(1_000),
    "ms": Fraction(1_000_000),
    "s": Fraction(1_000_000_000),
    "m": Fraction(60_000_000_000),
    "h": Fraction(3_600_000_000_000),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")


def _parse_duration(text: str, path: str) -> timedelta:
    """Parse a duration such as ``30s`` or ``1h2m3.5s``."""
    body = text
    sign = 1
    if body[:1] in "+-" and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ConfigLoadError(f'{path}: invalid duration "{text}"')
    total = Fraction(0)
    position = 0
    while position < len(body):
        match = _DURATION_PART.match(body, position)
        if match is None:
            raise ConfigLoadError(f'{path}: invalid duration "{text}"')
        number, unit = match.groups()
        total += Fraction(number) * _DURATION_UNITS_NS[unit]
        position = match.end()
    return timedelta(microseconds=float(sign * total / 1_000))


def _mapping(value: Any, path: str) -> Mapping | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ConfigLoadError(f"{path}: expected an object, got {type(value).__name__}")
    return value


def _string(value: Any, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigLoadError(f"{path}: expected a string, got {type(value).__name__}")
    return value


def _number(value: Any, path: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigLoadError(f"{path}: expected a number, got {type(value).__name__}")
    return float(value)


def _integer(value: Any, path: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigLoadError(f"{path}: expected an integer, got {type(value).__name__}")
    return value


@dataclass
class ClientConnectionConfiguration:
    """Settings for talking to the API server."""

    kubeconfig: str = ""
    accept_content_types: str = ""
    content_type: str = ""
    qps: float = 0.0
    burst: int = 0

    @classmethod
    def from_dict(cls, data: Mapping) -> ClientConnectionConfiguration:
        return cls(
            kubeconfig=_string(data.get("kubeconfig"), "clientConnection.kubeconfig"),
            accept_content_types=_string(
                data.get("acceptContentTypes"), "clientConnection.acceptContentTypes"
            ),
            content_type=_string(data.get("contentType"), "clientConnection.contentType"),
            qps=_number(data.get("qps"), "clientConnection.qps"),
            burst=_integer(data.get("burst"), "clientConnection.burst"),
        )


@dataclass
class HealthCheckConfig:
    """Settings of the health check controller."""

    sync_period: timedelta = timedelta(0)

    @classmethod
    def from_dict(cls, data: Mapping) -> HealthCheckConfig:
        raw = data.get("syncPeriod")
        if raw is None:
            return cls()
        if not isinstance(raw, str):
            raise ConfigLoadError(
                f"healthCheckConfig.syncPeriod: expected a duration string, got {type(raw).__name__}"
            )
        return cls(sync_period=_parse_duration(raw, "healthCheckConfig.syncPeriod"))


@dataclass
class ControllerConfiguration:
    """Configuration of the calico networking extension controller."""

    api_version: str = ""
    kind: str = ""
    client_connection: ClientConnectionConfiguration | None = None
    health_check_config: HealthCheckConfig | None = None
    feature_gates: dict[str, bool] | None = field(default=None)

    @classmethod
    def from_dict(cls, data: Mapping) -> ControllerConfiguration:
        """Build a configuration from its wire form; unknown fields are ignored."""
        mapping = _mapping(data, "config")
        if mapping is None:
            raise ConfigLoadError("controller configuration must be an object")

        api_version = _string(mapping.get("apiVersion"), "apiVersion")
        kind = _string(mapping.get("kind"), "kind")
        if not kind:
            raise ConfigLoadError("Object 'Kind' is missing in controller configuration")
        if api_version != API_VERSION or kind != KIND:
            raise ConfigLoadError(
                f'no kind "{kind}" is registered for version "{api_version}"'
            )

        connection = _mapping(mapping.get("clientConnection"), "clientConnection")
        health = _mapping(mapping.get("healthCheckConfig"), "healthCheckConfig")
        gates = _mapping(mapping.get("featureGates"), "featureGates")
        feature_gates = None
        if gates is not None:
            feature_gates = {}
            for name, value in gates.items():
                if not isinstance(value, bool):
                    raise ConfigLoadError(
                        f"featureGates.{name}: expected a boolean, got {type(value).__name__}"
                    )
                feature_gates[str(name)] = value

        return cls(
            api_version=api_version,
            kind=kind,
            client_connection=(
                None if connection is None else ClientConnectionConfiguration.from_dict(connection)
            ),
            health_check_config=None if health is None else HealthCheckConfig.from_dict(health),
            feature_gates=feature_gates,
        )


def load(data: bytes | str) -> ControllerConfiguration:
    """Decode a YAML or JSON document into a ControllerConfiguration.

    Empty input yields an empty configuration.
    """
    if len(data) == 0:
        return ControllerConfiguration()
    if isinstance(data, (bytes, bytearray)):
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConfigLoadError(f"configuration is not valid UTF-8: {exc}") from exc
    else:
        text = data
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"could not parse configuration: {exc}") from exc
    if document is None:
        raise ConfigLoadError("Object 'Kind' is missing in controller configuration")
    return ControllerConfiguration.from_dict(document)


def load_from_file(filename: str | Path) -> ControllerConfiguration:
    """Read ``filename`` and decode it into a ControllerConfiguration."""
    return load(Path(filename).read_bytes())