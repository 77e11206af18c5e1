"""Calico network configuration API types and their decoding."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml

from calicoext.constants import TYPE

GROUP_NAME = "calico.networking.extensions.gardener.cloud"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP_NAME}/{VERSION}"

_TYPE_META_KEYS = ("apiVersion", "kind")


class DecodeError(ValueError):
    """Raised when a network provider config cannot be decoded."""


class _WireEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class Backend(_WireEnum):
    BIRD = "bird"
    NONE = "none"
    VXLAN = "vxlan"


class IPv4PoolMode(_WireEnum):
    ALWAYS = "Always"
    NEVER = "Never"
    CROSS_SUBNET = "CrossSubnet"
    OFF = "Off"


class IPv4Pool(_WireEnum):
    IPIP = "ipip"
    VXLAN = "vxlan"


@dataclass
class IPv4:
    """Calico IPv4 specific settings."""

    pool: str | None = None
    mode: str | None = None
    auto_detection_method: str | None = None


@dataclass
class IPAM:
    """Configuration of the IP address management plugin."""

    type: str = ""
    cidr: str | None = None


@dataclass
class Typha:
    """Settings of the calico-typha component."""

    enabled: bool = False


@dataclass
class EbpfDataplane:
    """Switch for the eBPF dataplane mode."""

    enabled: bool = False


@dataclass
class Overlay:
    """Switch for the network overlay."""

    enabled: bool = False


@dataclass
class SnatToUpstreamDNS:
    """Switch for masquerading packets to the upstream DNS server."""

    enabled: bool = False


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _check_keys(data: Mapping, allowed: tuple[str, ...], path: str, strict: bool) -> None:
    if not strict:
        return
    for key in data:
        if key not in allowed:
            raise DecodeError(f'strict decoding error: unknown field "{_join(path, str(key))}"')


def _mapping(value: Any, path: str) -> Mapping | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DecodeError(f"{path}: expected an object, got {type(value).__name__}")
    return value


def _string(value: Any, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"{path}: expected a string, got {type(value).__name__}")
    return value


def _boolean(value: Any, path: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DecodeError(f"{path}: expected a boolean, got {type(value).__name__}")
    return value


def _parse_switch(data: Any, path: str, strict: bool) -> bool | None:
    mapping = _mapping(data, path)
    if mapping is None:
        return None
    _check_keys(mapping, ("enabled",), path, strict)
    return _boolean(mapping.get("enabled"), _join(path, "enabled"))


def _parse_ipv4(data: Any, strict: bool) -> IPv4 | None:
    mapping = _mapping(data, "ipv4")
    if mapping is None:
        return None
    _check_keys(mapping, ("pool", "mode", "autoDetectionMethod"), "ipv4", strict)
    return IPv4(
        pool=_string(mapping.get("pool"), "ipv4.pool"),
        mode=_string(mapping.get("mode"), "ipv4.mode"),
        auto_detection_method=_string(
            mapping.get("autoDetectionMethod"), "ipv4.autoDetectionMethod"
        ),
    )


def _parse_ipam(data: Any, strict: bool) -> IPAM | None:
    mapping = _mapping(data, "ipam")
    if mapping is None:
        return None
    _check_keys(mapping, ("type", "cidr"), "ipam", strict)
    return IPAM(
        type=_string(mapping.get("type"), "ipam.type") or "",
        cidr=_string(mapping.get("cidr"), "ipam.cidr"),
    )


_NETWORK_CONFIG_KEYS = _TYPE_META_KEYS + (
    "backend",
    "ipam",
    "ipv4",
    "typha",
    "vethMTU",
    "ebpfDataplane",
    "overlay",
    "snatToUpstreamDNS",
    "ipip",
    "ipAutodetectionMethod",
)


def _parse_network_config(data: Mapping, strict: bool) -> NetworkConfig:
    _check_keys(data, _NETWORK_CONFIG_KEYS, "", strict)

    api_version = _string(data.get("apiVersion"), "apiVersion") or ""
    kind = _string(data.get("kind"), "kind") or ""
    if api_version and api_version != API_VERSION:
        raise DecodeError(f'no kind is registered for the version "{api_version}"')
    if kind and kind != "NetworkConfig":
        raise DecodeError(f'kind "{kind}" cannot be decoded into NetworkConfig')

    def switch(key: str, cls: type) -> Any:
        enabled = _parse_switch(data.get(key), key, strict)
        return None if enabled is None else cls(enabled=enabled)

    return NetworkConfig(
        api_version=api_version,
        kind=kind,
        backend=_string(data.get("backend"), "backend"),
        ipam=_parse_ipam(data.get("ipam"), strict),
        ipv4=_parse_ipv4(data.get("ipv4"), strict),
        typha=switch("typha", Typha),
        veth_mtu=_string(data.get("vethMTU"), "vethMTU"),
        ebpf_dataplane=switch("ebpfDataplane", EbpfDataplane),
        overlay=switch("overlay", Overlay),
        snat_to_upstream_dns=switch("snatToUpstreamDNS", SnatToUpstreamDNS),
        ipip=_string(data.get("ipip"), "ipip"),
        ip_autodetection_method=_string(
            data.get("ipAutodetectionMethod"), "ipAutodetectionMethod"
        ),
    )


@dataclass
class NetworkConfig:
    """Configuration of the calico networking plugin.

    ``ipip`` and ``ip_autodetection_method`` are deprecated in favour of
    the fields of ``ipv4`` and are only honoured when ``ipv4`` is unset.
    """

    api_version: str = ""
    kind: str = ""
    backend: str | None = None
    ipam: IPAM | None = None
    ipv4: IPv4 | None = None
    typha: Typha | None = None
    veth_mtu: str | None = None
    ebpf_dataplane: EbpfDataplane | None = None
    overlay: Overlay | None = None
    snat_to_upstream_dns: SnatToUpstreamDNS | None = None
    ipip: str | None = None
    ip_autodetection_method: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> NetworkConfig:
        """Build a config from its wire form, rejecting unknown fields."""
        mapping = _mapping(data, "networkConfig")
        if mapping is None:
            raise DecodeError("network config must be an object")
        return _parse_network_config(mapping, strict=True)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form, leaving out unset optional fields."""
        out: dict[str, Any] = {}
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.kind:
            out["kind"] = self.kind
        if self.backend is not None:
            out["backend"] = _plain(self.backend)
        if self.ipam is not None:
            ipam: dict[str, Any] = {"type": self.ipam.type}
            if self.ipam.cidr is not None:
                ipam["cidr"] = self.ipam.cidr
            out["ipam"] = ipam
        if self.ipv4 is not None:
            ipv4: dict[str, Any] = {}
            if self.ipv4.pool is not None:
                ipv4["pool"] = _plain(self.ipv4.pool)
            if self.ipv4.mode is not None:
                ipv4["mode"] = _plain(self.ipv4.mode)
            if self.ipv4.auto_detection_method is not None:
                ipv4["autoDetectionMethod"] = self.ipv4.auto_detection_method
            out["ipv4"] = ipv4
        if self.typha is not None:
            out["typha"] = {"enabled": self.typha.enabled}
        if self.veth_mtu is not None:
            out["vethMTU"] = self.veth_mtu
        if self.ebpf_dataplane is not None:
            out["ebpfDataplane"] = {"enabled": self.ebpf_dataplane.enabled}
        if self.overlay is not None:
            out["overlay"] = {"enabled": self.overlay.enabled}
        if self.snat_to_upstream_dns is not None:
            out["snatToUpstreamDNS"] = {"enabled": self.snat_to_upstream_dns.enabled}
        if self.ipip is not None:
            out["ipip"] = _plain(self.ipip)
        if self.ip_autodetection_method is not None:
            out["ipAutodetectionMethod"] = self.ip_autodetection_method
        return out


@dataclass
class NetworkStatus:
    """Status information about a reconciled Network resource."""

    api_version: str = API_VERSION
    kind: str = "NetworkStatus"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.kind:
            out["kind"] = self.kind
        return out


@dataclass
class Network:
    """A Network extension resource handled by this extension."""

    name: str
    namespace: str
    pod_cidr: str
    service_cidr: str = ""
    type: str = TYPE
    provider_config: bytes | str | Mapping | None = None
    provider_status: dict[str, Any] | None = None
    last_operation: dict[str, Any] | None = None
    labels: dict[str, str] = field(default_factory=dict)


class _StrictLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""

    def construct_mapping(self, node, deep=False):
        if isinstance(node, yaml.MappingNode):
            seen = set()
            for key_node, _ in node.value:
                key = self.construct_object(key_node, deep=deep)
                try:
                    duplicate = key in seen
                except TypeError:
                    continue
                if duplicate:
                    raise DecodeError(f'strict decoding error: duplicate field "{key}"')
                seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _load(raw: bytes | bytearray | str | Mapping, strict: bool) -> Mapping:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"provider config is not valid UTF-8: {exc}") from exc
    elif isinstance(raw, str):
        text = raw
    else:
        raise DecodeError(f"cannot decode provider config of type {type(raw).__name__}")
    if not text.strip():
        raise DecodeError("provider config is empty")
    loader = _StrictLoader if strict else yaml.SafeLoader
    try:
        data = yaml.load(text, Loader=loader)
    except yaml.YAMLError as exc:
        raise DecodeError(f"could not parse provider config: {exc}") from exc
    if not isinstance(data, Mapping):
        raise DecodeError("provider config must be an object")
    return data


def decode_network_config(raw, strict=True) -> NetworkConfig:
    """Decode a raw JSON or YAML provider config into a NetworkConfig.

    ``None`` yields an empty config. In strict mode unknown and duplicate
    fields are rejected; otherwise unknown fields are ignored.
    """
    if raw is None:
        return NetworkConfig()
    return _parse_network_config(_load(raw, strict), strict)