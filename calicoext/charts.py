"""Computing the values of the calico chart and rendering it."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from calicoext.api import (
    Backend,
    IPv4Pool,
    IPv4PoolMode,
    Network,
    NetworkConfig,
)
from calicoext.constants import (
    CALICO_CHART_PATH,
    CALICO_CLUSTER_PROPORTIONAL_AUTOSCALER_IMAGE_NAME,
    CLUSTER_PROPORTIONAL_VERTICAL_AUTOSCALER_IMAGE_NAME,
    CNI_IMAGE_NAME,
    KUBE_CONTROLLERS_IMAGE_NAME,
    NODE_IMAGE_NAME,
    POD_TO_DAEMON_FLEX_VOLUME_DRIVER_IMAGE_NAME,
    RELEASE_NAME,
    TYPHA_IMAGE_NAME,
)
from calicoext.imagevector import ImageNotFoundError

CALICO_CONFIG_KEY = "config.yaml"
NAMESPACE_SYSTEM = "kube-system"
LABEL_WORKER_POOL_SYSTEM_COMPONENTS = "worker.gardener.cloud/system-components"

HOST_LOCAL = "host-local"
USE_POD_CIDR = "usePodCidr"
DEFAULT_MTU = "1440"

_SUPPORTED_BACKENDS = frozenset(b.value for b in Backend)
_SUPPORTED_POOLS = frozenset(p.value for p in IPv4Pool)
_SUPPORTED_MODES = frozenset(m.value for m in IPv4PoolMode)

_IMAGE_NAMES = (
    CNI_IMAGE_NAME,
    TYPHA_IMAGE_NAME,
    KUBE_CONTROLLERS_IMAGE_NAME,
    NODE_IMAGE_NAME,
    POD_TO_DAEMON_FLEX_VOLUME_DRIVER_IMAGE_NAME,
    CALICO_CLUSTER_PROPORTIONAL_AUTOSCALER_IMAGE_NAME,
    CLUSTER_PROPORTIONAL_VERTICAL_AUTOSCALER_IMAGE_NAME,
)

_DEFAULT_CALICO_CONFIG: dict[str, Any] = {
    "backend": Backend.BIRD.value,
    "felix": {
        "ipinip": {"enabled": True},
        "bpf": {"enabled": False},
        "bpfKubeProxyIPTablesCleanup": {"enabled": False},
    },
    "ipv4": {
        "pool": IPv4Pool.IPIP.value,
        "mode": IPv4PoolMode.ALWAYS.value,
        "autoDetectionMethod": None,
    },
    "ipam": {"type": HOST_LOCAL, "subnet": USE_POD_CIDR},
    "typha": {"enabled": True},
    "kubeControllers": {"enabled": True},
    "veth_mtu": DEFAULT_MTU,
    "monitoring": {
        "enabled": True,
        "typhaMetricsPort": "9093",
        "felixMetricsPort": "9091",
    },
    "nonPrivileged": False,
}


class ChartValuesError(ValueError):
    """Raised when the calico chart values cannot be computed."""


@runtime_checkable
class ChartRenderer(Protocol):
    """Something that renders a chart into a manifest."""

    def render(
        self, chart_path: str, release_name: str, namespace: str, values: Mapping[str, Any]
    ) -> bytes | str:
        """Render the chart at ``chart_path`` with ``values`` and return its manifest."""
        raise NotImplementedError


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _ebpf_enabled(config: NetworkConfig) -> bool:
    return config.ebpf_dataplane is not None and config.ebpf_dataplane.enabled


def generate_calico_config(
    config: NetworkConfig | None, kube_proxy_enabled: bool, non_privileged: bool
) -> dict[str, Any]:
    """Merge ``config`` into the default calico settings.

    Raises ChartValuesError for unsupported backend, pool or mode values.
    """
    c = copy.deepcopy(_DEFAULT_CALICO_CONFIG)
    if config is None:
        return c

    if config.backend is not None:
        backend = _plain(config.backend)
        if backend not in _SUPPORTED_BACKENDS:
            raise ChartValuesError(f"unsupported value for backend: {backend}")
        c["backend"] = backend
    if c["backend"] == Backend.NONE.value:
        c["kubeControllers"]["enabled"] = False
        c["felix"]["ipinip"]["enabled"] = False
        c["ipv4"]["mode"] = IPv4PoolMode.NEVER.value

    if _ebpf_enabled(config):
        c["felix"]["bpf"]["enabled"] = True

    if not kube_proxy_enabled:
        c["felix"]["bpfKubeProxyIPTablesCleanup"]["enabled"] = True

    if config.ipam is not None:
        if config.ipam.type:
            c["ipam"]["type"] = config.ipam.type
        if config.ipam.type == HOST_LOCAL and config.ipam.cidr is not None:
            c["ipam"]["subnet"] = str(config.ipam.cidr)

    if config.ipv4 is not None:
        if config.ipv4.pool is not None:
            pool = _plain(config.ipv4.pool)
            if pool not in _SUPPORTED_POOLS:
                raise ChartValuesError(f"unsupported value for ipv4 pool: {pool}")
            c["ipv4"]["pool"] = pool
        if config.ipv4.mode is not None:
            mode = _plain(config.ipv4.mode)
            if mode not in _SUPPORTED_MODES:
                raise ChartValuesError(f"unsupported value for ipv4 mode: {mode}")
            c["ipv4"]["mode"] = mode
        if config.ipv4.auto_detection_method is not None:
            c["ipv4"]["autoDetectionMethod"] = config.ipv4.auto_detection_method
    else:
        # Deprecated fields, honoured only when ipv4 is unset.
        if config.ipip is not None:
            mode = _plain(config.ipip)
            if mode not in _SUPPORTED_MODES:
                raise ChartValuesError(f"unsupported value for ipip: {mode}")
            c["ipv4"]["mode"] = mode
        if config.ip_autodetection_method is not None:
            c["ipv4"]["autoDetectionMethod"] = config.ip_autodetection_method

    if config.typha is not None:
        c["typha"]["enabled"] = config.typha.enabled

    if config.veth_mtu is not None:
        c["veth_mtu"] = config.veth_mtu

    c["nonPrivileged"] = bool(non_privileged) and not _ebpf_enabled(config)
    return c


def _images(images: Mapping[str, str]) -> dict[str, str]:
    missing = [name for name in _IMAGE_NAMES if name not in images]
    if missing:
        raise ImageNotFoundError(f'could not find image "{missing[0]}"')
    return {name: images[name] for name in _IMAGE_NAMES}


def compute_calico_chart_values(
    network: Network,
    config: NetworkConfig | None,
    worker_system_components_activated: bool,
    images: Mapping[str, str],
    wants_vpa: bool,
    kube_proxy_enabled: bool,
    is_psp_disabled: bool,
    non_privileged: bool,
    node_cidr: str,
) -> dict[str, Any]:
    """Compute the values for the calico chart."""
    try:
        calico_config = generate_calico_config(config, kube_proxy_enabled, non_privileged)
    except ChartValuesError as exc:
        raise ChartValuesError(f"error when generating calico config: {exc}") from exc

    global_values = {"podCIDR": network.pod_cidr, "nodeCIDR": node_cidr}
    values: dict[str, Any] = {
        "vpa": {"enabled": wants_vpa},
        "images": _images(images),
        "global": global_values,
        "config": calico_config,
        "pspDisabled": is_psp_disabled,
    }
    if worker_system_components_activated:
        values["nodeSelector"] = {LABEL_WORKER_POOL_SYSTEM_COMPONENTS: "true"}

    overlay = config.overlay if config is not None else None
    if overlay is not None:
        global_values["overlayEnabled"] = "true" if overlay.enabled else "false"
        if not overlay.enabled and config.snat_to_upstream_dns is not None:
            global_values["snatToUpstreamDNSEnabled"] = (
                "true" if config.snat_to_upstream_dns.enabled else "false"
            )

    return values


def render_calico_chart(
    renderer: ChartRenderer,
    network: Network,
    config: NetworkConfig | None,
    worker_system_components_activated: bool,
    images: Mapping[str, str],
    wants_vpa: bool,
    kube_proxy_enabled: bool,
    is_psp_disabled: bool,
    non_privileged: bool,
    node_cidr: str,
) -> bytes:
    """Render the calico chart with the computed values and return its manifest."""
    values = compute_calico_chart_values(
        network,
        config,
        worker_system_components_activated,
        images,
        wants_vpa,
        kube_proxy_enabled,
        is_psp_disabled,
        non_privileged,
        node_cidr,
    )
    manifest = renderer.render(CALICO_CHART_PATH, RELEASE_NAME, NAMESPACE_SYSTEM, values)
    return manifest.encode("utf-8") if isinstance(manifest, str) else bytes(manifest)