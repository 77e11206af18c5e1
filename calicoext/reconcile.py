"""Preparing and rendering the calico configuration of a shoot's Network."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from calicoext.api import (
    IPv4,
    Backend,
    IPv4PoolMode,
    Network,
    NetworkConfig,
    NetworkStatus,
)
from calicoext.charts import ChartRenderer, render_calico_chart
from calicoext.features import FEATURE_GATE, NON_PRIVILEGED_CALICO_NODE, FeatureGate
from calicoext.helper import network_config_from_network
from calicoext.validator import ForbiddenError

CALICO_CONFIG_SECRET_NAME = "extension-networking-calico-config"
"""Name of the secret backing the managed resource of networking calico."""

SUCCESS_DESCRIPTION = "Calico was configured successfully"

_KUBE_PROXY_FIELD = "spec.kubernetes.kubeProxy.enabled"
_KUBE_PROXY_DETAIL = (
    "Disabling kube-proxy is forbidden in conjunction with calico "
    "without running in ebpf dataplane"
)


@dataclass
class Worker:
    """A worker pool of a shoot.

    ``system_components_allowed`` is ``None`` when the pool does not say;
    such a pool allows system components.
    """

    name: str = ""
    system_components_allowed: bool | None = None

    @property
    def allows_system_components(self) -> bool:
        return self.system_components_allowed is None or self.system_components_allowed


@dataclass
class Cluster:
    """The parts of a shoot cluster that the calico configuration depends on.

    ``kube_proxy_enabled`` is ``None`` when the shoot does not configure it.
    """

    kubernetes_version: str
    nodes_cidr: str | None = None
    workers: list[Worker] = field(default_factory=list)
    kube_proxy_enabled: bool | None = None
    wants_vpa: bool = False
    psp_disabled: bool = False


def activate_system_components_node_selector(workers: Iterable[Worker]) -> bool:
    """Return whether at least one worker pool allows system components."""
    return any(worker.allows_system_components for worker in workers)


def _ebpf_enabled(config: NetworkConfig | None) -> bool:
    return (
        config is not None
        and config.ebpf_dataplane is not None
        and config.ebpf_dataplane.enabled
    )


def prepare_network_config(network: Network, cluster: Cluster) -> NetworkConfig | None:
    """Decode the network's provider config and adjust it to the cluster.

    The nodes CIDR of the cluster becomes the IPv4 autodetection method and an
    overlay setting forces the matching backend and pool mode. Raises
    DecodeError for an invalid provider config and ForbiddenError when
    kube-proxy is disabled without the eBPF dataplane.
    """
    config: NetworkConfig | None = None
    if network.provider_config is not None:
        config = network_config_from_network(network)

    if cluster.nodes_cidr:
        if config is None:
            config = NetworkConfig()
        if config.ipv4 is None:
            config.ipv4 = IPv4()
        config.ipv4.auto_detection_method = f"cidr={cluster.nodes_cidr}"

    if config is not None and config.overlay is not None:
        if config.ipv4 is None:
            config.ipv4 = IPv4()
        if config.overlay.enabled:
            config.ipv4.mode = IPv4PoolMode.ALWAYS.value
            config.backend = Backend.BIRD.value
        else:
            config.ipv4.mode = IPv4PoolMode.NEVER.value
            config.backend = Backend.NONE.value

    if cluster.kube_proxy_enabled is False and not _ebpf_enabled(config):
        raise ForbiddenError(_KUBE_PROXY_FIELD, _KUBE_PROXY_DETAIL)

    return config


def compute_network_status(config: NetworkConfig | None) -> NetworkStatus:
    """Return the provider status recorded for a reconciled Network."""
    return NetworkStatus()


def build_calico_manifest(
    renderer: ChartRenderer,
    network: Network,
    cluster: Cluster,
    images: Mapping[str, str],
    feature_gate: FeatureGate | None = None,
) -> bytes:
    """Prepare the network config and render the calico chart for ``cluster``.

    ``feature_gate`` defaults to the shared gate of the extension.
    """
    gate = FEATURE_GATE if feature_gate is None else feature_gate
    config = prepare_network_config(network, cluster)

    kube_proxy_enabled = True if cluster.kube_proxy_enabled is None else cluster.kube_proxy_enabled

    if cluster.nodes_cidr is None:
        raise ValueError("shoot does not specify a nodes CIDR")

    return render_calico_chart(
        renderer,
        network,
        config,
        activate_system_components_node_selector(cluster.workers),
        images,
        cluster.wants_vpa,
        kube_proxy_enabled,
        cluster.psp_disabled,
        gate.enabled(NON_PRIVILEGED_CALICO_NODE),
        cluster.nodes_cidr,
    )