import pytest

from calicoext.api import DecodeError, Network, NetworkConfig
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
from calicoext.features import FeatureGate, register_feature_gates
from calicoext.reconcile import (
    Cluster,
    Worker,
    activate_system_components_node_selector,
    build_calico_manifest,
    compute_network_status,
    prepare_network_config,
)
from calicoext.validator import ForbiddenError

NODES = "10.250.0.0/16"

IMAGES = {
    name: f"registry.example.com/{name}:v1"
    for name in (
        CNI_IMAGE_NAME,
        TYPHA_IMAGE_NAME,
        KUBE_CONTROLLERS_IMAGE_NAME,
        NODE_IMAGE_NAME,
        POD_TO_DAEMON_FLEX_VOLUME_DRIVER_IMAGE_NAME,
        CALICO_CLUSTER_PROPORTIONAL_AUTOSCALER_IMAGE_NAME,
        CLUSTER_PROPORTIONAL_VERTICAL_AUTOSCALER_IMAGE_NAME,
    )
}


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def render(self, chart_path, release_name, namespace, values):
        self.calls.append((chart_path, release_name, namespace, values))
        return "rendered-manifest"


def make_network(provider_config=None):
    return Network(
        name="foo",
        namespace="bar",
        pod_cidr="12.0.0.0/8",
        service_cidr="10.0.0.0/8",
        provider_config=provider_config,
    )


def make_gate(**values):
    gate = register_feature_gates(FeatureGate())
    gate.set_from_map(values)
    return gate


def test_node_selector_without_workers():
    assert activate_system_components_node_selector([]) is False


def test_node_selector_with_disallowing_workers():
    workers = [Worker("a", False), Worker("b", False)]
    assert activate_system_components_node_selector(workers) is False


@pytest.mark.parametrize("allowed", [None, True])
def test_node_selector_with_allowing_worker(allowed):
    workers = [Worker("a", False), Worker("b", allowed)]
    assert activate_system_components_node_selector(workers) is True


def test_prepare_without_provider_config_or_nodes():
    cluster = Cluster(kubernetes_version="1.20.0")
    assert prepare_network_config(make_network(), cluster) is None


def test_prepare_sets_autodetection_from_nodes():
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    config = prepare_network_config(make_network(), cluster)
    assert config.ipv4.auto_detection_method == f"cidr={NODES}"


def test_prepare_overrides_autodetection_of_provider_config():
    network = make_network({"ipv4": {"autoDetectionMethod": "interface=eth1", "pool": "vxlan"}})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    config = prepare_network_config(network, cluster)
    assert config.ipv4.auto_detection_method == f"cidr={NODES}"
    assert config.ipv4.pool == "vxlan"


def test_prepare_overlay_enabled_forces_bird_and_always():
    network = make_network({"overlay": {"enabled": True}, "backend": "none"})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    config = prepare_network_config(network, cluster)
    assert config.backend == "bird"
    assert config.ipv4.mode == "Always"


def test_prepare_overlay_disabled_forces_none_and_never():
    network = make_network({"overlay": {"enabled": False}, "backend": "bird"})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    config = prepare_network_config(network, cluster)
    assert config.backend == "none"
    assert config.ipv4.mode == "Never"


def test_prepare_forbids_disabled_kube_proxy_without_ebpf():
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES, kube_proxy_enabled=False)
    with pytest.raises(ForbiddenError) as info:
        prepare_network_config(make_network(), cluster)
    assert info.value.field_path == "spec.kubernetes.kubeProxy.enabled"


def test_prepare_forbids_disabled_kube_proxy_with_ebpf_off():
    network = make_network({"ebpfDataplane": {"enabled": False}})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES, kube_proxy_enabled=False)
    with pytest.raises(ForbiddenError):
        prepare_network_config(network, cluster)


def test_prepare_allows_disabled_kube_proxy_with_ebpf():
    network = make_network({"ebpfDataplane": {"enabled": True}})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES, kube_proxy_enabled=False)
    config = prepare_network_config(network, cluster)
    assert config.ebpf_dataplane.enabled is True


def test_prepare_rejects_unknown_field():
    network = make_network({"unknownField": 1})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    with pytest.raises(DecodeError):
        prepare_network_config(network, cluster)


def test_compute_network_status():
    status = compute_network_status(NetworkConfig())
    assert status.to_dict() == {
        "apiVersion": "calico.networking.extensions.gardener.cloud/v1alpha1",
        "kind": "NetworkStatus",
    }


def test_build_renders_calico_chart():
    renderer = RecordingRenderer()
    network = make_network()
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES, workers=[Worker("pool")])
    manifest = build_calico_manifest(renderer, network, cluster, IMAGES, make_gate())
    assert manifest == b"rendered-manifest"
    assert len(renderer.calls) == 1
    chart_path, release_name, namespace, values = renderer.calls[0]
    assert (chart_path, release_name, namespace) == (CALICO_CHART_PATH, RELEASE_NAME, "kube-system")
    assert values["global"] == {"podCIDR": network.pod_cidr, "nodeCIDR": NODES}
    assert values["nodeSelector"] == {"worker.gardener.cloud/system-components": "true"}
    assert values["config"]["ipv4"]["autoDetectionMethod"] == f"cidr={NODES}"
    assert values["config"]["nonPrivileged"] is False
    assert values["config"]["felix"]["bpfKubeProxyIPTablesCleanup"]["enabled"] is False
    assert values["images"] == IMAGES


def test_build_follows_non_privileged_gate():
    renderer = RecordingRenderer()
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    gate = make_gate(NonPrivilegedCalicoNode=True)
    build_calico_manifest(renderer, make_network(), cluster, IMAGES, gate)
    values = renderer.calls[0][3]
    assert values["config"]["nonPrivileged"] is True
    assert "nodeSelector" not in values


def test_build_with_kube_proxy_disabled_and_ebpf():
    renderer = RecordingRenderer()
    network = make_network({"ebpfDataplane": {"enabled": True}})
    cluster = Cluster(
        kubernetes_version="1.20.0",
        nodes_cidr=NODES,
        kube_proxy_enabled=False,
        wants_vpa=True,
        psp_disabled=True,
    )
    build_calico_manifest(renderer, network, cluster, IMAGES, make_gate(NonPrivilegedCalicoNode=True))
    values = renderer.calls[0][3]
    assert values["config"]["felix"]["bpfKubeProxyIPTablesCleanup"]["enabled"] is True
    assert values["config"]["felix"]["bpf"]["enabled"] is True
    assert values["config"]["nonPrivileged"] is False
    assert values["vpa"] == {"enabled": True}
    assert values["pspDisabled"] is True


def test_build_overlay_disabled_reaches_global_values():
    renderer = RecordingRenderer()
    network = make_network({"overlay": {"enabled": False}, "snatToUpstreamDNS": {"enabled": True}})
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES)
    build_calico_manifest(renderer, network, cluster, IMAGES, make_gate())
    values = renderer.calls[0][3]
    assert values["global"]["overlayEnabled"] == "false"
    assert values["global"]["snatToUpstreamDNSEnabled"] == "true"
    assert values["config"]["backend"] == "none"


def test_build_requires_nodes_cidr():
    renderer = RecordingRenderer()
    cluster = Cluster(kubernetes_version="1.20.0")
    with pytest.raises(ValueError):
        build_calico_manifest(renderer, make_network(), cluster, IMAGES, make_gate())
    assert renderer.calls == []


def test_build_forbidden_does_not_render():
    renderer = RecordingRenderer()
    cluster = Cluster(kubernetes_version="1.20.0", nodes_cidr=NODES, kube_proxy_enabled=False)
    with pytest.raises(ForbiddenError):
        build_calico_manifest(renderer, make_network(), cluster, IMAGES, make_gate())
    assert renderer.calls == []