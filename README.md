# calicoext

`calicoext` computes how Calico networking should be set up for a
Kubernetes shoot cluster. It decodes the Calico network configuration,
merges it with defaults into the values of the Calico chart, hands those
to a chart renderer you provide, loads the controller configuration file,
manages feature gates, and checks shoots against Calico's constraints.

It works on plain Python objects. You pass in the network, a description
of the cluster, the image references and a renderer; the package returns
values or a rendered manifest, or raises when a setting is not allowed.

## Installation

```
pip install .
pip install ".[test]"   # with pytest, to run the tests
```

The only runtime dependency is PyYAML.

## Modules

- `calicoext.constants` – the extension type (`TYPE = "calico"`), its name,
  the seven image names, the release name and the chart paths
  (`CALICO_CHART_PATH`, `CALICO_MONITORING_CHART_PATH`).
- `calicoext.api` – the network configuration API.
  - Enums `Backend` (`bird`, `none`, `vxlan`), `IPv4PoolMode` (`Always`,
    `Never`, `CrossSubnet`, `Off`) and `IPv4Pool` (`ipip`, `vxlan`).
  - Dataclasses `IPv4`, `IPAM`, `Typha`, `EbpfDataplane`, `Overlay`,
    `SnatToUpstreamDNS`, `NetworkConfig`, `NetworkStatus` and `Network`.
  - `NetworkConfig.from_dict(data)` builds a config from its wire form and
    rejects unknown fields; `NetworkConfig.to_dict()` returns the wire
    form without unset optional fields.
  - `decode_network_config(raw, strict=True)` decodes JSON or YAML given
    as bytes, a string or a mapping. `None` gives an empty config. In
    strict mode unknown and duplicate fields are rejected. Errors, as well
    as an `apiVersion` or `kind` other than the Calico `NetworkConfig`,
    raise `DecodeError`.
- `calicoext.helper` – `network_config_from_network(network)` strictly
  decodes a `Network`'s provider config and raises `DecodeError` if it is
  missing.
- `calicoext.imagevector` – `ImageVector.read(text)` parses a document with
  a top-level `images` list (`name`, `repository`, `tag`, …);
  `ImageVector.find_image(name)` returns `repository:tag` (or
  `repository@sha256:…`) of the first matching entry and raises
  `ImageNotFoundError` otherwise; `calico_images(vector)` returns a mapping
  of all seven image names the Calico chart needs.
- `calicoext.charts`
  - `generate_calico_config(config, kube_proxy_enabled, non_privileged)`
    merges a `NetworkConfig` (or `None`) into the default settings.
  - `compute_calico_chart_values(network, config, worker_system_components_activated, images, wants_vpa, kube_proxy_enabled, is_psp_disabled, non_privileged, node_cidr)`
    builds the full chart values: `vpa`, `images`, `global`, `config`,
    `pspDisabled`, and `nodeSelector` when system components are
    activated.
  - `render_calico_chart(renderer, ...)` (same arguments after the
    renderer) calls `renderer.render(chart_path, release_name, namespace, values)`
    with the Calico chart path, release `calico` and namespace
    `kube-system`, and returns the manifest as bytes.
  - `ChartRenderer` is the protocol a renderer satisfies; invalid values
    raise `ChartValuesError`.
- `calicoext.features` – `FeatureGate` with `add(specs)`,
  `enabled(name)`, `set_from_map(values)` and `known_features()`;
  `FeatureSpec`, `PreRelease`, the shared `FEATURE_GATE`, and
  `register_feature_gates(gate=None)`, which registers the
  `NonPrivilegedCalicoNode` gate (alpha, off by default).
- `calicoext.config` – `ControllerConfiguration` (with
  `ClientConnectionConfiguration`, `HealthCheckConfig` and
  `feature_gates`), `load(data)` and `load_from_file(filename)`. Empty
  input gives an empty configuration; a missing or wrong `kind`/`apiVersion`
  or a bad field raises `ConfigLoadError`. `healthCheckConfig.syncPeriod`
  takes durations such as `30s` or `1h2m3.5s`.
- `calicoext.options` – `ConfigOptions` adds `--config-file` to an
  `argparse` parser, `complete()` loads the file (raising `ValueError`
  when no path is set) and `completed()` returns a `Config`, whose
  `options()` returns a copy of the configuration and
  `apply_health_check_config(default)` returns the configured health
  check settings or the given default.
- `calicoext.validator` – `ShootValidator.validate(new, old=None)` checks a
  `Shoot`; `is_calico_shoot(obj)` tells whether a shoot uses Calico.
  Disabling kube-proxy without the eBPF dataplane raises `ForbiddenError`.
- `calicoext.reconcile` – `Worker` and `Cluster` describe the shoot;
  `prepare_network_config(network, cluster)`,
  `activate_system_components_node_selector(workers)`,
  `compute_network_status(config)` and
  `build_calico_manifest(renderer, network, cluster, images, feature_gate=None)`.

## Examples

Decoding a configuration and computing Calico settings:

```python
from calicoext.api import decode_network_config
from calicoext.charts import generate_calico_config

raw = b"""
apiVersion: calico.networking.extensions.gardener.cloud/v1alpha1
kind: NetworkConfig
backend: vxlan
ipv4:
  pool: vxlan
  mode: CrossSubnet
"""

config = decode_network_config(raw, strict=True)
calico = generate_calico_config(config, kube_proxy_enabled=True, non_privileged=False)
assert calico["backend"] == "vxlan"
assert calico["ipv4"]["mode"] == "CrossSubnet"
```

Rendering the chart for a cluster:

```python
from pathlib import Path

from calicoext.api import Network
from calicoext.features import FEATURE_GATE, register_feature_gates
from calicoext.imagevector import ImageVector, calico_images
from calicoext.reconcile import Cluster, Worker, build_calico_manifest


class MyRenderer:
    def render(self, chart_path, release_name, namespace, values):
        ...  # render the chart at chart_path with values and return the manifest


register_feature_gates()
FEATURE_GATE.set_from_map({"NonPrivilegedCalicoNode": True})

images = calico_images(ImageVector.read(Path("images.yaml").read_text()))
network = Network(name="foo", namespace="bar", pod_cidr="100.96.0.0/11")
cluster = Cluster(
    kubernetes_version="1.25.0",
    nodes_cidr="10.250.0.0/16",
    workers=[Worker(name="pool-a")],
)

manifest = build_calico_manifest(MyRenderer(), network, cluster, images)
```

`build_calico_manifest` uses the shared `FEATURE_GATE` unless another gate
is passed; call `register_feature_gates()` on it first, since asking an
unregistered feature raises `KeyError`. The cluster must have a nodes CIDR,
otherwise `ValueError` is raised.

Loading the controller configuration from the command line:

```python
import argparse

from calicoext.options import ConfigOptions

opts = ConfigOptions()
parser = argparse.ArgumentParser()
opts.add_arguments(parser)
parser.parse_args(["--config-file", "config.yaml"], namespace=opts)
opts.complete()
configuration = opts.completed().options()
```

## Behaviour

Without a network configuration the chart values use the `bird` backend,
an `ipip` pool in `Always` mode, `host-local` IPAM with subnet
`usePodCidr`, Typha and kube-controllers enabled, a veth MTU of `1440`,
and monitoring on ports `9091` (Felix) and `9093` (Typha).

- Backend `none` disables kube-controllers and Felix IP-in-IP and sets the
  pool mode to `Never`.
- An enabled eBPF dataplane turns on Felix BPF and forces
  `nonPrivileged` off; kube-proxy disabled turns on the BPF kube-proxy
  iptables cleanup.
- The deprecated `ipip` and `ipAutodetectionMethod` fields are honoured
  only when `ipv4` is not set.
- `prepare_network_config` sets the IPv4 autodetection method to
  `cidr=<nodes CIDR>`; an enabled overlay forces backend `bird` and mode
  `Always`, a disabled one backend `none` and mode `Never`.
- With an overlay set, `global.overlayEnabled` is added to the values, and
  with the overlay disabled and SNAT to upstream DNS set,
  `global.snatToUpstreamDNSEnabled` as well.
- Unsupported backend, pool or mode values raise `ChartValuesError`
  rather than being ignored. Disabling kube-proxy without the eBPF
  dataplane is rejected by both the shoot validator and
  `prepare_network_config`.

## What it does not do

The package has no command and runs no controller or webhook server. It
does not connect to a cluster: it does not watch Network resources,
create the secret and managed resource for the rendered manifest, apply
or delete the monitoring configuration, patch a Network's status, or run
health checks. It does not ship a chart renderer or an image list; you
provide both. Image references are not overridden from the environment.