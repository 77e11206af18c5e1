"""Extracting the calico network config from a Network resource."""

from __future__ import annotations

from calicoext.api import DecodeError, Network, NetworkConfig, decode_network_config


def network_config_from_network(network: Network) -> NetworkConfig:
    """Strictly decode the provider config of ``network``.

    Raises DecodeError when the provider config is missing or invalid.
    """
    if network.provider_config is None:
        raise DecodeError("provider config is not set on the network resource")
    return decode_network_config(network.provider_config, strict=True)