import json

import pytest

from calicoext.api import (
    API_VERSION,
    IPAM,
    IPv4,
    Backend,
    DecodeError,
    EbpfDataplane,
    IPv4Pool,
    IPv4PoolMode,
    NetworkConfig,
    NetworkStatus,
    Overlay,
    SnatToUpstreamDNS,
    Typha,
    decode_network_config,
)


def _full_dict():
    return {
        "apiVersion": API_VERSION,
        "kind": "NetworkConfig",
        "backend": "vxlan",
        "ipam": {"type": "host-local", "cidr": "12.0.0.0/8"},
        "ipv4": {"pool": "vxlan", "mode": "CrossSubnet", "autoDetectionMethod": "interface=eth1"},
        "typha": {"enabled": False},
        "vethMTU": "1430",
        "ebpfDataplane": {"enabled": True},
        "overlay": {"enabled": False},
        "snatToUpstreamDNS": {"enabled": True},
    }


def test_enum_values_serialise_as_wire_strings():
    config = NetworkConfig(
        backend=Backend.VXLAN,
        ipv4=IPv4(pool=IPv4Pool.IPIP, mode=IPv4PoolMode.CROSS_SUBNET),
    )
    assert config.to_dict() == {
        "backend": "vxlan",
        "ipv4": {"pool": "ipip", "mode": "CrossSubnet"},
    }
    decoded = decode_network_config({"backend": "none", "ipv4": {"mode": "Always"}})
    assert decoded.backend == Backend.NONE
    assert str(decoded.ipv4.mode) == "Always"
    assert f"{decoded.backend}" == "none"


def test_decode_json_bytes():
    config = decode_network_config(json.dumps(_full_dict()).encode())
    assert config.backend == Backend.VXLAN
    assert config.ipam == IPAM(type="host-local", cidr="12.0.0.0/8")
    assert config.ipv4 == IPv4(
        pool=IPv4Pool.VXLAN,
        mode=IPv4PoolMode.CROSS_SUBNET,
        auto_detection_method="interface=eth1",
    )
    assert config.typha == Typha(enabled=False)
    assert config.veth_mtu == "1430"
    assert config.ebpf_dataplane == EbpfDataplane(enabled=True)
    assert config.overlay == Overlay(enabled=False)
    assert config.snat_to_upstream_dns == SnatToUpstreamDNS(enabled=True)


def test_decode_yaml_text():
    text = (
        f"apiVersion: {API_VERSION}\n"
        "kind: NetworkConfig\n"
        "backend: bird\n"
        "ipip: CrossSubnet\n"
        "ipAutodetectionMethod: interface=eth1\n"
    )
    config = decode_network_config(text)
    assert config.backend == "bird"
    assert config.ipip == "CrossSubnet"
    assert config.ip_autodetection_method == "interface=eth1"
    assert config.ipv4 is None


def test_decode_accepts_mapping():
    config = decode_network_config({"backend": "none"})
    assert config == NetworkConfig(backend=Backend.NONE)


def test_round_trip_through_dict():
    original = _full_dict()
    config = NetworkConfig.from_dict(original)
    assert config.to_dict() == original
    assert NetworkConfig.from_dict(config.to_dict()) == config


def test_to_dict_omits_unset_fields():
    assert NetworkConfig(backend=Backend.BIRD).to_dict() == {"backend": "bird"}
    assert NetworkConfig().to_dict() == {}


def test_ipam_type_and_switches_always_emitted():
    config = NetworkConfig(ipam=IPAM(), typha=Typha())
    assert config.to_dict() == {"ipam": {"type": ""}, "typha": {"enabled": False}}


def test_unknown_field_strict_and_lenient():
    raw = json.dumps({"backend": "bird", "foo": 1})
    with pytest.raises(DecodeError, match='unknown field "foo"'):
        decode_network_config(raw, strict=True)
    assert decode_network_config(raw, strict=False).backend == "bird"


def test_unknown_nested_field_reports_path():
    raw = json.dumps({"ipv4": {"pool": "ipip", "bar": "x"}})
    with pytest.raises(DecodeError, match='"ipv4.bar"'):
        decode_network_config(raw)
    assert decode_network_config(raw, strict=False).ipv4 == IPv4(pool="ipip")


def test_from_dict_rejects_unknown_fields():
    with pytest.raises(DecodeError):
        NetworkConfig.from_dict({"typha": {"enabled": True, "extra": True}})


def test_type_meta_is_optional():
    config = decode_network_config('{"vethMTU": "1430"}')
    assert config.api_version == ""
    assert config.kind == ""
    assert config.veth_mtu == "1430"


def test_wrong_api_version_rejected():
    with pytest.raises(DecodeError):
        decode_network_config({"apiVersion": "other/v1", "kind": "NetworkConfig"})


def test_wrong_kind_rejected():
    with pytest.raises(DecodeError):
        decode_network_config({"apiVersion": API_VERSION, "kind": "NetworkStatus"})


def test_duplicate_key_strict_and_lenient():
    raw = '{"backend": "bird", "backend": "vxlan"}'
    with pytest.raises(DecodeError, match="duplicate"):
        decode_network_config(raw, strict=True)
    assert decode_network_config(raw, strict=False).backend == "vxlan"


def test_none_gives_empty_config():
    assert decode_network_config(None) == NetworkConfig()


@pytest.mark.parametrize("raw", [b"", "   ", "[1, 2]", "just text", b"\xff\xfe"])
def test_invalid_documents_rejected(raw):
    with pytest.raises(DecodeError):
        decode_network_config(raw)


@pytest.mark.parametrize(
    "data",
    [
        {"typha": {"enabled": "true"}},
        {"vethMTU": 1430},
        {"ipam": "host-local"},
        {"ipv4": {"mode": ["Always"]}},
    ],
)
def test_wrong_value_types_rejected(data):
    with pytest.raises(DecodeError):
        decode_network_config(data)


def test_unsupported_values_are_kept_for_later_validation():
    config = decode_network_config({"backend": "invalid", "ipv4": {"mode": "invalid"}})
    assert config.backend == "invalid"
    assert config.ipv4.mode == "invalid"


def test_null_values_treated_as_unset():
    config = decode_network_config({"backend": None, "typha": {"enabled": None}})
    assert config.backend is None
    assert config.typha == Typha(enabled=False)


def test_network_status_to_dict():
    assert NetworkStatus().to_dict() == {"apiVersion": API_VERSION, "kind": "NetworkStatus"}
    assert NetworkStatus(api_version="", kind="").to_dict() == {}