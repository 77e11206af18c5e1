"""Admission validation of Shoot resources that use calico networking."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from calicoext.api import NetworkConfig, decode_network_config
from calicoext.constants import NAME, RELEASE_NAME

WEBHOOK_NAME = "validator"
WEBHOOK_PATH = "/webhooks/validate"
WEBHOOK_PROVIDER = NAME

_KUBE_PROXY_FIELD = "spec.kubernetes.kubeProxy.enabled"
_KUBE_PROXY_DETAIL = (
    "Disabling kube-proxy is forbidden in conjunction with calico "
    "without running in ebpf dataplane"
)


class ForbiddenError(ValueError):
    """Raised when a field of a shoot holds a value that is not allowed."""

    def __init__(self, field_path: str, detail: str) -> None:
        super().__init__(f"{field_path}: Forbidden: {detail}")
        self.field_path = field_path
        self.detail = detail


@dataclass
class Shoot:
    """The parts of a Shoot resource the validator looks at.

    ``kube_proxy_enabled`` is ``None`` when the shoot does not configure it.
    """

    name: str
    namespace: str = ""
    networking_type: str = ""
    networking_provider_config: bytes | str | Mapping | None = None
    kube_proxy_enabled: bool | None = None


def is_calico_shoot(obj: Any) -> bool:
    """Return whether ``obj`` is a Shoot networked by calico."""
    if obj is None or not isinstance(obj, Shoot):
        return False
    return obj.networking_type == RELEASE_NAME


class ShootValidator:
    """Validates created and updated shoots against calico's constraints."""

    def __init__(self, strict: bool = True) -> None:
        self.strict = strict

    def validate(self, new: Any, old: Any = None) -> None:
        """Validate ``new``; ``old`` is the previous object on update.

        Raises TypeError for objects that are not shoots, DecodeError for an
        invalid networking provider config and ForbiddenError for a forbidden
        combination of settings.
        """
        if not isinstance(new, Shoot):
            raise TypeError(f"wrong object type {type(new).__name__}")
        if old is not None and not isinstance(old, Shoot):
            raise TypeError(f"wrong object type {type(old).__name__} for old object")
        self._validate_shoot(new)

    def _decode_networking_config(self, raw: bytes | str | Mapping | None) -> NetworkConfig:
        return decode_network_config(raw, strict=self.strict)

    def _validate_shoot(self, shoot: Shoot) -> None:
        network_config = self._decode_networking_config(shoot.networking_provider_config)
        if shoot.kube_proxy_enabled is False:
            ebpf = network_config.ebpf_dataplane
            if ebpf is None or not ebpf.enabled:
                raise ForbiddenError(_KUBE_PROXY_FIELD, _KUBE_PROXY_DETAIL)