"""Feature gates of the networking extension."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

NON_PRIVILEGED_CALICO_NODE = "NonPrivilegedCalicoNode"
"""Runs the long-lived calico-node container in non-privileged, non-root mode."""

ALL_ALPHA = "AllAlpha"
ALL_BETA = "AllBeta"


class PreRelease(str, Enum):
    """Maturity stage of a feature."""

    ALPHA = "ALPHA"
    BETA = "BETA"
    GA = ""
    DEPRECATED = "DEPRECATED"


@dataclass(frozen=True)
class FeatureSpec:
    """Default state and maturity of a feature."""

    default: bool = False
    lock_to_default: bool = False
    pre_release: PreRelease = PreRelease.GA


class FeatureGate:
    """A set of known features, each of which is enabled or disabled."""

    def __init__(self) -> None:
        self._known: dict[str, FeatureSpec] = {
            ALL_ALPHA: FeatureSpec(default=False, pre_release=PreRelease.ALPHA),
            ALL_BETA: FeatureSpec(default=False, pre_release=PreRelease.BETA),
        }
        self._enabled: dict[str, bool] = {}

    def add(self, specs: Mapping[str, FeatureSpec]) -> None:
        """Register features; re-adding one is allowed only with the same spec."""
        known = dict(self._known)
        for name, spec in specs.items():
            existing = known.get(name)
            if existing is not None:
                if existing == spec:
                    continue
                raise ValueError(f"feature gate {name} with different spec already exists: {existing}")
            known[name] = spec
        self._known = known

    def enabled(self, name: str) -> bool:
        """Return whether the feature is on; unknown features raise KeyError."""
        if name in self._enabled:
            return self._enabled[name]
        spec = self._known.get(name)
        if spec is None:
            raise KeyError(f'feature "{name}" is not registered in FeatureGate')
        return spec.default

    def set_from_map(self, values: Mapping[str, bool] | None) -> None:
        """Set features from a name-to-bool map; nothing changes on error."""
        enabled = dict(self._enabled)
        for name, value in (values or {}).items():
            spec = self._known.get(name)
            if spec is None:
                raise ValueError(f"unrecognized feature gate: {name}")
            if spec.lock_to_default and spec.default != value:
                raise ValueError(
                    f"cannot set feature gate {name} to {value}, "
                    f"feature is locked to {spec.default}"
                )
            enabled[name] = bool(value)
            if spec.pre_release is PreRelease.DEPRECATED:
                logger.warning(
                    "Setting deprecated feature gate %s=%s. It will be removed in a future release.",
                    name,
                    value,
                )
            elif spec.pre_release is PreRelease.GA:
                logger.warning(
                    "Setting GA feature gate %s=%s. It will be removed in a future release.",
                    name,
                    value,
                )
        self._enabled = enabled

    def known_features(self) -> list[str]:
        """Return the registered feature names, sorted."""
        return sorted(self._known)


FEATURE_GATE = FeatureGate()
"""The shared feature gate of the extension."""

_FEATURE_SPECS = {
    NON_PRIVILEGED_CALICO_NODE: FeatureSpec(default=False, pre_release=PreRelease.ALPHA),
}


def register_feature_gates(gate: FeatureGate | None = None) -> FeatureGate:
    """Register the extension's features with ``gate`` (the shared gate by default)."""
    target = FEATURE_GATE if gate is None else gate
    target.add(_FEATURE_SPECS)
    return target