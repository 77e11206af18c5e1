"""Calico network configuration, chart values, feature gates and shoot validation."""

__version__ = "0.1.0"