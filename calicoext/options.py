"""Command line options that supply the controller configuration."""

from __future__ import annotations

import argparse
import copy
from dataclasses import dataclass, field

from calicoext.config import ControllerConfiguration, HealthCheckConfig, load_from_file


@dataclass
class Config:
    """A completed controller configuration."""

    config: ControllerConfiguration

    def options(self) -> ControllerConfiguration:
        """Return an independent copy of the configuration."""
        return copy.deepcopy(self.config)

    def apply_health_check_config(self, health_check_config: HealthCheckConfig) -> HealthCheckConfig:
        """Return the configured health check settings, or ``health_check_config`` if none are set."""
        if self.config.health_check_config is not None:
            return copy.deepcopy(self.config.health_check_config)
        return health_check_config


@dataclass
class ConfigOptions:
    """Options naming the controller configuration file."""

    config_file_path: str = ""
    _config: Config | None = field(default=None, init=False, repr=False)

    def complete(self) -> None:
        """Load the configuration file; raises ValueError if no path is set."""
        if not self.config_file_path:
            raise ValueError("config file path not set")
        self._config = Config(load_from_file(self.config_file_path))

    def completed(self) -> Config | None:
        """Return the completed Config; only meaningful after ``complete``."""
        return self._config

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Register ``--config-file``; parse with ``namespace=self`` to fill this object."""
        parser.add_argument(
            "--config-file",
            dest="config_file_path",
            default=self.config_file_path,
            help="path to the controller manager configuration file",
        )