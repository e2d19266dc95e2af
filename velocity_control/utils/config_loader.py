"""
Configuration loading and component construction.
"""
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
import time
import yaml

from ..config import ControllerConfig, LatencyConfig, VehicleConfig
from ..controllers import VelocityController
from ..latency import LatencyMonitor, ProbeLink, UdpProbeLink

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ConfigManager:
    """Holds the controller, vehicle and latency sections."""

    def __init__(self, config_dir: PathLike = "./configs"):
        """
        Args:
            config_dir: Directory used by ``save_configs`` and default file lookup.
        """
        self.config_dir = Path(config_dir)

        self.controller: Optional[ControllerConfig] = None
        self.vehicle: Optional[VehicleConfig] = None
        self.latency: Optional[LatencyConfig] = None

    def load_default(self):
        self.controller = ControllerConfig()
        self.vehicle = VehicleConfig()
        self.latency = LatencyConfig()
        return self

    def load_from_files(self, controller_config: Optional[PathLike] = None,
                        vehicle_config: Optional[PathLike] = None,
                        latency_config: Optional[PathLike] = None):
        """
        Load each section from its own file; missing sections use defaults.
        """
        self.controller = ControllerConfig.load(controller_config) if controller_config else ControllerConfig()
        self.vehicle = VehicleConfig.load(vehicle_config) if vehicle_config else VehicleConfig()
        self.latency = LatencyConfig.load(latency_config) if latency_config else LatencyConfig()
        return self

    def load_from_dict(self, config_dict: Dict[str, Any]):
        """
        Load from one combined dict with optional 'controller', 'vehicle'
        and 'latency' keys.
        """
        self.controller = ControllerConfig(config_dict.get('controller'))
        self.vehicle = VehicleConfig(config_dict.get('vehicle'))
        self.latency = LatencyConfig(config_dict.get('latency'))
        self.validate_all()
        return self

    def save_configs(self, prefix: str = "default"):
        """Write each section to ``<config_dir>/<prefix>_<section>.yaml``."""
        for section, config in self._sections().items():
            config.save(self.config_dir / f"{prefix}_{section}.yaml")

    def get_combined_config(self) -> Dict[str, Any]:
        return {section: config.to_dict() for section, config in self._sections().items()}

    def validate_all(self) -> bool:
        """Validate every loaded section; raises ConfigValidationError on the first failure."""
        for config in self._sections().values():
            config.validate()
        return True

    def _sections(self) -> Dict[str, Any]:
        sections = {
            'controller': self.controller,
            'vehicle': self.vehicle,
            'latency': self.latency,
        }
        return {name: config for name, config in sections.items() if config is not None}

    # ------------------------------------------------------------------
    # Component construction
    # ------------------------------------------------------------------
    def create_controller(self, latency_source: Optional[Callable[[], float]] = None,
                          name: str = "Velocity Controller") -> VelocityController:
        params = self.controller.to_params(self.vehicle)
        return VelocityController(params, latency_source=latency_source, name=name)

    def create_latency_monitor(self, link: Optional[ProbeLink] = None,
                               clock: Callable[[], float] = time.monotonic) -> LatencyMonitor:
        """
        Build a monitor; without an explicit link a UdpProbeLink to the
        configured host and port is used.
        """
        if link is None:
            link = UdpProbeLink(self.latency.host, self.latency.port, timeout=self.latency.timeout)
        return LatencyMonitor(link, period=self.latency.period,
                              initial_latency=self.latency.initial_latency, clock=clock)

    def __str__(self):
        return f"ConfigManager:\n" \
               f"  Controller: {'Loaded' if self.controller else 'Not loaded'}\n" \
               f"  Vehicle: {'Loaded' if self.vehicle else 'Not loaded'}\n" \
               f"  Latency: {'Loaded' if self.latency else 'Not loaded'}"


def load_config(config_path: Optional[PathLike] = None,
                config_dir: PathLike = "./configs") -> ConfigManager:
    """
    Load the full configuration.

    A combined YAML/JSON file is used when ``config_path`` is given. Otherwise
    ``<config_dir>/default_<section>.yaml`` files are picked up where present
    and defaults fill the rest.
    """
    config_manager = ConfigManager(config_dir)

    if config_path is not None:
        path = Path(config_path)
        with open(path, 'r') as f:
            if path.suffix in ('.yaml', '.yml'):
                config_dict = yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                config_dict = json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {config_path}")
        logger.info("Loaded config from %s", path)
        return config_manager.load_from_dict(config_dict)

    def existing(section):
        candidate = config_manager.config_dir / f"default_{section}.yaml"
        return candidate if candidate.exists() else None

    return config_manager.load_from_files(existing('controller'), existing('vehicle'), existing('latency'))
