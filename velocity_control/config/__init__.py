"""
Configuration module
"""
from .base_config import ConfigBase
from .control_config import ControllerConfig
from .vehicle_config import VehicleConfig
from .latency_config import LatencyConfig


__all__ = [
    'ConfigBase',
    'ControllerConfig',
    'VehicleConfig',
    'LatencyConfig'
]
