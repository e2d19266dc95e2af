"""
Utilities module
"""
from .config_loader import ConfigManager, load_config
from .telemetry import TelemetryRecorder


__all__ = [
    'ConfigManager',
    'load_config',
    'TelemetryRecorder'
]
