"""
Latency probe configuration
"""
from typing import Any, Dict

from .base_config import ConfigBase
from ..errors import ConfigValidationError


class LatencyConfig(ConfigBase):
    """Round-trip probe settings."""

    def get_default_config(self) -> Dict[str, Any]:
        return {
            "period": 0.5,  # s between probes
            "initial_latency": 0.0,  # s, reported before the first echo
            "host": "127.0.0.1",  # echo responder
            "port": 9750,
            "timeout": 0.05  # s, socket read timeout per poll
        }

    def validate(self) -> bool:
        if self.period <= 0:
            raise ConfigValidationError("period must be positive")
        if self.initial_latency < 0:
            raise ConfigValidationError("initial_latency must be non-negative")
        if not 0 < int(self.port) < 65536:
            raise ConfigValidationError("port must be in 1..65535")
        if self.timeout <= 0:
            raise ConfigValidationError("timeout must be positive")
        return True
