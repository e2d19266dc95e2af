"""
Vehicle configuration
"""
from typing import Any, Dict

from .base_config import ConfigBase
from ..controllers.pid_controller import static_feedforward_gain
from ..errors import ConfigValidationError


class VehicleConfig(ConfigBase):
    """Physical constants behind the feedforward path and the simulation model."""

    def get_default_config(self) -> Dict[str, Any]:
        return {
            "name": "Quadrotor",
            "drag_gain": 0.37,  # 1/s, horizontal linear drag per unit mass
            "gravity": 9.81,  # m/s^2
            "max_tilt_deg": 12.0,  # tilt at a normalized command of 1.0
            "measurement_noise": 0.01  # m/s, odometry noise std
        }

    def feedforward_gain(self) -> float:
        return static_feedforward_gain(self.drag_gain, self.gravity, self.max_tilt_deg)

    def validate(self) -> bool:
        for key in ("drag_gain", "gravity", "max_tilt_deg"):
            if self[key] <= 0:
                raise ConfigValidationError(f"{key} must be positive")
        if self.measurement_noise < 0:
            raise ConfigValidationError("measurement_noise must be non-negative")
        return True
