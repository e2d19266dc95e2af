"""
Velocity controller configuration
"""
from typing import Any, Dict, Optional

from .base_config import ConfigBase
from .vehicle_config import VehicleConfig
from ..controllers.pid_controller import ControlParams
from ..errors import ConfigValidationError


class ControllerConfig(ConfigBase):
    """Gains, limits and filter selectors of the velocity controller."""

    def get_default_config(self) -> Dict[str, Any]:
        return {
            "frequency": 50,  # Hz, odometry rate
            "pid": {
                "kp": [0.45, 0.45],
                "ki": [0.15, 0.15],
                "kd": [0.35, 0.35]
            },
            "windup_limit": [0.6, 0.6],
            "output_limit": [0.5, 0.5],  # normalized tilt, 1.0 == max_tilt_deg
            "reference_limit": [0.6, 0.6],  # m/s
            "set_point_weight": 1.0,
            "feedforward_gate": 0.25,  # remaining fraction of a reference step
            "filter": {
                "alpha": 0.5,
                "lowpass": True,
                "median": False,
                "derivative": False
            },
            "stale_guard": True,
            "latency_warning": 0.2  # s
        }

    def to_params(self, vehicle: Optional[VehicleConfig] = None) -> ControlParams:
        """Build the immutable controller parameters from this section."""
        if not self.frequency or self.frequency <= 0:
            raise ConfigValidationError("frequency must be positive")
        vehicle = vehicle if vehicle is not None else VehicleConfig()

        return ControlParams(
            kp=self.pid["kp"],
            ki=self.pid["ki"],
            kd=self.pid["kd"],
            windup_limit=self.windup_limit,
            output_limit=self.output_limit,
            reference_limit=self.reference_limit,
            set_point_weight=self.set_point_weight,
            filter_alpha=self.filter["alpha"],
            feedforward_gate=self.feedforward_gate,
            feedforward_gain=vehicle.feedforward_gain(),
            period=1.0 / self.frequency,
            lowpass=self.filter["lowpass"],
            median=self.filter["median"],
            derivative_filter=self.filter["derivative"],
            stale_guard=self.stale_guard,
            latency_warning=self.latency_warning
        )

    def validate(self) -> bool:
        self.to_params()
        return True
