"""
Horizontal velocity response to the tilt command, used to exercise the controller.
"""
from collections import deque
from typing import Optional
import numpy as np

from ..config.vehicle_config import VehicleConfig
from ..types import CommandVector, VelocitySample


class HorizontalVelocityModel:
    """
    Per-axis horizontal velocity under a commanded tilt and linear drag.

    ``dv/dt = gravity * tan(command * max_tilt) - drag_gain * v``, the same
    balance the controller's static feedforward is derived from. Commands
    reach the model after ``command_delay`` seconds.
    """

    def __init__(self, config: Optional[VehicleConfig] = None, command_delay: float = 0.0,
                 seed: Optional[int] = None):
        """
        Args:
            config: Vehicle constants. Defaults to ``VehicleConfig()``.
            command_delay: Transport delay between controller and vehicle (s).
            seed: Seed of the measurement noise generator.
        """
        self.config = config if config is not None else VehicleConfig()
        self.config.validate()
        self.gravity = self.config.gravity
        self.drag_gain = self.config.drag_gain
        self.max_tilt = np.radians(self.config.max_tilt_deg)
        self.noise = self.config.measurement_noise
        self.command_delay = command_delay
        self.rng = np.random.default_rng(seed)

        self.time = 0.0
        self.velocity = np.zeros(2)
        self._pending = deque()  # (apply_at, command)
        self._applied = np.zeros(2)

    @property
    def time_constant(self) -> float:
        return 1.0 / self.drag_gain

    def apply(self, command: CommandVector):
        """Queue a command; it takes effect after the transport delay."""
        self._pending.append((self.time + self.command_delay, command.as_array()))

    def advance(self, dt: float) -> np.ndarray:
        """Integrate over ``dt`` seconds and return the true velocity."""
        while self._pending and self._pending[0][0] <= self.time + 1e-12:
            _, self._applied = self._pending.popleft()

        acceleration = self.gravity * np.tan(self._applied * self.max_tilt) - self.drag_gain * self.velocity
        self.velocity = self.velocity + acceleration * dt
        self.time += dt
        return self.velocity.copy()

    def measure(self) -> VelocitySample:
        """Odometry sample with Gaussian noise, stamped with the model time."""
        velocity = self.velocity
        if self.noise > 0:
            velocity = velocity + self.rng.normal(0.0, self.noise, size=2)
        return VelocitySample.from_array(velocity, self.time)

    def __str__(self):
        return (f"HorizontalVelocityModel(tau={self.time_constant:.2f}s, "
                f"velocity=[{self.velocity[0]:.2f}, {self.velocity[1]:.2f}])")
