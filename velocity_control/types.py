"""
Data types exchanged with the velocity controller.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple
import numpy as np


class TrackingMode(Enum):
    """Per-axis tracking mode."""
    STEADY = "steady"
    TRANSIENT = "transient"  # just after a reference switch, feedforward armed


@dataclass(frozen=True)
class VelocityReference:
    """Desired horizontal velocity (m/s)."""
    x: float = 0.0
    y: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    @classmethod
    def from_array(cls, values) -> "VelocityReference":
        values = np.asarray(values, dtype=float)
        if values.shape != (2,):
            raise ValueError("reference must be a 2-element vector")
        return cls(float(values[0]), float(values[1]))


@dataclass(frozen=True)
class VelocitySample:
    """Measured horizontal velocity (m/s) and its capture time (s, monotonic)."""
    x: float
    y: float
    timestamp: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    @classmethod
    def from_array(cls, values, timestamp: float) -> "VelocitySample":
        values = np.asarray(values, dtype=float)
        if values.shape != (2,):
            raise ValueError("velocity must be a 2-element vector")
        return cls(float(values[0]), float(values[1]), float(timestamp))


@dataclass(frozen=True)
class CommandVector:
    """
    Normalized tilt command. ``held`` marks a re-emitted previous command
    after a skipped cycle.
    """
    x: float = 0.0
    y: float = 0.0
    held: bool = False

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    def magnitude(self) -> float:
        return float(np.hypot(self.x, self.y))


@dataclass
class ControlTerms:
    """Breakdown of one control cycle, kept for telemetry."""
    timestamp: float
    dt: float
    reference: np.ndarray                # applied (clamped) reference
    measurement: np.ndarray
    proportional: np.ndarray
    integral: np.ndarray
    derivative: np.ndarray
    pid_output: np.ndarray
    feedforward: np.ndarray
    command: np.ndarray
    modes: Tuple[TrackingMode, TrackingMode] = (TrackingMode.STEADY, TrackingMode.STEADY)
    latency: Optional[float] = None
    saturated: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=bool))

    def to_dict(self) -> dict:
        """Plain dict copy of the terms."""
        return {
            'timestamp': self.timestamp,
            'dt': self.dt,
            'reference': self.reference.copy(),
            'measurement': self.measurement.copy(),
            'proportional': self.proportional.copy(),
            'integral': self.integral.copy(),
            'derivative': self.derivative.copy(),
            'pid_output': self.pid_output.copy(),
            'feedforward': self.feedforward.copy(),
            'command': self.command.copy(),
            'modes': [mode.value for mode in self.modes],
            'latency': self.latency,
            'saturated': self.saturated.copy(),
        }
