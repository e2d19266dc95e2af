"""
Error types raised or reported by the velocity control core.
"""


class VelocityControlError(Exception):
    """Base class for velocity control errors."""


class InvalidSampleError(VelocityControlError):
    """A measurement sample could not be used; the cycle was skipped."""


class InvalidTimingError(InvalidSampleError):
    """A measurement sample arrived with a non-positive or non-finite dt."""

    def __init__(self, dt: float, timestamp: float):
        super().__init__(f"invalid control period dt={dt!r} at t={timestamp!r}")
        self.dt = dt
        self.timestamp = timestamp


class ConfigValidationError(VelocityControlError, ValueError):
    """A configuration value is outside its physically sane range."""
