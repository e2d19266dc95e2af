"""
PID parameter snapshot and the conditional anti-windup integrator.
"""
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Mapping
import numpy as np

from ..errors import ConfigValidationError

AXES = 2

_ARRAY_FIELDS = ('kp', 'ki', 'kd', 'windup_limit', 'output_limit', 'reference_limit')
_FLAG_FIELDS = ('lowpass', 'median', 'derivative_filter', 'stale_guard')


def static_feedforward_gain(drag_gain: float = 0.37, gravity: float = 9.81,
                            max_tilt_deg: float = 12.0) -> float:
    """
    Normalized tilt command per m/s that holds a velocity against linear drag.

    Holding ``v`` needs a horizontal acceleration ``drag_gain * v``, i.e. a
    small tilt of ``drag_gain * v / gravity`` rad, expressed as a fraction of
    the maximum commandable tilt.
    """
    return drag_gain / gravity * float(np.degrees(1.0)) / max_tilt_deg


def per_axis(value) -> np.ndarray:
    """Broadcast a scalar or 2-element sequence to a read-only per-axis array."""
    try:
        array = np.array(value, dtype=float) if hasattr(value, '__len__') else np.ones(AXES) * float(value)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"expected numbers, got {value!r}") from e
    if array.shape != (AXES,):
        raise ConfigValidationError(f"expected a scalar or {AXES} values, got {value!r}")
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class ControlParams:
    """
    Immutable tuning snapshot of the velocity controller.

    A new snapshot is built and validated for every reconfiguration and
    swapped in with a single assignment, so a running cycle never sees a
    half-updated gain set.
    """
    kp: Any = 0.45
    ki: Any = 0.15
    kd: Any = 0.35
    windup_limit: Any = 0.6
    output_limit: Any = 0.5
    reference_limit: Any = 0.6
    set_point_weight: float = 1.0
    filter_alpha: float = 0.5
    feedforward_gate: float = 0.25
    feedforward_gain: float = static_feedforward_gain()
    period: float = 0.02
    lowpass: bool = True
    median: bool = False
    derivative_filter: bool = False
    stale_guard: bool = True
    latency_warning: float = 0.2

    def __post_init__(self):
        for name in _ARRAY_FIELDS:
            object.__setattr__(self, name, per_axis(getattr(self, name)))
        for name in _FLAG_FIELDS:
            object.__setattr__(self, name, bool(getattr(self, name)))
        for name in ('set_point_weight', 'filter_alpha', 'feedforward_gate',
                     'feedforward_gain', 'period', 'latency_warning'):
            try:
                object.__setattr__(self, name, float(getattr(self, name)))
            except (TypeError, ValueError) as e:
                raise ConfigValidationError(f"{name} must be a number, got {getattr(self, name)!r}") from e
        self._validate()

    def _validate(self):
        for name in _ARRAY_FIELDS:
            if not np.all(np.isfinite(getattr(self, name))):
                raise ConfigValidationError(f"{name} must be finite")
        if np.any(self.kp <= 0):
            raise ConfigValidationError("kp must be positive")
        if np.any(self.ki < 0):
            raise ConfigValidationError("ki must be non-negative")
        if np.any(self.kd < 0):
            raise ConfigValidationError("kd must be non-negative")
        if np.any(self.windup_limit < 0):
            raise ConfigValidationError("windup_limit must be non-negative")
        if np.any(self.output_limit <= 0):
            raise ConfigValidationError("output_limit must be positive")
        if np.any(self.reference_limit <= 0):
            raise ConfigValidationError("reference_limit must be positive")
        if not 0.0 < self.set_point_weight <= 1.0:
            raise ConfigValidationError("set_point_weight must be in (0, 1]")
        if not 0.0 < self.filter_alpha <= 1.0:
            raise ConfigValidationError("filter_alpha must be in (0, 1]")
        if not 0.0 < self.feedforward_gate <= 1.0:
            raise ConfigValidationError("feedforward_gate must be in (0, 1]")
        if not np.isfinite(self.feedforward_gain) or self.feedforward_gain < 0:
            raise ConfigValidationError("feedforward_gain must be a non-negative number")
        if not np.isfinite(self.period) or self.period <= 0:
            raise ConfigValidationError("period must be positive")
        if not self.latency_warning > 0:
            raise ConfigValidationError("latency_warning must be positive")

    def replace(self, **changes) -> "ControlParams":
        """Validated copy with the named parameters replaced."""
        names = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(changes) - names)
        if unknown:
            raise ConfigValidationError(f"unknown parameters: {', '.join(unknown)}")
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ControlParams":
        return cls().replace(**dict(mapping))

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.tolist() if isinstance(value, np.ndarray) else value
        return result


def conditional_integrate(integral: np.ndarray, contribution: np.ndarray,
                          windup_limit: np.ndarray) -> np.ndarray:
    """
    Advance the integral by ``contribution`` with conditional anti-windup.

    Where the contribution opposes the sign of the running integral the
    integral unwinds toward zero without crossing it. Everywhere else it
    accumulates. The result is always clamped to ``±windup_limit`` so a
    limit lowered by reconfiguration holds immediately.

    Args:
        integral: Current per-axis integral.
        contribution: ``error * dt`` per axis.
        windup_limit: Per-axis bound.

    Returns:
        The new per-axis integral.
    """
    candidate = integral + contribution
    unwinding = np.sign(integral) * np.sign(contribution) < 0

    toward_zero = np.where(integral > 0, np.maximum(candidate, 0.0), np.minimum(candidate, 0.0))
    updated = np.where(unwinding, toward_zero, candidate)
    return np.clip(updated, -windup_limit, windup_limit)
