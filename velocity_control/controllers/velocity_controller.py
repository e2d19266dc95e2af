"""
Horizontal velocity controller producing a saturated 2-axis tilt command.

PI feedback on a set-point weighted error, derivative on the filtered
measurement, conditional anti-windup with reset on reference change, and a
feedforward path armed by reference switches and gated by tracking progress.
"""
import logging
from typing import Callable, Optional, Tuple, Union
import numpy as np

from .base import ControllerBase
from .filters import LowPassFilter, MedianFilter
from .pid_controller import AXES, ControlParams, conditional_integrate
from ..errors import InvalidSampleError, InvalidTimingError
from ..types import CommandVector, ControlTerms, TrackingMode, VelocityReference, VelocitySample

logger = logging.getLogger(__name__)

FEEDFORWARD_BLEND = 0.5
MEDIAN_WINDOW = 3


class VelocityController(ControllerBase):
    """
    Two-axis velocity tracking controller.

    ``set_reference`` and ``step`` must be called from one control thread.
    ``reconfigure`` may be called from any thread: it swaps an immutable
    ``ControlParams`` snapshot which ``step`` reads once per cycle.
    """

    def __init__(self, params: Optional[ControlParams] = None,
                 latency_source: Optional[Callable[[], float]] = None,
                 name: str = "Velocity Controller"):
        """
        Args:
            params: Initial tuning. Defaults to ``ControlParams()``.
            latency_source: Non-blocking callable returning the latest
                round-trip latency in seconds, e.g. ``LatencyMonitor.current_latency``.
            name: Controller name used in logs.
        """
        super().__init__(name)
        self._params = params if params is not None else ControlParams()
        self.latency_source = latency_source

        self._lowpass = LowPassFilter(AXES)
        self._derivative_lowpass = LowPassFilter(AXES)
        self._median = MedianFilter(AXES, window=MEDIAN_WINDOW)
        self.reset()

    def reset(self):
        self._reference = np.zeros(AXES)
        self._reference_at_switch = np.zeros(AXES)
        self._modes = [TrackingMode.STEADY] * AXES
        self._integral = np.zeros(AXES)
        self._filtered = np.zeros(AXES)
        self._previous_measurement = np.zeros(AXES)
        self._lowpass.reset()
        self._derivative_lowpass.reset()
        self._median.reset()
        self._previous_sample_time: Optional[float] = None
        self._applied_reference = np.zeros(AXES)
        self._last_command = self.hover_command()
        self._terms: Optional[ControlTerms] = None
        self._latency_high = False
        self.last_error: Optional[InvalidSampleError] = None

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def set_reference(self, reference: Union[VelocityReference, np.ndarray, Tuple[float, float]]):
        """
        Store a new velocity reference.

        Every axis whose clamped component changed snapshots its previous
        clamped value, enters TRANSIENT mode (feedforward armed) and restarts
        its integral. Axes whose change is hidden by ``reference_limit`` are
        left alone, like unchanged ones.
        """
        if not isinstance(reference, VelocityReference):
            reference = VelocityReference.from_array(reference)
        new_reference = reference.as_array()
        if not np.all(np.isfinite(new_reference)):
            raise ValueError(f"reference must be finite, got {reference}")

        limit = self._params.reference_limit
        previous = np.clip(self._reference, -limit, limit)
        changed = np.clip(new_reference, -limit, limit) != previous
        for axis in np.flatnonzero(changed):
            self._reference_at_switch[axis] = previous[axis]
            self._modes[axis] = TrackingMode.TRANSIENT
            self._integral[axis] = 0.0

        if changed.any():
            logger.debug("%s: reference switch %s -> %s", self.name, self._reference, new_reference)
        self._reference = new_reference

    def reconfigure(self, params: Optional[ControlParams] = None, **changes) -> ControlParams:
        """
        Replace the tuning parameters without touching the integral or filters.

        Args:
            params: A complete new snapshot. Defaults to the current one.
            **changes: Named parameters to override, e.g. ``kp=0.5, windup_limit=0.4``.

        Returns:
            The snapshot now in use.

        Raises:
            ConfigValidationError: A value is out of range or unknown. The
                previous parameters stay in effect.
        """
        base = params if params is not None else self._params
        if not isinstance(base, ControlParams):
            raise TypeError("params must be a ControlParams instance")
        new_params = base.replace(**changes) if changes else base

        self._params = new_params
        logger.info("%s reconfigured: Kp=%s Ki=%s Kd=%s windup=%s limit=%s",
                    self.name, new_params.kp, new_params.ki, new_params.kd,
                    new_params.windup_limit, new_params.output_limit)
        return new_params

    # ------------------------------------------------------------------
    # Control cycle
    # ------------------------------------------------------------------
    def step(self, sample: VelocitySample) -> CommandVector:
        """
        Run one control cycle on a new measurement sample.

        An unusable sample (non-positive dt, non-finite velocity) skips the
        cycle: the previous command is returned with ``held=True`` and the
        error is kept in ``last_error``.
        """
        params = self._params
        timestamp = float(sample.timestamp)

        if self._previous_sample_time is None:
            dt = params.period
        else:
            dt = timestamp - self._previous_sample_time
        if not (np.isfinite(dt) and dt > 0):
            return self._hold(InvalidTimingError(dt, timestamp))

        measurement = sample.as_array()
        if not np.all(np.isfinite(measurement)):
            return self._hold(InvalidSampleError(f"non-finite velocity {measurement} at t={timestamp}"))

        has_history = self._previous_sample_time is not None
        if not has_history:
            self._seed_filters(measurement)
        reference = np.clip(self._reference, -params.reference_limit, params.reference_limit)

        # Set-point weighting only softens the proportional path
        proportional_error = params.set_point_weight * reference - measurement
        integral_error = reference - measurement

        # Derivative on the filtered measurement
        median = self._median.update(measurement)
        raw = median if params.median else measurement
        filtered = self._lowpass.update(raw, params.filter_alpha if params.lowpass else 1.0)
        derivative = -(filtered - self._filtered) / dt
        derivative = self._derivative_lowpass.update(
            derivative, params.filter_alpha if params.derivative_filter else 1.0)

        integral = conditional_integrate(self._integral, integral_error * dt, params.windup_limit)
        if params.stale_guard and has_history:
            stale = (filtered == self._filtered) & (measurement == self._previous_measurement)
            integral = np.where(stale, 0.0, integral)

        p_term = params.kp * proportional_error
        i_term = params.ki * integral
        d_term = params.kd * derivative
        pid_raw = p_term + i_term + d_term
        pid_output = np.clip(pid_raw, -params.output_limit, params.output_limit)

        latency = self._read_latency(params)

        feedforward, modes = self._gate_feedforward(params, reference, measurement)

        command_raw = FEEDFORWARD_BLEND * feedforward + pid_output
        command = np.clip(command_raw, -params.output_limit, params.output_limit)
        saturated = (np.abs(pid_raw) > params.output_limit) | (np.abs(command_raw) > params.output_limit)
        if saturated.any():
            logger.debug("%s: command saturated on axes %s (raw %s)",
                         self.name, np.flatnonzero(saturated).tolist(), command_raw)

        self._integral = integral
        self._filtered = filtered
        self._previous_measurement = measurement
        self._modes = modes
        self._previous_sample_time = timestamp
        self._applied_reference = reference
        self._last_command = CommandVector(float(command[0]), float(command[1]))
        self._terms = ControlTerms(
            timestamp=timestamp,
            dt=dt,
            reference=reference,
            measurement=measurement,
            proportional=p_term,
            integral=i_term,
            derivative=d_term,
            pid_output=pid_output,
            feedforward=feedforward,
            command=command,
            modes=tuple(modes),
            latency=latency,
            saturated=saturated,
        )

        logger.debug("%s: dt=%.4f ref=%s vel=%s err=%s P=%s I=%s D=%s ff=%s cmd=%s",
                     self.name, dt, reference, measurement, proportional_error,
                     p_term, i_term, d_term, feedforward, command)
        return self._last_command

    def _seed_filters(self, measurement: np.ndarray):
        """Start the filters at the first measurement so the first derivative is zero."""
        self._median.reset()
        self._lowpass.reset(measurement)
        self._derivative_lowpass.reset()
        self._filtered = measurement.copy()
        self._previous_measurement = measurement.copy()

    def _gate_feedforward(self, params: ControlParams, reference: np.ndarray,
                          measurement: np.ndarray):
        """
        Feedforward per axis and the resulting modes.

        An axis falls back to STEADY once the remaining error is below
        ``feedforward_gate`` times the size of the last reference step.
        """
        switched_from = np.clip(self._reference_at_switch, -params.reference_limit, params.reference_limit)
        step_size = np.abs(reference - switched_from)
        remaining = np.abs(reference - measurement)

        modes = list(self._modes)
        for axis in range(AXES):
            if modes[axis] is not TrackingMode.TRANSIENT:
                continue
            if step_size[axis] == 0.0 or remaining[axis] / step_size[axis] < params.feedforward_gate:
                modes[axis] = TrackingMode.STEADY
                logger.debug("%s: axis %d settled, feedforward off", self.name, axis)

        active = np.array([mode is TrackingMode.TRANSIENT for mode in modes])
        feedforward = np.where(active, params.feedforward_gain * reference, 0.0)
        return feedforward, modes

    def _read_latency(self, params: ControlParams) -> Optional[float]:
        if self.latency_source is None:
            return None
        latency = float(self.latency_source())
        high = latency > params.latency_warning
        if high and not self._latency_high:
            logger.warning("%s: link latency %.3f s above %.3f s, measurements may be stale",
                           self.name, latency, params.latency_warning)
        elif self._latency_high and not high:
            logger.info("%s: link latency back to %.3f s", self.name, latency)
        self._latency_high = high
        return latency

    def _hold(self, error: InvalidSampleError) -> CommandVector:
        self.last_error = error
        logger.warning("%s: skipping control cycle, holding previous command: %s", self.name, error)
        return CommandVector(self._last_command.x, self._last_command.y, held=True)

    # ------------------------------------------------------------------
    # State views
    # ------------------------------------------------------------------
    @property
    def params(self) -> ControlParams:
        return self._params

    @property
    def reference(self) -> np.ndarray:
        return self._reference.copy()

    @property
    def reference_at_switch(self) -> np.ndarray:
        return self._reference_at_switch.copy()

    @property
    def applied_reference(self) -> VelocityReference:
        """Clamped reference used in the last cycle, for telemetry."""
        return VelocityReference.from_array(self._applied_reference)

    @property
    def integral(self) -> np.ndarray:
        return self._integral.copy()

    @property
    def filtered_velocity(self) -> np.ndarray:
        return self._filtered.copy()

    @property
    def modes(self) -> Tuple[TrackingMode, ...]:
        return tuple(self._modes)

    @property
    def last_command(self) -> CommandVector:
        return self._last_command

    @property
    def terms(self) -> Optional[ControlTerms]:
        return self._terms

    def __str__(self):
        p = self._params
        return f"VelocityController(name={self.name}, KP={p.kp}, KI={p.ki}, KD={p.kd})"
