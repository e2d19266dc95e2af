"""
Telemetry recorder for control cycles and latency samples.
"""
import logging
import platform
from pathlib import Path
from typing import Optional, Union
import numpy as np
import matplotlib

# Configure matplotlib backend for macOS compatibility
if platform.system() == 'Darwin':
    matplotlib.use('Agg')

import matplotlib.pyplot as plt

from ..types import ControlTerms, TrackingMode

logger = logging.getLogger(__name__)


class TelemetryRecorder:
    """
    Records per-cycle controller terms and generates plots.
    """
    def __init__(self):
        self.history = {
            'time': [],
            'reference': [],
            'measurement': [],
            'true_velocity': [],
            'command': [],
            'proportional': [],
            'integral': [],
            'derivative': [],
            'feedforward': [],
            'transient': [],
            'latency': [],
            'held': []
        }

    def record(self, terms: ControlTerms, true_velocity: Optional[np.ndarray] = None):
        """
        Append one control cycle.

        Args:
            terms: The controller's ``terms`` after a step.
            true_velocity: Ground-truth velocity when running against a model.
        """
        self.history['time'].append(terms.timestamp)
        self.history['reference'].append(terms.reference.copy())
        self.history['measurement'].append(terms.measurement.copy())
        self.history['true_velocity'].append(
            terms.measurement.copy() if true_velocity is None else np.array(true_velocity, dtype=float))
        self.history['command'].append(terms.command.copy())
        self.history['proportional'].append(terms.proportional.copy())
        self.history['integral'].append(terms.integral.copy())
        self.history['derivative'].append(terms.derivative.copy())
        self.history['feedforward'].append(terms.feedforward.copy())
        self.history['transient'].append(np.array([mode is TrackingMode.TRANSIENT for mode in terms.modes]))
        self.history['latency'].append(np.nan if terms.latency is None else terms.latency)
        self.history['held'].append(False)

    def record_held(self, timestamp: float):
        """Mark a skipped cycle, repeating the previous row."""
        if not self.history['time']:
            return
        for key, values in self.history.items():
            if key == 'time':
                values.append(timestamp)
            elif key == 'held':
                values.append(True)
            else:
                values.append(values[-1])

    def __len__(self):
        return len(self.history['time'])

    def as_arrays(self) -> dict:
        return {key: np.array(values) for key, values in self.history.items()}

    def summary(self) -> dict:
        """Tracking error statistics over the recorded run."""
        if len(self) == 0:
            return {}
        data = self.as_arrays()
        error = data['reference'] - data['true_velocity']
        return {
            'cycles': len(self),
            'held_cycles': int(np.sum(data['held'])),
            'rms_error': np.sqrt(np.mean(error ** 2, axis=0)),
            'final_error': error[-1],
            'max_command': np.max(np.abs(data['command']), axis=0),
            'mean_latency': float(np.nanmean(data['latency'])) if np.any(np.isfinite(data['latency'])) else None
        }

    def plot_results(self, save_path: Union[str, Path] = 'velocity_control_results.png', show: bool = False):
        """
        Plots the recorded history and saves the figure.
        """
        if len(self) == 0:
            logger.warning("No telemetry to plot.")
            return None

        data = self.as_arrays()
        time_array = data['time']

        fig, axes = plt.subplots(3, 2, figsize=(14, 10), sharex=True)
        for axis, label in enumerate(('X', 'Y')):
            # 1. Velocity tracking
            ax = axes[0, axis]
            ax.plot(time_array, data['true_velocity'][:, axis], 'b-', label=f'V{label.lower()}')
            ax.plot(time_array, data['measurement'][:, axis], 'c.', markersize=2, label='Measured')
            ax.plot(time_array, data['reference'][:, axis], 'r--', label='Ref')
            ax.set_ylabel('Velocity (m/s)')
            ax.set_title(f'{label} Velocity Tracking')
            ax.legend()
            ax.grid(True)

            # 2. Control terms
            ax = axes[1, axis]
            ax.plot(time_array, data['proportional'][:, axis], 'r-', label='P')
            ax.plot(time_array, data['integral'][:, axis], 'g-', label='I')
            ax.plot(time_array, data['derivative'][:, axis], 'b-', label='D')
            ax.plot(time_array, data['feedforward'][:, axis], 'm--', label='FF')
            ax.set_title(f'{label} Control Terms')
            ax.legend()
            ax.grid(True)

            # 3. Command
            ax = axes[2, axis]
            ax.plot(time_array, data['command'][:, axis], 'k-', label='Command')
            ax.set_ylabel('Tilt (normalized)')
            ax.set_xlabel('Time (s)')
            ax.set_title(f'{label} Command')
            ax.grid(True)

        if np.any(np.isfinite(data['latency'])):
            twin = axes[2, 1].twinx()
            twin.plot(time_array, data['latency'] * 1000.0, color='orange', alpha=0.6, label='Latency')
            twin.set_ylabel('Latency (ms)')

        fig.tight_layout()
        fig.savefig(save_path)
        logger.info("Plot saved to %s", save_path)
        if show:
            plt.show()
        plt.close(fig)
        return save_path
