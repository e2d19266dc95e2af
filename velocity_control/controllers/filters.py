"""
Measurement filters used ahead of the derivative term.
"""
from collections import deque
from typing import Optional
import numpy as np


class LowPassFilter:
    """First-order exponential low-pass filter, vectorized over axes."""

    def __init__(self, dim: int = 2, initial: Optional[np.ndarray] = None):
        self.dim = dim
        self.value = np.zeros(dim) if initial is None else np.array(initial, dtype=float)

    def update(self, sample: np.ndarray, alpha: float) -> np.ndarray:
        """
        Blend a new sample into the filter state.

        Args:
            sample: Raw per-axis value.
            alpha: Weight of the new sample, in (0, 1]. 1 disables filtering.

        Returns:
            The filtered value (a copy).
        """
        sample = np.asarray(sample, dtype=float)
        if alpha >= 1.0:
            self.value = sample.copy()
        else:
            self.value = self.value + alpha * (sample - self.value)
        return self.value.copy()

    def reset(self, value: Optional[np.ndarray] = None):
        self.value = np.zeros(self.dim) if value is None else np.array(value, dtype=float)


class MedianFilter:
    """Sliding-window median, rejects single-sample spikes."""

    def __init__(self, dim: int = 2, window: int = 3):
        if window < 1:
            raise ValueError("window must be at least 1")
        self.dim = dim
        self.window = window
        self._samples = deque(maxlen=window)

    def update(self, sample: np.ndarray) -> np.ndarray:
        self._samples.append(np.asarray(sample, dtype=float))
        return np.median(np.stack(self._samples), axis=0)

    def reset(self):
        self._samples.clear()
