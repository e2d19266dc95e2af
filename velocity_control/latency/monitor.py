"""
Round-trip latency monitor.

Sends a timestamped marker over a ProbeLink at a slow period and keeps the
round-trip time of the last matched echo. The estimate is advisory: readers
get the best value so far without waiting.
"""
import itertools
import logging
import threading
import time
from typing import Callable, Optional

from .links import ProbeLink, ProbeMarker

logger = logging.getLogger(__name__)


class LatencyMonitor:
    """Single outstanding probe round-trip timer."""

    def __init__(self, link: Optional[ProbeLink] = None, period: float = 0.5,
                 initial_latency: float = 0.0,
                 clock: Callable[[], float] = time.monotonic,
                 name: str = "Latency Monitor"):
        """
        Args:
            link: Transport for probes. Echoes may also be fed to ``on_echo`` directly.
            period: Seconds between probes when running in the background.
            initial_latency: Value reported before the first round trip.
            clock: Monotonic time source in seconds.
            name: Name used in logs and for the worker thread.
        """
        if period <= 0:
            raise ValueError("period must be positive")
        self.name = name
        self.period = period
        self.clock = clock
        self.link = link
        if link is not None:
            link.bind(self.on_echo)

        self._latency = float(initial_latency)
        self._last_update: Optional[float] = None
        self._pending: Optional[ProbeMarker] = None
        self._pending_lock = threading.Lock()
        self._sequence = itertools.count(1)

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def probe(self):
        """
        Start a new round trip. An unanswered earlier probe is forgotten,
        so its late echo will be discarded.
        """
        marker = ProbeMarker(next(self._sequence), self.clock())
        with self._pending_lock:
            self._pending = marker

        if self.link is None:
            return
        try:
            self.link.send(marker)
        except OSError as e:
            logger.warning("%s: probe %d not sent: %s", self.name, marker.sequence, e)

    def on_echo(self, marker: ProbeMarker, received_at: Optional[float] = None) -> bool:
        """
        Match an echoed marker against the pending probe.

        Args:
            marker: The echoed marker.
            received_at: Arrival time on the monitor clock; now if omitted.

        Returns:
            True if the echo updated the latency estimate.
        """
        if received_at is None:
            received_at = self.clock()

        with self._pending_lock:
            if self._pending is None or marker != self._pending:
                logger.debug("%s: discarding unmatched echo %s", self.name, marker)
                return False
            self._pending = None

        latency = received_at - marker.sent_at
        if latency < 0:
            logger.debug("%s: discarding echo %s received before it was sent", self.name, marker)
            return False

        self._latency = latency
        self._last_update = received_at
        logger.debug("%s: round trip %d took %.4f s", self.name, marker.sequence, latency)
        return True

    def current_latency(self) -> float:
        """Most recent round-trip time in seconds. Never blocks."""
        return self._latency

    @property
    def pending(self) -> Optional[ProbeMarker]:
        return self._pending

    @property
    def last_update(self) -> Optional[float]:
        return self._last_update

    def age(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds since the estimate was refreshed, None before the first echo."""
        if self._last_update is None:
            return None
        return (self.clock() if now is None else now) - self._last_update

    def run_once(self):
        """One monitor period: send a probe and collect whatever echoes arrived."""
        self.probe()
        if self.link is not None:
            self.link.poll()

    def start(self):
        """Probe every ``period`` seconds on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("%s started, period %.2f s", self.name, self.period)
        return self

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except OSError as e:
                logger.warning("%s: link error: %s", self.name, e)
            self._stop_event.wait(self.period)

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=max(1.0, 2 * self.period))
            self._thread = None

    def __str__(self):
        return f"LatencyMonitor(name={self.name}, latency={self._latency:.4f}s)"
