"""
Transports carrying round-trip probe markers.

A link only moves markers; matching and timing live in LatencyMonitor.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
import json
import logging
import socket
import threading
import time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeMarker:
    """Probe identity: a sequence number and the monitor clock at send time."""
    sequence: int
    sent_at: float

    def to_bytes(self) -> bytes:
        return json.dumps({"seq": self.sequence, "sent_at": self.sent_at}).encode()

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProbeMarker":
        try:
            message = json.loads(data.decode())
            return cls(int(message["seq"]), float(message["sent_at"]))
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"malformed probe marker: {data!r}") from e


EchoCallback = Callable[[ProbeMarker, Optional[float]], bool]


class ProbeLink(ABC):
    """Outbound path for probes and inbound path for their echoes."""

    def __init__(self):
        self._callback: Optional[EchoCallback] = None

    def bind(self, callback: EchoCallback):
        """Register the receiver of echoed markers."""
        self._callback = callback

    @abstractmethod
    def send(self, marker: ProbeMarker):
        """Send a marker outward. May raise OSError."""
        pass

    def poll(self):
        """Deliver echoes that have arrived. Links pushing echoes on their own keep the default."""
        pass

    def close(self):
        pass

    def _deliver(self, marker: ProbeMarker, received_at: Optional[float] = None):
        if self._callback is not None:
            self._callback(marker, received_at)


class LoopbackLink(ProbeLink):
    """
    In-process link echoing every marker after a fixed delay.

    Echoes are released by ``poll`` once ``clock()`` has passed their due
    time. ``drop=True`` swallows every probe, like a stalled transport.
    """

    def __init__(self, delay: float = 0.0, clock: Callable[[], float] = time.monotonic,
                 drop: bool = False):
        super().__init__()
        self.delay = delay
        self.clock = clock
        self.drop = drop
        self._in_flight: List[Tuple[float, ProbeMarker]] = []
        self._lock = threading.Lock()

    def send(self, marker: ProbeMarker):
        if self.drop:
            return
        with self._lock:
            self._in_flight.append((self.clock() + self.delay, marker))

    def poll(self):
        now = self.clock()
        with self._lock:
            due = [item for item in self._in_flight if item[0] <= now]
            self._in_flight = [item for item in self._in_flight if item[0] > now]
        for _, marker in due:
            self._deliver(marker)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)


class UdpProbeLink(ProbeLink):
    """Sends markers as JSON datagrams to an echo responder."""

    def __init__(self, host: str, port: int, timeout: float = 0.05):
        super().__init__()
        self.address = (host, int(port))
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._socket.bind(("", 0))
        self._socket.settimeout(timeout)

    def send(self, marker: ProbeMarker):
        self._socket.sendto(marker.to_bytes(), self.address)

    def poll(self):
        """Read echoes until the socket timeout expires."""
        while True:
            try:
                data, _ = self._socket.recvfrom(1024)
            except socket.timeout:
                break
            try:
                marker = ProbeMarker.from_bytes(data)
            except ValueError as e:
                logger.debug("Discarding echo: %s", e)
                continue
            self._deliver(marker)

    def close(self):
        self._socket.close()


class UdpEchoServer:
    """Datagram echo responder for the far end of a UdpProbeLink."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0):
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._socket.bind((host, port))
        self._socket.settimeout(0.1)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket.getsockname()

    def start(self):
        self._thread = threading.Thread(target=self._serve, name="udp-echo", daemon=True)
        self._thread.start()
        return self

    def _serve(self):
        while not self._stop_event.is_set():
            try:
                data, peer = self._socket.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError:
                break
            self._socket.sendto(data, peer)

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._socket.close()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
