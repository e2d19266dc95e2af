#!/usr/bin/env python3
"""
Latency monitor and probe link tests
"""
import time

import pytest

from velocity_control import (
    ControlParams,
    VelocityController,
    VelocityReference,
    VelocitySample,
)
from velocity_control.latency import (
    LatencyMonitor,
    LoopbackLink,
    ProbeLink,
    ProbeMarker,
    UdpEchoServer,
    UdpProbeLink,
)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingLink(ProbeLink):
    """Keeps sent markers so a test can echo them back by hand."""

    def __init__(self):
        super().__init__()
        self.sent = []

    def send(self, marker):
        self.sent.append(marker)

    def echo(self, marker, received_at=None):
        self._deliver(marker, received_at)


class BrokenLink(ProbeLink):
    def send(self, marker):
        raise OSError("network unreachable")


def test_round_trip_sets_latency():
    """Probe at t=10.00, echo at t=10.05: latency 0.05 s"""
    clock = FakeClock(10.0)
    link = RecordingLink()
    monitor = LatencyMonitor(link, clock=clock)

    monitor.probe()
    assert len(link.sent) == 1
    clock.advance(0.05)
    link.echo(link.sent[0])

    assert monitor.current_latency() == pytest.approx(0.05)
    assert monitor.last_update == pytest.approx(10.05)
    assert monitor.pending is None


def test_unmatched_echo_is_ignored():
    clock = FakeClock(10.0)
    link = RecordingLink()
    monitor = LatencyMonitor(link, clock=clock, initial_latency=0.01)

    monitor.probe()
    stranger = ProbeMarker(99, 9.0)
    assert monitor.on_echo(stranger, 10.2) is False

    assert monitor.current_latency() == 0.01
    assert monitor.pending == link.sent[0]


def test_duplicate_echo_counts_once():
    clock = FakeClock(0.0)
    link = RecordingLink()
    monitor = LatencyMonitor(link, clock=clock)

    monitor.probe()
    marker = link.sent[0]
    assert monitor.on_echo(marker, 0.03) is True
    assert monitor.on_echo(marker, 0.40) is False
    assert monitor.current_latency() == pytest.approx(0.03)


def test_late_echo_of_superseded_probe_is_discarded():
    clock = FakeClock(0.0)
    link = RecordingLink()
    monitor = LatencyMonitor(link, clock=clock)

    monitor.probe()
    clock.advance(0.5)
    monitor.probe()
    first, second = link.sent
    assert first.sequence != second.sequence

    clock.advance(0.1)
    assert monitor.on_echo(first) is False
    assert monitor.current_latency() == 0.0
    assert monitor.on_echo(second) is True
    assert monitor.current_latency() == pytest.approx(0.1)


def test_echo_stamped_before_send_is_discarded():
    clock = FakeClock(5.0)
    monitor = LatencyMonitor(clock=clock)
    monitor.probe()
    assert monitor.on_echo(monitor.pending, 4.0) is False
    assert monitor.last_update is None


def test_monitor_without_link_accepts_direct_echoes():
    clock = FakeClock(1.0)
    monitor = LatencyMonitor(clock=clock)

    monitor.run_once()
    marker = monitor.pending
    assert marker is not None
    clock.advance(0.02)
    assert monitor.on_echo(marker) is True
    assert monitor.current_latency() == pytest.approx(0.02)


def test_send_failure_is_logged_not_raised(caplog):
    monitor = LatencyMonitor(BrokenLink(), clock=FakeClock(), name="TestLatency")
    monitor.probe()
    assert "not sent" in caplog.text
    assert monitor.current_latency() == 0.0


def test_age_since_last_update():
    clock = FakeClock(0.0)
    monitor = LatencyMonitor(clock=clock)
    assert monitor.age() is None

    monitor.probe()
    clock.advance(0.04)
    monitor.on_echo(monitor.pending)
    clock.advance(1.0)
    assert monitor.age() == pytest.approx(1.0)
    assert monitor.age(now=2.04) == pytest.approx(2.0)


def test_invalid_period_is_rejected():
    with pytest.raises(ValueError):
        LatencyMonitor(period=0.0)


def test_loopback_releases_echo_after_delay():
    clock = FakeClock(0.0)
    link = LoopbackLink(delay=0.08, clock=clock)
    monitor = LatencyMonitor(link, clock=clock)

    monitor.run_once()
    assert link.in_flight == 1
    assert monitor.current_latency() == 0.0

    clock.advance(0.05)
    link.poll()
    assert link.in_flight == 1

    clock.advance(0.03)
    link.poll()
    assert link.in_flight == 0
    assert monitor.current_latency() == pytest.approx(0.08)


def test_stalled_link_keeps_last_estimate():
    clock = FakeClock(0.0)
    link = LoopbackLink(delay=0.05, clock=clock)
    monitor = LatencyMonitor(link, clock=clock)
    monitor.probe()
    clock.advance(0.05)
    link.poll()

    link.drop = True
    for _ in range(5):
        clock.advance(0.5)
        monitor.run_once()

    assert monitor.current_latency() == pytest.approx(0.05)
    assert monitor.age() == pytest.approx(2.5)


def test_background_thread_measures_loopback():
    link = LoopbackLink(delay=0.0)
    monitor = LatencyMonitor(link, period=0.01)
    monitor.start()
    try:
        deadline = time.monotonic() + 2.0
        while monitor.last_update is None and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        monitor.stop()

    assert monitor.last_update is not None
    assert 0.0 <= monitor.current_latency() < 0.5


def test_stop_without_start_is_harmless():
    monitor = LatencyMonitor()
    monitor.stop()


def test_udp_echo_round_trip():
    with UdpEchoServer() as server:
        host, port = server.address
        link = UdpProbeLink(host, port, timeout=0.2)
        monitor = LatencyMonitor(link)
        try:
            monitor.run_once()
        finally:
            link.close()

    assert monitor.last_update is not None
    assert 0.0 <= monitor.current_latency() < 0.2


def test_marker_wire_format():
    marker = ProbeMarker(7, 12.5)
    assert ProbeMarker.from_bytes(marker.to_bytes()) == marker

    with pytest.raises(ValueError):
        ProbeMarker.from_bytes(b"not json")
    with pytest.raises(ValueError):
        ProbeMarker.from_bytes(b'{"seq": 1}')


def test_controller_reads_monitor_latency(caplog):
    clock = FakeClock(0.0)
    link = LoopbackLink(delay=0.3, clock=clock)
    monitor = LatencyMonitor(link, clock=clock)
    controller = VelocityController(ControlParams(period=0.1),
                                    latency_source=monitor.current_latency,
                                    name="TestVelocity")
    controller.set_reference(VelocityReference(0.2, 0.0))

    controller.step(VelocitySample(0.0, 0.0, 0.0))
    assert controller.terms.latency == 0.0

    monitor.probe()
    clock.advance(0.3)
    link.poll()
    controller.step(VelocitySample(0.01, 0.0, 0.1))

    assert controller.terms.latency == pytest.approx(0.3)
    assert "latency" in caplog.text
