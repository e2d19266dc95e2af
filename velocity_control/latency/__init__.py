"""
Latency measurement module
"""
from .links import ProbeMarker, ProbeLink, LoopbackLink, UdpProbeLink, UdpEchoServer
from .monitor import LatencyMonitor


__all__ = [
    'ProbeMarker',
    'ProbeLink',
    'LoopbackLink',
    'UdpProbeLink',
    'UdpEchoServer',
    'LatencyMonitor'
]
