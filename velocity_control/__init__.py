"""
Horizontal velocity control core for small aerial vehicles.
"""
import logging

from .errors import ConfigValidationError, InvalidSampleError, InvalidTimingError, VelocityControlError
from .types import CommandVector, ControlTerms, TrackingMode, VelocityReference, VelocitySample
from .controllers import ControlParams, VelocityController
from .latency import LatencyMonitor, LoopbackLink, ProbeMarker, UdpEchoServer, UdpProbeLink

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    'ConfigValidationError',
    'InvalidSampleError',
    'InvalidTimingError',
    'VelocityControlError',
    'CommandVector',
    'ControlTerms',
    'TrackingMode',
    'VelocityReference',
    'VelocitySample',
    'ControlParams',
    'VelocityController',
    'LatencyMonitor',
    'LoopbackLink',
    'ProbeMarker',
    'UdpEchoServer',
    'UdpProbeLink'
]
