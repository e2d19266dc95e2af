"""
Controller module
"""
from .base import ControllerBase
from .filters import LowPassFilter, MedianFilter
from .pid_controller import ControlParams, conditional_integrate, static_feedforward_gain
from .velocity_controller import VelocityController


__all__ = [
    'ControllerBase',
    'LowPassFilter',
    'MedianFilter',
    'ControlParams',
    'conditional_integrate',
    'static_feedforward_gain',
    'VelocityController',
]
