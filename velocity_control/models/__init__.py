"""
Models module
"""
from .vehicle import HorizontalVelocityModel


__all__ = [
    'HorizontalVelocityModel'
]
