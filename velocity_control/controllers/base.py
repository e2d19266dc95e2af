"""
Controller base class.
"""
from abc import ABC, abstractmethod

from ..types import CommandVector, VelocitySample


class ControllerBase(ABC):
    """Common interface of the per-cycle controllers."""

    def __init__(self, name: str = "Unnamed Controller"):
        self.name = name

    @abstractmethod
    def step(self, sample: VelocitySample) -> CommandVector:
        """Consume one measurement sample and return the next command."""
        pass

    @abstractmethod
    def reset(self):
        """Clear the internal state, keeping the tuning."""
        pass

    @staticmethod
    def hover_command() -> CommandVector:
        """All-zero command for fail-safe use by the caller."""
        return CommandVector(0.0, 0.0)

    def __str__(self):
        return f"{self.name}"
