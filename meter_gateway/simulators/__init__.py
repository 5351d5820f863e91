"""Simulators for the components of a meter sample."""

from .solar import SolarSimulator
from .consumption import ConsumptionSimulator

__all__ = [
    "ConsumptionSimulator",
    "SolarSimulator",
]
