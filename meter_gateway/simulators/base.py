"""Base simulator class with common functionality."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
import random

from meter_gateway.config import GeneratorConfig


def time_of_day(timestamp: datetime) -> float:
    """Fractional hour of the timestamp's wall clock (0 <= t < 24)."""
    return timestamp.hour + timestamp.minute / 60 + timestamp.second / 3600


class BaseSimulator(ABC):
    """Abstract base class for all simulators."""

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        """
        Initialize the simulator.

        Args:
            rng: Random source to draw from. Shared sources let several
                simulators advance one seeded sequence.
            seed: Seed for a private source when rng is not given.
                If both are None, results will vary.
        """
        self._random = rng if rng is not None else random.Random(seed)

    def _uniform(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def _clamp(self, value: float, min_val: float, max_val: float) -> float:
        """Clamp value between min and max."""
        return max(min_val, min(max_val, value))

    @abstractmethod
    def generate(self, timestamp: datetime, config: GeneratorConfig) -> float:
        """
        Generate a simulated power value in kW for the given timestamp.

        Args:
            timestamp: The timestamp for which to generate data
            config: Meter profile to simulate
        """
        pass
