"""Household consumption simulator with morning and evening peaks."""

from datetime import datetime

from meter_gateway.config import GeneratorConfig
from .base import BaseSimulator, time_of_day


class ConsumptionSimulator(BaseSimulator):
    """
    Simulates the load seen behind the meter.

    Peak windows (06:00-09:00 and 18:00-22:00) draw 70-100% of the span
    between base and peak load on top of the base load. All other hours
    sit at 80-120% of base load.
    """

    MORNING_PEAK = (6.0, 9.0)
    EVENING_PEAK = (18.0, 22.0)
    NOISE_FRACTION = 0.10

    def is_peak(self, hour: float) -> bool:
        """Whether a fractional hour falls inside a peak window."""
        return any(start <= hour < end for start, end in (self.MORNING_PEAK, self.EVENING_PEAK))

    def generate(self, timestamp: datetime, config: GeneratorConfig) -> float:
        """
        Generate consumption in kW for the given timestamp.

        Args:
            timestamp: The timestamp for which to generate data
            config: Meter profile (base and peak load)

        Returns:
            Consumption in kW, never negative
        """
        base = config.base_consumption_kw
        peak = config.peak_consumption_kw

        if self.is_peak(time_of_day(timestamp)):
            consumption = base + (peak - base) * self._uniform(0.7, 1.0)
        else:
            consumption = base * self._uniform(0.8, 1.2)

        consumption += self._uniform(-self.NOISE_FRACTION, self.NOISE_FRACTION) * base

        return max(0.0, consumption)
