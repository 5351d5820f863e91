"""Solar generation simulator with a ramp-plateau-ramp daylight curve."""

from datetime import datetime

from meter_gateway.config import GeneratorConfig
from .base import BaseSimulator, time_of_day


class SolarSimulator(BaseSimulator):
    """
    Simulates rooftop solar generation for a meter.

    Models:
    - No generation before sunrise (06:00) or from sunset (18:00)
    - Morning ramp-up to 80% of capacity by 10:00
    - Midday plateau between 80% and 100% of capacity (10:00-15:00)
    - Afternoon ramp-down to zero at 18:00
    - Optional weather variation and small additive noise
    """

    SUNRISE = 6.0
    PEAK_START = 10.0
    PEAK_END = 15.0
    SUNSET = 18.0

    RAMP_CEILING = 0.8
    NOISE_FRACTION = 0.05
    DEFAULT_WEATHER_PERCENT = 20.0

    def generation_factor(self, hour: float) -> float:
        """
        Fraction of capacity produced at a fractional hour of day.

        Only the plateau draws from the random source.
        """
        if hour < self.SUNRISE or hour >= self.SUNSET:
            return 0.0

        if hour < self.PEAK_START:
            progress = (hour - self.SUNRISE) / (self.PEAK_START - self.SUNRISE)
            return progress * self.RAMP_CEILING

        if hour <= self.PEAK_END:
            return self._uniform(0.8, 1.0)

        progress = (self.SUNSET - hour) / (self.SUNSET - self.PEAK_END)
        return progress * self.RAMP_CEILING

    def _weather_multiplier(self, config: GeneratorConfig) -> float:
        percent = config.weather_variation_percent
        if not percent:
            percent = self.DEFAULT_WEATHER_PERCENT
        return 1 + self._uniform(-1, 1) * percent / 100

    def generate(self, timestamp: datetime, config: GeneratorConfig) -> float:
        """
        Generate solar output in kW for the given timestamp.

        Args:
            timestamp: The timestamp for which to generate data
            config: Meter profile (capacity and weather settings)

        Returns:
            Generation in kW, clamped to [0, capacity]
        """
        hour = time_of_day(timestamp)
        capacity = config.solar_capacity_kw

        # Night: no draws, exactly zero
        if hour < self.SUNRISE or hour >= self.SUNSET:
            return 0.0

        generation = capacity * self.generation_factor(hour)

        if config.weather_variation_enabled:
            generation *= self._weather_multiplier(config)

        generation += self._uniform(-self.NOISE_FRACTION, self.NOISE_FRACTION) * capacity

        return self._clamp(generation, 0.0, capacity)
