"""Tests for the solar and consumption simulators."""

import random
from datetime import datetime

import pytest

from meter_gateway.config import GeneratorConfig, get_generator_config
from meter_gateway.simulators import ConsumptionSimulator, SolarSimulator
from meter_gateway.simulators.base import time_of_day

NIGHT_HOURS = [0, 1, 2, 3, 4, 5, 18, 19, 20, 21, 22, 23]
CALM = GeneratorConfig(weather_variation_enabled=False)


class HighWeatherRandom(random.Random):
    """Draws the top of the weather range, no noise and mid-range elsewhere."""

    def uniform(self, a, b):
        if (a, b) == (-1, 1):
            return 1.0
        if a == -b:
            return 0.0
        return (a + b) / 2


class TestTimeOfDay:
    """Tests for fractional hour calculation."""

    def test_includes_minutes_and_seconds(self):
        """Test minutes and seconds contribute fractional hours."""
        assert time_of_day(datetime(2024, 6, 15, 10, 30, 0)) == 10.5
        assert time_of_day(datetime(2024, 6, 15, 0, 0, 36)) == pytest.approx(0.01)


class TestSolarSimulator:
    """Tests for SolarSimulator."""

    @pytest.mark.parametrize("hour", NIGHT_HOURS)
    def test_no_generation_at_night(self, hour):
        """Test generation is exactly zero outside daylight hours."""
        sim = SolarSimulator(seed=42)
        for preset in ("small", "medium", "large", "commercial"):
            config = get_generator_config(preset)
            for minute in (0, 59):
                assert sim.generate(datetime(2024, 6, 15, hour, minute), config) == 0

    def test_night_does_not_consume_random_draws(self):
        """Test night samples leave the random sequence untouched."""
        sim1 = SolarSimulator(seed=7)
        sim2 = SolarSimulator(seed=7)

        sim1.generate(datetime(2024, 6, 15, 2, 0), CALM)
        noon = datetime(2024, 6, 15, 12, 0)

        assert sim1.generate(noon, CALM) == sim2.generate(noon, CALM)

    def test_generation_factor_ramps(self):
        """Test piecewise factor on the morning and evening ramps."""
        sim = SolarSimulator(seed=42)

        assert sim.generation_factor(6.0) == 0.0
        assert sim.generation_factor(8.0) == pytest.approx(0.4)
        assert sim.generation_factor(9.5) == pytest.approx(0.7)
        assert sim.generation_factor(16.5) == pytest.approx(0.4)
        assert sim.generation_factor(17.99) == pytest.approx(0.0026667, rel=1e-3)

    def test_generation_factor_plateau(self):
        """Test plateau factor stays between 0.8 and 1.0."""
        sim = SolarSimulator(seed=42)
        for hour in (10.0, 11.25, 12.0, 13.5, 15.0):
            for _ in range(50):
                assert 0.8 <= sim.generation_factor(hour) <= 1.0

    def test_plateau_bounds_without_noise(self, no_noise_rng):
        """Test midday generation is 80-100% of capacity without noise."""
        sim = SolarSimulator(rng=no_noise_rng)
        config = GeneratorConfig(solar_capacity_kw=10.0, weather_variation_enabled=False)

        for hour in range(10, 16):
            for minute in (0, 30):
                if hour == 15 and minute == 30:
                    continue
                gen = sim.generate(datetime(2024, 6, 15, hour, minute), config)
                assert 8.0 <= gen <= 10.0

    def test_morning_ramp_exact_value(self, no_noise_rng):
        """Test ramp value at 08:00 is 40% of capacity."""
        sim = SolarSimulator(rng=no_noise_rng)
        gen = sim.generate(datetime(2024, 6, 15, 8, 0), CALM)
        assert gen == pytest.approx(2.0)

    def test_generation_bounded_by_capacity(self):
        """Test generation never leaves [0, capacity] with weather and noise."""
        sim = SolarSimulator(seed=42)
        config = GeneratorConfig(solar_capacity_kw=10.0, weather_variation_percent=50.0)

        for hour in range(24):
            for minute in range(0, 60, 5):
                gen = sim.generate(datetime(2024, 6, 15, hour, minute), config)
                assert 0 <= gen <= 10.0

    def test_weather_variation_midpoint_is_neutral(self, midpoint_rng):
        """Test weather multiplier of U(-1,1) midpoint leaves generation unchanged."""
        sim = SolarSimulator(rng=midpoint_rng)
        noon = datetime(2024, 6, 15, 12, 0)

        with_weather = sim.generate(noon, GeneratorConfig(weather_variation_enabled=True))
        without_weather = sim.generate(noon, CALM)

        assert with_weather == pytest.approx(without_weather) == pytest.approx(4.5)

    @pytest.mark.parametrize("percent,expected", [(-10.0, 4.05), (0.0, 5.0), (10.0, 4.95)])
    def test_weather_percent_fallback_only_for_zero(self, percent, expected):
        """Test only an unset weather percent falls back to 20%."""
        sim = SolarSimulator(rng=HighWeatherRandom())
        config = GeneratorConfig(weather_variation_percent=percent)

        assert sim.generate(datetime(2024, 6, 15, 12, 0), config) == pytest.approx(expected)

    def test_reproducibility_with_seed(self):
        """Test same seed produces same results."""
        sim1 = SolarSimulator(seed=42)
        sim2 = SolarSimulator(seed=42)
        ts = datetime(2024, 6, 15, 12, 0)
        config = get_generator_config("medium")

        assert sim1.generate(ts, config) == sim2.generate(ts, config)


class TestConsumptionSimulator:
    """Tests for ConsumptionSimulator."""

    @pytest.mark.parametrize(
        "hour,expected",
        [(5.99, False), (6.0, True), (8.99, True), (9.0, False), (17.99, False),
         (18.0, True), (21.99, True), (22.0, False), (0.0, False)],
    )
    def test_peak_windows(self, hour, expected):
        """Test morning and evening peak boundaries."""
        assert ConsumptionSimulator(seed=1).is_peak(hour) is expected

    def test_off_peak_range(self, no_noise_rng):
        """Test off-peak consumption is 80-120% of base load."""
        sim = ConsumptionSimulator(rng=no_noise_rng)
        config = get_generator_config("medium")

        for hour in (0, 3, 9, 12, 15, 17, 22, 23):
            value = sim.generate(datetime(2024, 6, 15, hour, 0), config)
            assert 0.4 <= value <= 0.6

    def test_peak_range(self, no_noise_rng):
        """Test peak consumption is base plus 70-100% of the peak span."""
        sim = ConsumptionSimulator(rng=no_noise_rng)
        config = get_generator_config("medium")

        for hour in (6, 7, 8, 18, 19, 20, 21):
            value = sim.generate(datetime(2024, 6, 15, hour, 30), config)
            assert 0.5 + 1.5 * 0.7 <= value <= 2.0

    def test_peak_midpoint_exact(self, midpoint_rng):
        """Test deterministic source gives base + span * 0.85 at peak."""
        sim = ConsumptionSimulator(rng=midpoint_rng)
        value = sim.generate(datetime(2024, 6, 15, 7, 0), get_generator_config("medium"))
        assert value == pytest.approx(0.5 + 1.5 * 0.85)

    def test_never_negative(self):
        """Test consumption is clamped at zero."""
        sim = ConsumptionSimulator(seed=3)
        config = GeneratorConfig(base_consumption_kw=0.0, peak_consumption_kw=0.0)

        for hour in range(24):
            assert sim.generate(datetime(2024, 6, 15, hour, 0), config) >= 0
