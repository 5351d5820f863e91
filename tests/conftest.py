"""Shared fixtures for the meter gateway tests."""

import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

import pytest

from meter_gateway.exceptions import RemoteFetchError
from meter_gateway.models import EnergySample, Meter
from meter_gateway.storage import JsonFileStore, OfflineCache

BASE_TIME = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class MidpointRandom(random.Random):
    """Random source that always returns the middle of the requested range."""

    def uniform(self, a, b):
        return (a + b) / 2


class NoNoiseRandom(random.Random):
    """Seeded source that pins symmetric noise terms to zero."""

    def uniform(self, a, b):
        if a == -b:
            return 0.0
        return super().uniform(a, b)


class FakeRepository:
    """In-memory stand-in for the remote meter repository."""

    def __init__(self, meters=None, samples=None):
        self.meters = list(meters or [])
        self.samples = list(samples or [])
        self.fail_meters = False
        self.fail_energy = False
        self.meters_gate: asyncio.Event | None = None
        self.energy_gate: asyncio.Event | None = None
        self.meter_calls = 0
        self.energy_calls: list[tuple[str, datetime, datetime]] = []

    async def get_meters(self, user_id):
        self.meter_calls += 1
        if self.meters_gate is not None:
            await self.meters_gate.wait()
        if self.fail_meters:
            raise RemoteFetchError("network down")
        return [m for m in self.meters if m.user_id == user_id]

    async def get_energy_data(self, meter_id, start, end):
        self.energy_calls.append((meter_id, start, end))
        if self.energy_gate is not None:
            await self.energy_gate.wait()
        if self.fail_energy:
            raise RemoteFetchError("network down")
        return [
            s for s in self.samples
            if s.meter_id == meter_id and start <= s.timestamp <= end
        ]


class SlowFirstWriteStore(JsonFileStore):
    """File store whose first write stalls, letting later writes overtake it."""

    def __init__(self, directory, delay=0.2):
        super().__init__(directory)
        self.delay = delay
        self.writes = 0

    def set(self, key, value):
        self.writes += 1
        if self.writes == 1:
            time.sleep(self.delay)
        super().set(key, value)


def build_sample(meter_id="meter-1", minutes=0, generation=2.0, consumption=0.5, **kwargs):
    return EnergySample(
        meter_id=meter_id,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        generation_kw=generation,
        consumption_kw=consumption,
        **kwargs,
    )


@pytest.fixture
def make_sample():
    return build_sample


@pytest.fixture
def meter():
    return Meter(id="meter-1", user_id="user-1", verification_status="verified")


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def midpoint_rng():
    return MidpointRandom()


@pytest.fixture
def no_noise_rng():
    return NoNoiseRandom(42)


@pytest.fixture
def cache(tmp_path):
    return OfflineCache(JsonFileStore(str(tmp_path / "cache")))
