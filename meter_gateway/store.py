"""
Telemetry Store - In-memory meter state and merged sample history.

The store is the only writer of its sample sequence. Merges run
synchronously on the event loop, so each one is atomic with respect to
a restore that is awaiting the remote repository.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from meter_gateway.config import get_generator_config
from meter_gateway.exceptions import RemoteFetchError
from meter_gateway.generator import TelemetryGenerator
from meter_gateway.models import EnergySample, Meter
from meter_gateway.scheduler import GenerationScheduler
from meter_gateway.storage.meter_repository import MeterRepository
from meter_gateway.storage.offline_cache import OfflineCache

logger = logging.getLogger(__name__)


def _newest_first(samples: Iterable[EnergySample]) -> list[EnergySample]:
    return sorted(samples, key=lambda s: s.timestamp, reverse=True)


class TelemetryStore:
    """
    Aggregate of a user's meters, the current meter and its samples.

    Consumers read through the properties and call restore, ingest,
    clear and logout; the sample list is never handed out for mutation.
    """

    def __init__(
        self,
        repository: Optional[MeterRepository],
        scheduler: Optional[GenerationScheduler] = None,
        cache: Optional[OfflineCache] = None,
        preset: Optional[str] = None,
        window_days: int = 7,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store.

        Args:
            repository: Remote source of truth for meters and samples
            scheduler: Scheduler (re)started for the current meter on restore
            cache: Offline cache receiving snapshots after each merge
            preset: Generator preset name for the current meter
            window_days: Days of history loaded on restore
            clock: Returns "now" for window bounds. Defaults to UTC now.
        """
        self.repository = repository
        self.scheduler = scheduler
        self.cache = cache
        self.preset = preset
        self.window_days = window_days
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._meters: list[Meter] = []
        self._current_meter: Optional[Meter] = None
        self._energy_data: list[EnergySample] = []
        self._is_loading = False

        self._restore_task: Optional[asyncio.Task] = None
        self._ingested_during_restore: Optional[list[EnergySample]] = None
        self._pending_writes: set[asyncio.Task] = set()

    @property
    def meters(self) -> list[Meter]:
        return list(self._meters)

    @property
    def current_meter(self) -> Optional[Meter]:
        return self._current_meter

    @property
    def energy_data(self) -> list[EnergySample]:
        """Samples for the current meter, newest first."""
        return list(self._energy_data)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    async def restore(self, user_id: str) -> None:
        """
        Restore state on startup.

        Loads the user's meters, selects the most recently registered one,
        loads its recent history and (re)starts background generation.
        Concurrent callers share one in-flight restore. Never raises on
        remote failures; state is left as last known.
        """
        if self._restore_task is None or self._restore_task.done():
            self._restore_task = asyncio.get_running_loop().create_task(
                self._restore(user_id), name=f"restore-{user_id}"
            )
        else:
            logger.debug("Restore already in flight, waiting for it")
        await asyncio.shield(self._restore_task)

    async def _restore(self, user_id: str) -> None:
        self._is_loading = True
        self._ingested_during_restore = []
        previous = self._current_meter
        try:
            if self.repository is None:
                logger.warning("No remote repository configured, skipping restore")
                return
            try:
                meters = await self.repository.get_meters(user_id)
            except RemoteFetchError as e:
                logger.error("Error restoring meters: %s", e)
                return

            self._meters = list(meters)
            self._current_meter = self._meters[0] if self._meters else None

            switched = previous is not None and (
                self._current_meter is None or previous.id != self._current_meter.id
            )
            if switched:
                if self.scheduler is not None:
                    self.scheduler.stop(previous.id)
                # History belongs to the previously selected meter
                self._energy_data = [
                    s for s in self._energy_data
                    if self._current_meter is not None and s.meter_id == self._current_meter.id
                ]

            if self._current_meter is None:
                logger.info("No meters registered for user %s", user_id)
                self._energy_data = []
                return

            meter = self._current_meter
            await self._load_window(meter)

            if self.scheduler is not None:
                self.scheduler.start(meter.id, get_generator_config(self.preset))
                logger.info("Restarted background data generation for meter %s", meter.id)
        finally:
            self._ingested_during_restore = None
            self._is_loading = False

    async def _load_window(self, meter: Meter) -> None:
        end = self._clock()
        start = end - timedelta(days=self.window_days)
        try:
            window = await self.repository.get_energy_data(meter.id, start, end)
        except RemoteFetchError as e:
            logger.warning("Error loading energy data for meter %s: %s", meter.id, e)
            if not self._energy_data and self.cache is not None:
                cached = [s for s in await self.cache.get_cached_samples() if s.meter_id == meter.id]
                # A cache write may already hold samples ingested mid-restore
                by_id = {s.id: s for s in cached}
                by_id.update((s.id, s) for s in self._ingested_during_restore or [])
                self._energy_data = _newest_first(by_id.values())
                logger.info("Loaded %d cached samples for meter %s", len(self._energy_data), meter.id)
            return

        self._energy_data = _newest_first([*window, *(self._ingested_during_restore or [])])
        logger.info("Loaded %d samples for meter %s", len(self._energy_data), meter.id)
        if self.cache is not None:
            await self.cache.set_last_sync(end)

    def ingest(self, samples: Iterable[EnergySample]) -> None:
        """
        Merge new samples into the history.

        Keeps the sequence ordered newest first. Nothing is deduplicated;
        samples sharing a timestamp are kept as distinct entries. Once a
        meter is selected, samples for other meters are dropped.
        """
        new_samples = list(samples)
        meter = self._current_meter
        if meter is not None:
            foreign = [s for s in new_samples if s.meter_id != meter.id]
            if foreign:
                logger.debug(
                    "Dropping %d samples not belonging to meter %s", len(foreign), meter.id
                )
                new_samples = [s for s in new_samples if s.meter_id == meter.id]
        if not new_samples:
            return

        self._energy_data = _newest_first([*self._energy_data, *new_samples])
        if self._ingested_during_restore is not None:
            self._ingested_during_restore.extend(new_samples)

        self._schedule_cache_write()

    def _schedule_cache_write(self) -> None:
        if self.cache is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping cache snapshot")
            return
        snapshot = self._energy_data[: self.cache.max_samples]
        task = loop.create_task(self.cache.cache_samples(snapshot))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def wait_for_cache_writes(self) -> None:
        """Wait for snapshot writes scheduled by ingest to finish."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    def clear(self) -> None:
        """Drop all samples from memory."""
        self._energy_data = []

    async def logout(self) -> None:
        """Stop generation and erase in-memory and cached state."""
        if self.scheduler is not None and self._current_meter is not None:
            self.scheduler.stop(self._current_meter.id)
        self._meters = []
        self._current_meter = None
        self.clear()
        await self.wait_for_cache_writes()
        if self.cache is not None:
            await self.cache.clear_all()

    def backfill(
        self,
        hours: float = 24,
        generator: Optional[TelemetryGenerator] = None,
    ) -> list[EnergySample]:
        """
        Generate history for the current meter and ingest it.

        Used right after a meter is registered so the dashboard has a
        day of data before the first scheduled tick.

        Returns:
            The generated samples (empty when no meter is selected)
        """
        meter = self._current_meter
        if meter is None:
            logger.warning("No current meter, nothing to backfill")
            return []

        if generator is None:
            generator = self.scheduler.generator if self.scheduler else TelemetryGenerator()
        interval = self.scheduler.interval_minutes if self.scheduler else 15

        end = self._clock()
        start = end - timedelta(hours=hours)
        samples = generator.generate_range(
            meter.id, start, end, interval, get_generator_config(self.preset)
        )
        self.ingest(samples)
        logger.info("Backfilled %d samples for meter %s", len(samples), meter.id)
        return samples
