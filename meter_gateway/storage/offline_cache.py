"""Offline cache for recent samples, queued mutations and sync bookkeeping.

Every operation degrades instead of raising: reads return an empty
result and writes are dropped, with the failure logged.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Iterable, Optional

from meter_gateway.exceptions import PersistenceError
from meter_gateway.models import EnergySample, QueuedMutation
from meter_gateway.models.telemetry import parse_timestamp
from meter_gateway.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class OfflineCache:
    """Bounded sample snapshot plus a durable FIFO mutation queue.

    The snapshot is overwritten as a whole on every write (last writer
    wins); the queue is append-only until cleared by the caller after
    the remote system confirmed delivery.

    Example:
        >>> cache = OfflineCache(JsonFileStore(".meter_cache"))
        >>> await cache.cache_samples(samples)
        >>> recent = await cache.get_cached_samples()
    """

    ENERGY_DATA = "energy_data"
    OFFLINE_QUEUE = "offline_queue"
    LAST_SYNC = "last_sync"

    def __init__(
        self,
        store: KeyValueStore,
        max_samples: int = 96,
        key_prefix: str = "meter_gateway_",
    ) -> None:
        """Initialize the cache.

        Args:
            store: Durable key-value storage
            max_samples: Snapshot size (96 = 24 hours of 15-minute samples)
            key_prefix: Prefix applied to every storage key
        """
        self._store = store
        self.max_samples = max_samples
        self.key_prefix = key_prefix
        self._queue_lock = asyncio.Lock()
        self._snapshot_lock = asyncio.Lock()

    def _key(self, name: str) -> str:
        return self.key_prefix + name

    async def _call(self, method, *args):
        try:
            return await asyncio.to_thread(method, *args)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc

    async def _get(self, name: str) -> Optional[str]:
        return await self._call(self._store.get, self._key(name))

    async def _set(self, name: str, value: str) -> None:
        await self._call(self._store.set, self._key(name), value)

    async def _remove(self, name: str) -> None:
        await self._call(self._store.remove, self._key(name))

    async def cache_samples(self, samples: Iterable[EnergySample]) -> None:
        """Replace the snapshot with the newest samples by timestamp.

        Writes are applied in call order; a snapshot never overwrites one
        requested after it.
        """
        newest = sorted(samples, key=lambda s: s.timestamp, reverse=True)[: self.max_samples]
        async with self._snapshot_lock:
            try:
                payload = json.dumps([s.to_dict() for s in newest])
                await self._set(self.ENERGY_DATA, payload)
                logger.debug("Cached %d samples", len(newest))
            except (PersistenceError, TypeError, ValueError) as e:
                logger.error("Failed to cache energy data: %s", e)

    async def get_cached_samples(self) -> list[EnergySample]:
        """Return the cached snapshot, newest first."""
        try:
            raw = await self._get(self.ENERGY_DATA)
            if not raw:
                return []
            samples = [EnergySample.from_dict(item) for item in json.loads(raw)]
        except (PersistenceError, AttributeError, TypeError, ValueError, KeyError) as e:
            logger.error("Failed to read cached energy data: %s", e)
            return []
        return sorted(samples, key=lambda s: s.timestamp, reverse=True)

    async def _read_queue(self) -> list[QueuedMutation]:
        raw = await self._get(self.OFFLINE_QUEUE)
        if not raw:
            return []
        return [QueuedMutation.from_dict(item) for item in json.loads(raw)]

    async def _write_queue(self, mutations: list[QueuedMutation]) -> None:
        await self._set(self.OFFLINE_QUEUE, json.dumps([m.to_dict() for m in mutations]))

    async def queue_mutation(self, mutation: QueuedMutation) -> None:
        """Append a mutation to the durable queue."""
        async with self._queue_lock:
            try:
                queue = await self._read_queue()
            except (PersistenceError, AttributeError, TypeError, ValueError, KeyError) as e:
                logger.warning("Unreadable mutation queue, starting a new one: %s", e)
                queue = []
            queue.append(mutation)
            try:
                await self._write_queue(queue)
                logger.info("Queued %s mutation %s (%d pending)", mutation.kind, mutation.id, len(queue))
            except (PersistenceError, TypeError, ValueError) as e:
                logger.error("Failed to queue mutation %s: %s", mutation.id, e)

    async def get_queued_mutations(self) -> list[QueuedMutation]:
        """Return queued mutations in the order they were queued."""
        try:
            return await self._read_queue()
        except (PersistenceError, AttributeError, TypeError, ValueError, KeyError) as e:
            logger.error("Failed to read mutation queue: %s", e)
            return []

    async def replace_queued_mutations(self, mutations: list[QueuedMutation]) -> None:
        """Overwrite the queue, e.g. with the undelivered tail after a partial sync."""
        async with self._queue_lock:
            try:
                if mutations:
                    await self._write_queue(mutations)
                else:
                    await self._remove(self.OFFLINE_QUEUE)
            except (PersistenceError, TypeError, ValueError) as e:
                logger.error("Failed to rewrite mutation queue: %s", e)

    async def clear_queued_mutations(self) -> None:
        """Clear queued mutations after confirmed delivery."""
        await self.replace_queued_mutations([])

    async def set_last_sync(self, timestamp: datetime) -> None:
        try:
            await self._set(self.LAST_SYNC, timestamp.isoformat())
        except PersistenceError as e:
            logger.error("Failed to set last sync: %s", e)

    async def get_last_sync(self) -> Optional[datetime]:
        try:
            raw = await self._get(self.LAST_SYNC)
            if raw:
                return parse_timestamp(raw.strip())
        except (PersistenceError, ValueError) as e:
            logger.error("Failed to get last sync: %s", e)
        return None

    async def clear_all(self) -> None:
        """Erase snapshot, queue and sync bookkeeping (logout / account switch)."""
        async with self._snapshot_lock, self._queue_lock:
            for name in (self.ENERGY_DATA, self.OFFLINE_QUEUE, self.LAST_SYNC):
                try:
                    await self._remove(name)
                except PersistenceError as e:
                    logger.error("Failed to clear %s: %s", name, e)
        logger.info("Cleared offline cache")
