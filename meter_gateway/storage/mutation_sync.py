"""Delivers queued offline mutations to the remote system.

Mutations are pushed strictly in queue order. Delivery stops at the first
mutation that still fails after all retries so nothing behind it
overtakes it; the undelivered tail stays queued for the next flush.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol

from meter_gateway.exceptions import RemoteFetchError
from meter_gateway.models import QueuedMutation
from meter_gateway.storage.offline_cache import OfflineCache

logger = logging.getLogger(__name__)


class MutationTarget(Protocol):
    async def apply_mutation(self, mutation: QueuedMutation) -> None: ...


class MutationSync:
    """Flushes the offline mutation queue.

    Example:
        >>> sync = MutationSync(cache, repository)
        >>> successful, failed = await sync.flush()
    """

    def __init__(
        self,
        cache: OfflineCache,
        target: MutationTarget,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
    ) -> None:
        self.cache = cache
        self.target = target
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

    async def _push(self, mutation: QueuedMutation) -> bool:
        for retry in range(self.max_retries):
            try:
                await self.target.apply_mutation(mutation)
                return True
            except RemoteFetchError as e:
                logger.warning(
                    "Mutation %s push failed (attempt %d/%d): %s",
                    mutation.id,
                    retry + 1,
                    self.max_retries,
                    e,
                )
                if retry < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay_seconds)
        logger.error(
            "Failed to push mutation %s after %d retries",
            mutation.id,
            self.max_retries,
        )
        return False

    async def flush(self) -> tuple[int, int]:
        """Push every queued mutation.

        Returns:
            Tuple of (successful_count, failed_count); failed counts the
            mutations left in the queue.
        """
        queue = await self.cache.get_queued_mutations()
        if not queue:
            logger.info("No queued mutations to sync")
            return (0, 0)

        logger.info("Syncing %d queued mutations", len(queue))

        delivered = 0
        for mutation in queue:
            if not await self._push(mutation):
                break
            delivered += 1

        remaining = queue[delivered:]
        if remaining:
            await self.cache.replace_queued_mutations(remaining)
        else:
            await self.cache.clear_queued_mutations()
            await self.cache.set_last_sync(datetime.now(timezone.utc))

        logger.info(
            "Mutation sync completed: %d successful, %d pending",
            delivered,
            len(remaining),
        )
        return (delivered, len(remaining))
