"""Remote meter repository backed by Supabase.

The remote database is the source of truth for meters and their energy
history. Every failure surfaces as RemoteFetchError so callers can fall
back to cached or empty data.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client, create_client

from meter_gateway.config import RemoteConfig
from meter_gateway.exceptions import RemoteFetchError
from meter_gateway.models import EnergySample, Meter, QueuedMutation

logger = logging.getLogger(__name__)


class MeterRepository(Protocol):
    """Read access to meters and their energy history."""

    async def get_meters(self, user_id: str) -> list[Meter]: ...

    async def get_energy_data(
        self, meter_id: str, start: datetime, end: datetime
    ) -> list[EnergySample]: ...


class SupabaseMeterRepository:
    """Supabase adapter for the `meters` and `energy_data` tables.

    The supabase client is synchronous; calls run in a worker thread so
    the event loop keeps ticking while a request is in flight.

    Example:
        >>> repo = SupabaseMeterRepository.from_config(RemoteConfig())
        >>> meters = await repo.get_meters("user-123")
    """

    def __init__(
        self,
        client: Client,
        meters_table: str = "meters",
        energy_table: str = "energy_data",
    ) -> None:
        self._client = client
        self.meters_table = meters_table
        self.energy_table = energy_table

    @classmethod
    def from_config(cls, config: RemoteConfig) -> "SupabaseMeterRepository":
        """Connect to Supabase using the given settings.

        Raises:
            ValueError: If URL or key is missing
        """
        config.validate()
        try:
            client = create_client(config.supabase_url, config.supabase_key)
        except Exception:
            logger.exception("Failed to connect to Supabase")
            raise
        logger.info("Connected to Supabase at %s", config.supabase_url)
        return cls(client, config.meters_table, config.energy_table)

    async def _execute(self, operation: str, query: Callable[[], Any]) -> list[dict]:
        try:
            response = await asyncio.to_thread(query)
        except PostgrestAPIError as e:
            raise RemoteFetchError(
                f"{operation} failed: {getattr(e, 'message', None) or e}"
            ) from e
        except Exception as e:
            raise RemoteFetchError(f"{operation} failed: {e}") from e
        return list(response.data or [])

    async def get_meters(self, user_id: str) -> list[Meter]:
        """Fetch a user's meters, most recently registered first."""
        rows = await self._execute(
            "get_meters",
            lambda: self._client.table(self.meters_table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute(),
        )
        try:
            meters = [Meter.from_record(row) for row in rows]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteFetchError(f"Malformed meter record: {e}") from e
        logger.info("Fetched %d meters for user %s", len(meters), user_id)
        return meters

    async def get_energy_data(
        self, meter_id: str, start: datetime, end: datetime
    ) -> list[EnergySample]:
        """Fetch samples with start <= timestamp <= end, oldest first."""
        rows = await self._execute(
            "get_energy_data",
            lambda: self._client.table(self.energy_table)
            .select("*")
            .eq("meter_id", meter_id)
            .gte("timestamp", start.isoformat())
            .lte("timestamp", end.isoformat())
            .order("timestamp")
            .execute(),
        )
        try:
            samples = [EnergySample.from_record(row) for row in rows]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteFetchError(f"Malformed energy record: {e}") from e
        logger.info("Fetched %d samples for meter %s", len(samples), meter_id)
        return samples

    async def insert_energy_data(self, samples: list[EnergySample]) -> int:
        """Upload generated samples. Returns the number of rows written."""
        if not samples:
            return 0
        records = [s.to_record() for s in samples]
        rows = await self._execute(
            "insert_energy_data",
            lambda: self._client.table(self.energy_table)
            .upsert(records, on_conflict="meter_id,timestamp")
            .execute(),
        )
        return len(rows)

    async def apply_mutation(self, mutation: QueuedMutation) -> None:
        """Write a queued mutation's payload to the table named by its kind."""
        await self._execute(
            f"apply_mutation[{mutation.kind}]",
            lambda: self._client.table(mutation.kind).upsert(mutation.payload).execute(),
        )
        logger.debug("Applied %s mutation %s", mutation.kind, mutation.id)


def create_repository(config: Optional[RemoteConfig] = None) -> SupabaseMeterRepository:
    """Build the Supabase repository from config or environment."""
    return SupabaseMeterRepository.from_config(config or RemoteConfig())
