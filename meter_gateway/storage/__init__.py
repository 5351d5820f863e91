"""Storage modules for offline caching and remote meter data."""

from meter_gateway.storage.kv_store import JsonFileStore, KeyValueStore
from meter_gateway.storage.offline_cache import OfflineCache
from meter_gateway.storage.meter_repository import (
    MeterRepository,
    SupabaseMeterRepository,
    create_repository,
)
from meter_gateway.storage.mutation_sync import MutationSync

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "MeterRepository",
    "MutationSync",
    "OfflineCache",
    "SupabaseMeterRepository",
    "create_repository",
]
