"""Exceptions raised inside the telemetry core.

None of these escape the store or the offline cache; they mark the
boundary where a collaborator failed so the caller can degrade.
"""


class TelemetryError(Exception):
    """Base class for telemetry core errors."""


class RemoteFetchError(TelemetryError):
    """Remote meter repository call failed (network, auth, API error)."""


class PersistenceError(TelemetryError):
    """Durable key-value storage read or write failed."""
