"""Data models for meter telemetry."""

from .telemetry import EnergySample, Meter, QueuedMutation, VERIFICATION_STATUSES

__all__ = ["EnergySample", "Meter", "QueuedMutation", "VERIFICATION_STATUSES"]
