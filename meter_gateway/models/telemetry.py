"""Data models for meters, energy samples and queued mutations."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

VERIFICATION_STATUSES = ("pending", "verified", "rejected", "requested")


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime)."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def sample_id(meter_id: str, timestamp: datetime) -> str:
    """Build the default sample identifier from meter and epoch millis."""
    return f"{meter_id}_{int(timestamp.timestamp() * 1000)}"


@dataclass
class Meter:
    """A registered smart meter, owned by the remote repository."""

    id: str
    user_id: str
    discom_name: str = ""
    consumer_number: str = ""
    meter_serial_id: str = ""
    verification_status: str = "pending"
    address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: dict) -> "Meter":
        """Create a Meter from a `meters` table row."""
        created = record.get("created_at")
        updated = record.get("updated_at")
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]),
            discom_name=record.get("discom_name") or "",
            consumer_number=record.get("consumer_number") or "",
            meter_serial_id=record.get("meter_serial_id") or "",
            verification_status=record.get("verification_status") or "pending",
            address=record.get("address"),
            created_at=parse_timestamp(created) if created else None,
            updated_at=parse_timestamp(updated) if updated else None,
        )

    @property
    def is_verified(self) -> bool:
        return self.verification_status == "verified"


@dataclass(frozen=True)
class EnergySample:
    """One generation/consumption reading for a meter.

    Net export is derived from the two components when the sample is
    created (positive = export, negative = import) and never supplied.
    """

    meter_id: str
    timestamp: datetime
    generation_kw: float
    consumption_kw: float
    interval_minutes: int = 15
    id: str = ""
    net_export_kw: float = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "net_export_kw", self.generation_kw - self.consumption_kw)
        if not self.id:
            object.__setattr__(self, "id", sample_id(self.meter_id, self.timestamp))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "meter_id": self.meter_id,
            "timestamp": self.timestamp.isoformat(),
            "generation_kw": self.generation_kw,
            "consumption_kw": self.consumption_kw,
            "net_export_kw": self.net_export_kw,
            "interval_minutes": self.interval_minutes,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_record(self) -> dict:
        """Row shape for the remote `energy_data` table."""
        return {
            "meter_id": self.meter_id,
            "timestamp": self.timestamp.isoformat(),
            "generation": round(self.generation_kw, 3),
            "consumption": round(self.consumption_kw, 3),
            "net_export": round(self.net_export_kw, 3),
            "interval_minutes": self.interval_minutes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EnergySample":
        """Create EnergySample from a cached dictionary."""
        return cls(
            id=data.get("id", ""),
            meter_id=data["meter_id"],
            timestamp=parse_timestamp(data["timestamp"]),
            generation_kw=float(data["generation_kw"]),
            consumption_kw=float(data["consumption_kw"]),
            interval_minutes=int(data.get("interval_minutes", 15)),
        )

    @classmethod
    def from_record(cls, record: dict) -> "EnergySample":
        """Create EnergySample from an `energy_data` table row."""
        return cls(
            id=str(record.get("id") or ""),
            meter_id=str(record["meter_id"]),
            timestamp=parse_timestamp(record["timestamp"]),
            generation_kw=float(record["generation"]),
            consumption_kw=float(record["consumption"]),
            interval_minutes=int(record.get("interval_minutes") or 15),
        )


@dataclass
class QueuedMutation:
    """An outbound state change waiting for remote confirmation.

    `kind` names the remote table the payload is written to; the payload
    itself is opaque to the telemetry core.
    """

    kind: str
    payload: dict
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QueuedMutation":
        return cls(
            id=data["id"],
            kind=data["kind"],
            payload=dict(data.get("payload") or {}),
            created_at=parse_timestamp(data["created_at"]),
        )
