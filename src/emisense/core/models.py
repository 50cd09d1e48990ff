"""Shared dataclasses for EmiSense readings, sessions and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Channel(str, Enum):
    A = "a"  # MQ-135, CO2/NH3
    B = "b"  # MQ-7, CO


class Severity(str, Enum):
    NORMAL = "Normal"
    CAUTION = "Caution"
    DANGER = "Danger"


class Command(str, Enum):
    """One-way signals to the bench; no acknowledgement comes back."""

    START = "start-test"
    STOP = "stop-test"


class SessionState(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    AWAITING_METADATA = "AwaitingMetadata"


@dataclass(frozen=True)
class SensorReading:
    channel_a: float
    channel_b: float
    observed_at: datetime

    def value(self, channel: Channel) -> float:
        return self.channel_a if channel is Channel.A else self.channel_b


@dataclass(frozen=True)
class DisplaySample:
    """A reading plus the local ``HH:MM:SS`` label shown on the live chart."""

    reading: SensorReading
    time_label: str

    @classmethod
    def from_reading(cls, reading: SensorReading) -> DisplaySample:
        return cls(reading=reading, time_label=format_time_label(reading.observed_at))

    @property
    def channel_a(self) -> float:
        return self.reading.channel_a

    @property
    def channel_b(self) -> float:
        return self.reading.channel_b

    def to_payload(self) -> Dict[str, Any]:
        """Chart point in the shape the report backend stores (``test_data``)."""
        return {"time": self.time_label, "MQ135": self.channel_a, "MQ7": self.channel_b}


@dataclass(frozen=True)
class AggregateResult:
    mean_a: float
    mean_b: float
    max_a: float
    max_b: float
    duration_seconds: int = 0


# (attribute, wire key, label) for the post-test form
METADATA_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("owner_name", "nama", "Owner name"),
    ("vehicle_brand", "merk_motor", "Vehicle brand"),
    ("vehicle_model", "nama_motor", "Vehicle model"),
    ("engine_cc", "cc_motor", "Engine displacement (cc)"),
    ("phone_number", "nomor_wa", "WhatsApp number"),
)


@dataclass
class SessionMetadata:
    owner_name: str = ""
    vehicle_brand: str = ""
    vehicle_model: str = ""
    engine_cc: str = ""
    phone_number: str = ""

    def missing_fields(self) -> List[str]:
        """Names of required fields that are empty or whitespace only."""
        missing = []
        for attr, _wire, _label in METADATA_FIELDS:
            value = getattr(self, attr)
            if value is None or not str(value).strip():
                missing.append(attr)
        return missing

    def to_payload(self) -> Dict[str, str]:
        return {wire: str(getattr(self, attr)).strip() for attr, wire, _label in METADATA_FIELDS}


@dataclass(frozen=True)
class FinalizedSession:
    """Everything the report backend needs to store one completed test."""

    metadata: SessionMetadata
    samples: Tuple[DisplaySample, ...]
    aggregate: AggregateResult
    duration_seconds: int
    started_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.metadata.to_payload())
        payload.update(
            {
                "test_data": [sample.to_payload() for sample in self.samples],
                "avg_mq135": self.aggregate.mean_a,
                "avg_mq7": self.aggregate.mean_b,
                "max_mq135": self.aggregate.max_a,
                "max_mq7": self.aggregate.max_b,
                "test_duration": int(self.duration_seconds),
            }
        )
        if self.started_at is not None:
            payload["started_at"] = self.started_at.isoformat()
        return payload


@dataclass
class SubmitResult:
    test_id: Any
    recommendation: Optional[Dict[str, Any]] = None


@dataclass
class ConnectionState:
    """
    Connectivity as seen by the session core.

    ``link_up`` tracks the socket itself, ``device_connected`` the last
    ``connection-status`` push from the bench. A session can only start when
    both hold.
    """

    link_up: bool = False
    device_connected: bool = False
    last_error: Optional[str] = None
    last_connect_time: Optional[float] = None
    last_disconnect_time: Optional[float] = None

    @property
    def connected(self) -> bool:
        return self.link_up and self.device_connected


@dataclass
class TestSession:
    epoch: int = 0
    state: SessionState = SessionState.IDLE
    started_at: Optional[datetime] = None
    started_monotonic: Optional[float] = None
    duration_seconds: int = 0
    samples: List[DisplaySample] = field(default_factory=list)

    # keep pytest from collecting this as a test class
    __test__ = False


def format_time_label(moment: datetime) -> str:
    """Render ``moment`` in local time as ``HH:MM:SS`` (24-hour)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime("%H:%M:%S")


def format_duration(seconds: int) -> str:
    """Render a duration as ``M:SS``."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"
