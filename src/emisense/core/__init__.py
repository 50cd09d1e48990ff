"""Real-time session core: validation, buffering, aggregation, sessions.

This package sits between the live link (:mod:`emisense.remote`) and any
presentation layer. Raw payloads are validated into readings, classified,
buffered for the live chart, and accumulated into test sessions whose
summaries are handed to the report backend.
"""

from .aggregate import summarize
from .classifier import classify, classify_aggregate, classify_reading
from .errors import (
    ApiError,
    EmiSenseError,
    EmptySessionError,
    MissingMetadataError,
    NotConnectedError,
    SessionError,
    SessionStateError,
)
from .models import (
    AggregateResult,
    Channel,
    Command,
    ConnectionState,
    DisplaySample,
    FinalizedSession,
    SensorReading,
    SessionMetadata,
    SessionState,
    Severity,
    SubmitResult,
)
from .rolling_buffer import RollingBuffer
from .session import SessionSink, TestSessionController
from .session_store import SessionStore
from .validator import ReadingValidator, clamp, validate

__all__ = [
    "summarize",
    "classify",
    "classify_aggregate",
    "classify_reading",
    "ApiError",
    "EmiSenseError",
    "EmptySessionError",
    "MissingMetadataError",
    "NotConnectedError",
    "SessionError",
    "SessionStateError",
    "AggregateResult",
    "Channel",
    "Command",
    "ConnectionState",
    "DisplaySample",
    "FinalizedSession",
    "SensorReading",
    "SessionMetadata",
    "SessionState",
    "Severity",
    "SubmitResult",
    "RollingBuffer",
    "SessionSink",
    "TestSessionController",
    "SessionStore",
    "ReadingValidator",
    "clamp",
    "validate",
]
