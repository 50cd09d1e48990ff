from __future__ import annotations

"""State machine for one timed emission test.

``Idle -> Running -> AwaitingMetadata -> Idle``. Readings always refresh the
live value; they are accumulated only while Running. Every ``start()`` bumps
the session epoch and the duration ticker is bound to the epoch it was
created for, so a tick queued by an older session never touches a newer one.
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .aggregate import summarize
from .errors import (
    EmptySessionError,
    MissingMetadataError,
    NotConnectedError,
    SessionStateError,
)
from .models import Command, DisplaySample, FinalizedSession, SessionMetadata, SessionState
from .session_store import SessionStore
from .validator import ReadingValidator

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_MS = 1000


class DeviceLink(Protocol):
    """What the controller needs from the connection manager."""

    @property
    def connected(self) -> bool: ...

    def send(self, command: Command) -> None: ...


class SessionSink(Protocol):
    """Receiver of finalized sessions (the report backend adapter)."""

    def submit(self, finalized: FinalizedSession) -> None: ...


class TestSessionController(QObject):
    """Non-visual controller that owns the one test session."""

    error_reported = Signal(str)
    session_finalized = Signal(object)  # FinalizedSession
    session_discarded = Signal()

    __test__ = False

    def __init__(
        self,
        link: DeviceLink,
        sink: SessionSink,
        *,
        validator: Callable[[Any], Any] | None = None,
        display_capacity: int = 30,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] | None = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._link = link
        self._sink = sink
        self._validator = validator or ReadingValidator()
        self._tick_interval_ms = max(10, int(tick_interval_ms))
        self._clock = clock
        self._wall_clock = wall_clock or (lambda: datetime.now(timezone.utc))
        self._store = SessionStore(display_capacity, parent=self)
        self._timer: Optional[QTimer] = None
        self._epoch = 0

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def state(self) -> SessionState:
        return self._store.state

    @property
    def epoch(self) -> int:
        return self._epoch

    def ticker_active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    # --------------------------------------------------------------- commands
    def start(self) -> None:
        if self.state is not SessionState.IDLE:
            raise SessionStateError(f"Cannot start a test while {self.state.value}")
        if not self._link.connected:
            error = NotConnectedError()
            self._report(error)
            raise error

        self._epoch += 1
        self._store.begin(self._epoch, self._wall_clock(), self._clock())
        self._start_ticker(self._epoch)
        logger.info("Test session %d started", self._epoch)
        self._link.send(Command.START)

    def stop(self) -> None:
        if self.state is not SessionState.RUNNING:
            raise SessionStateError(f"Cannot stop a test while {self.state.value}")

        self._stop_ticker()
        self._store.set_duration(self._elapsed_seconds())
        self._link.send(Command.STOP)

        count = self._store.sample_count()
        logger.info(
            "Test session %d stopped after %ds with %d samples",
            self._epoch,
            self._store.duration_seconds,
            count,
        )
        if count == 0:
            self._store.reset()
            error = EmptySessionError()
            self._report(error)
            raise error

        self._store.set_state(SessionState.AWAITING_METADATA)

    def submit(self, metadata: SessionMetadata) -> FinalizedSession:
        """
        Finalize the stopped session with the form ``metadata``.

        On missing fields the session stays in AwaitingMetadata. If the sink
        raises, the session is kept as well so the user can retry.
        """
        if self.state is not SessionState.AWAITING_METADATA:
            raise SessionStateError(f"Nothing to submit while {self.state.value}")
        missing = metadata.missing_fields()
        if missing:
            error = MissingMetadataError(missing)
            self._report(error)
            raise error

        samples = self._store.accumulated_samples()
        duration = self._store.duration_seconds
        finalized = FinalizedSession(
            metadata=metadata,
            samples=tuple(samples),
            aggregate=summarize(samples, duration),
            duration_seconds=duration,
            started_at=self._store.started_at,
        )
        self._sink.submit(finalized)

        logger.info("Test session %d handed off (%d samples)", self._epoch, len(samples))
        self._store.reset()
        self.session_finalized.emit(finalized)
        return finalized

    def cancel(self) -> None:
        if self.state is not SessionState.AWAITING_METADATA:
            raise SessionStateError(f"Nothing to cancel while {self.state.value}")
        logger.info("Test session %d discarded", self._epoch)
        self._store.reset()
        self.session_discarded.emit()

    # --------------------------------------------------------------- ingest
    @Slot(object)
    def handle_payload(self, raw: Any) -> None:
        """Entry point for raw ``sensor-data`` payloads from the link."""
        reading = self._validator(raw)
        if reading is None:
            return
        self._store.set_live_reading(reading)
        if self.state is SessionState.RUNNING:
            self._store.append(DisplaySample.from_reading(reading))

    # --------------------------------------------------------------- ticker
    def _start_ticker(self, epoch: int) -> None:
        self._stop_ticker()
        timer = QTimer(self)
        timer.setInterval(self._tick_interval_ms)
        timer.timeout.connect(lambda: self._on_tick(epoch))
        timer.start()
        self._timer = timer

    def _stop_ticker(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def _on_tick(self, epoch: int) -> None:
        if epoch != self._epoch or self.state is not SessionState.RUNNING:
            logger.debug("Ignoring stale tick from session %d", epoch)
            return
        self._store.set_duration(self._elapsed_seconds())

    def _elapsed_seconds(self) -> int:
        started = self._store.started_monotonic
        if started is None:
            return 0
        return max(0, int(math.floor(self._clock() - started)))

    def _report(self, error: Exception) -> None:
        logger.warning("Session command refused: %s", error)
        self.error_reported.emit(str(error))
