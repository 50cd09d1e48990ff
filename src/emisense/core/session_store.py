"""Observable state of the current test session."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from PySide6.QtCore import QObject, Signal

from .models import DisplaySample, SensorReading, SessionState, TestSession
from .rolling_buffer import DEFAULT_DISPLAY_CAPACITY, RollingBuffer


class SessionStore(QObject):
    """
    Holds the live reading, the session accumulation and the display tail.

    Presentation code connects to the signals and reads the properties; only
    :class:`~emisense.core.session.TestSessionController` calls the mutators.
    """

    state_changed = Signal(object)  # SessionState
    live_reading_changed = Signal(object)  # SensorReading
    samples_changed = Signal(list)  # list[DisplaySample], display tail
    duration_changed = Signal(int)

    def __init__(
        self,
        display_capacity: int = DEFAULT_DISPLAY_CAPACITY,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._session = TestSession()
        self._display = RollingBuffer(display_capacity)
        self._live_reading: Optional[SensorReading] = None

    # --------------------------------------------------------------- readers
    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def epoch(self) -> int:
        return self._session.epoch

    @property
    def started_at(self) -> Optional[datetime]:
        return self._session.started_at

    @property
    def started_monotonic(self) -> Optional[float]:
        return self._session.started_monotonic

    @property
    def duration_seconds(self) -> int:
        return self._session.duration_seconds

    @property
    def live_reading(self) -> Optional[SensorReading]:
        return self._live_reading

    @property
    def display_capacity(self) -> int:
        return self._display.capacity

    def display_samples(self) -> List[DisplaySample]:
        return self._display.snapshot()

    def accumulated_samples(self) -> List[DisplaySample]:
        return list(self._session.samples)

    def sample_count(self) -> int:
        return len(self._session.samples)

    # --------------------------------------------------------------- mutators
    def begin(self, epoch: int, started_at: datetime, started_monotonic: float) -> None:
        self._session = TestSession(
            epoch=epoch,
            state=SessionState.RUNNING,
            started_at=started_at,
            started_monotonic=started_monotonic,
        )
        self._display.clear()
        self.samples_changed.emit([])
        self.duration_changed.emit(0)
        self.state_changed.emit(SessionState.RUNNING)

    def append(self, sample: DisplaySample) -> None:
        self._session.samples.append(sample)
        self._display.append(sample)
        self.samples_changed.emit(self._display.snapshot())

    def set_duration(self, seconds: int) -> None:
        seconds = max(0, int(seconds))
        if seconds == self._session.duration_seconds:
            return
        self._session.duration_seconds = seconds
        self.duration_changed.emit(seconds)

    def set_state(self, state: SessionState) -> None:
        if state is self._session.state:
            return
        self._session.state = state
        self.state_changed.emit(state)

    def set_live_reading(self, reading: SensorReading) -> None:
        self._live_reading = reading
        self.live_reading_changed.emit(reading)

    def reset(self) -> None:
        """Discard the session; the epoch survives so stale callbacks stay stale."""
        epoch = self._session.epoch
        previous = self._session.state
        self._session = TestSession(epoch=epoch)
        self._display.clear()
        self.samples_changed.emit([])
        self.duration_changed.emit(0)
        if previous is not SessionState.IDLE:
            self.state_changed.emit(SessionState.IDLE)
