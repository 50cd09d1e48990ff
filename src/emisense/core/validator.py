"""
Sanitize raw ``sensor-data`` payloads into :class:`SensorReading` objects.

The bench backend forwards whatever the microcontroller printed, so payloads
are loosely typed:

  - ``mq135_ppm`` : number or numeric string (channel A)
  - ``mq7_ppm``   : number or numeric string (channel B)
  - ``timestamp`` : optional ISO-8601 string or epoch seconds/milliseconds

A missing or unusable channel becomes ``0.0``; values are clamped to
``[0, ceiling]`` so electrical noise cannot produce spikes on the chart.
A ``None`` payload (heartbeat or status-only event) yields no reading.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .models import SensorReading

logger = logging.getLogger(__name__)

DEFAULT_CEILING = 1000.0
DEFAULT_CHANNEL_A_KEY = "mq135_ppm"
DEFAULT_CHANNEL_B_KEY = "mq7_ppm"

# Epoch values above this are taken as milliseconds.
_EPOCH_MS_THRESHOLD = 1e11


def _coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = value.strip()
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def clamp(value: Any, ceiling: float = DEFAULT_CEILING) -> float:
    """Return ``value`` as a float in ``[0, ceiling]``; unusable input gives 0."""
    number = _coerce_number(value)
    if number is None or not math.isfinite(number) or number < 0.0:
        return 0.0
    return min(number, float(ceiling))


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            return None
        seconds = value / 1000.0 if value > _EPOCH_MS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.astimezone()
        return parsed
    return None


class ReadingValidator:
    """Callable that turns raw payloads into readings using fixed settings."""

    def __init__(
        self,
        *,
        ceiling: float = DEFAULT_CEILING,
        channel_a_key: str = DEFAULT_CHANNEL_A_KEY,
        channel_b_key: str = DEFAULT_CHANNEL_B_KEY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.ceiling = float(ceiling)
        self.channel_a_key = channel_a_key
        self.channel_b_key = channel_b_key
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __call__(self, raw: Any) -> Optional[SensorReading]:
        return self.validate(raw)

    def validate(self, raw: Any) -> Optional[SensorReading]:
        if raw is None:
            return None
        if not isinstance(raw, Mapping):
            logger.debug("Dropping non-object sensor payload: %r", raw)
            return None

        observed_at = _parse_timestamp(raw.get("timestamp"))
        if observed_at is None:
            observed_at = self._clock()

        return SensorReading(
            channel_a=clamp(raw.get(self.channel_a_key), self.ceiling),
            channel_b=clamp(raw.get(self.channel_b_key), self.ceiling),
            observed_at=observed_at,
        )


_DEFAULT_VALIDATOR = ReadingValidator()


def validate(raw: Any) -> Optional[SensorReading]:
    """Validate ``raw`` with the default field names and ceiling."""
    return _DEFAULT_VALIDATOR.validate(raw)
