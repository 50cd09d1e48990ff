"""Map channel values to Normal / Caution / Danger tiers."""

from __future__ import annotations

import math
from typing import Any, Dict, Optional

from ..config import thresholds as threshold_config
from ..config.thresholds import ThresholdConfig
from .models import AggregateResult, Channel, SensorReading, Severity
from .validator import clamp


def _resolve(thresholds: Optional[ThresholdConfig]) -> ThresholdConfig:
    return thresholds if thresholds is not None else threshold_config.DEFAULT_THRESHOLDS


def classify(
    value: Any,
    channel: Channel | str,
    thresholds: Optional[ThresholdConfig] = None,
    *,
    ceiling: Optional[float] = None,
) -> Severity:
    """
    Return the severity of ``value`` on ``channel``.

    ``thresholds`` defaults to the packaged table. Unusable or negative
    values count as 0; ``ceiling`` caps the value the same way the reading
    validator does.
    """
    limits = _resolve(thresholds).for_channel(channel)
    safe_value = clamp(value, math.inf if ceiling is None else ceiling)
    if safe_value > limits.danger:
        return Severity.DANGER
    if safe_value > limits.caution:
        return Severity.CAUTION
    return Severity.NORMAL


def classify_reading(
    reading: SensorReading,
    thresholds: Optional[ThresholdConfig] = None,
) -> Dict[Channel, Severity]:
    return {
        Channel.A: classify(reading.channel_a, Channel.A, thresholds),
        Channel.B: classify(reading.channel_b, Channel.B, thresholds),
    }


def classify_aggregate(
    result: AggregateResult,
    thresholds: Optional[ThresholdConfig] = None,
) -> Dict[Channel, Severity]:
    """Classify a stored test by its channel means, as the history view does."""
    return {
        Channel.A: classify(result.mean_a, Channel.A, thresholds),
        Channel.B: classify(result.mean_b, Channel.B, thresholds),
    }


def worst(severities: Dict[Channel, Severity]) -> Severity:
    order = (Severity.NORMAL, Severity.CAUTION, Severity.DANGER)
    return max(severities.values(), key=order.index, default=Severity.NORMAL)
