"""Summary statistics over a completed session."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

import numpy as np

from .errors import EmptySessionError
from .models import AggregateResult, DisplaySample

_TWO_PLACES = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to two decimals, using the decimal repr of ``value``."""
    return float(Decimal(repr(float(value))).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def summarize(samples: Sequence[DisplaySample], duration_seconds: int = 0) -> AggregateResult:
    """
    Mean and maximum per channel over ``samples``.

    Raises :class:`EmptySessionError` for an empty sequence; callers route
    empty sessions away before getting here.
    """
    if len(samples) == 0:
        raise EmptySessionError()

    values = np.array([(s.channel_a, s.channel_b) for s in samples], dtype=np.float64)
    means = values.mean(axis=0)
    maxima = values.max(axis=0)

    return AggregateResult(
        mean_a=round2(means[0]),
        mean_b=round2(means[1]),
        max_a=round2(maxima[0]),
        max_b=round2(maxima[1]),
        duration_seconds=max(0, int(duration_seconds)),
    )
