from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from emisense.core.validator import ReadingValidator, clamp, validate

FIXED_NOW = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


def _validator(**kwargs) -> ReadingValidator:
    return ReadingValidator(clock=lambda: FIXED_NOW, **kwargs)


def test_valid_payload_is_passed_through() -> None:
    reading = _validator().validate({"mq135_ppm": 123.4, "mq7_ppm": 56})
    assert reading is not None
    assert reading.channel_a == 123.4
    assert reading.channel_b == 56.0
    assert reading.observed_at == FIXED_NOW


def test_missing_channel_defaults_to_zero() -> None:
    reading = _validator().validate({"mq7_ppm": 12.0})
    assert reading is not None
    assert reading.channel_a == 0.0
    assert reading.channel_b == 12.0


@pytest.mark.parametrize(
    "bad_value",
    [float("nan"), float("inf"), float("-inf"), -5.0, "abc", "", None, True, [1], {"v": 1}],
)
def test_unusable_values_clamp_to_zero(bad_value) -> None:
    reading = _validator().validate({"mq135_ppm": bad_value, "mq7_ppm": bad_value})
    assert reading is not None
    assert reading.channel_a == 0.0
    assert reading.channel_b == 0.0


def test_numeric_strings_are_accepted() -> None:
    reading = _validator().validate({"mq135_ppm": " 250.5 ", "mq7_ppm": "80"})
    assert reading is not None
    assert reading.channel_a == 250.5
    assert reading.channel_b == 80.0


def test_values_above_ceiling_are_capped() -> None:
    reading = _validator().validate({"mq135_ppm": 5000, "mq7_ppm": 1000.0001})
    assert reading is not None
    assert reading.channel_a == 1000.0
    assert reading.channel_b == 1000.0


def test_custom_ceiling_and_field_names() -> None:
    validator = _validator(ceiling=500.0, channel_a_key="a", channel_b_key="b")
    reading = validator({"a": 800, "b": 20})
    assert reading is not None
    assert reading.channel_a == 500.0
    assert reading.channel_b == 20.0


def test_absent_payload_produces_no_reading() -> None:
    assert validate(None) is None


@pytest.mark.parametrize("payload", ["DATA,1,2", 42, ["mq135_ppm", 1]])
def test_non_object_payload_is_dropped(payload) -> None:
    assert validate(payload) is None


def test_iso_timestamp_is_used_when_present() -> None:
    reading = _validator().validate({"mq135_ppm": 1, "timestamp": "2024-05-01T10:00:05.000Z"})
    assert reading is not None
    assert reading.observed_at == datetime(2024, 5, 1, 10, 0, 5, tzinfo=timezone.utc)


def test_epoch_millisecond_timestamp_is_used() -> None:
    reading = _validator().validate({"mq135_ppm": 1, "timestamp": 1714557605000})
    assert reading is not None
    assert reading.observed_at == datetime(2024, 5, 1, 10, 0, 5, tzinfo=timezone.utc)


def test_garbage_timestamp_falls_back_to_arrival_time() -> None:
    reading = _validator().validate({"mq135_ppm": 1, "timestamp": "yesterday-ish"})
    assert reading is not None
    assert reading.observed_at == FIXED_NOW


def test_clamp_stays_within_bounds() -> None:
    values = [-1e9, -0.0, 0.0, 1e-9, 299.99, 1000.0, 1000.5, 1e12, math.pi, "7", None]
    for value in values:
        result = clamp(value)
        assert 0.0 <= result <= 1000.0
