from __future__ import annotations

from datetime import datetime, timezone

import pytest
import yaml

import emisense.config.thresholds as threshold_config
from emisense.config.thresholds import DEFAULT_THRESHOLDS_FILE, ThresholdConfig, load_thresholds
from emisense.core.classifier import classify, classify_aggregate, classify_reading, worst
from emisense.core.models import AggregateResult, Channel, SensorReading, Severity


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, Severity.NORMAL),
        (300, Severity.NORMAL),
        (300.01, Severity.CAUTION),
        (600, Severity.CAUTION),
        (600.01, Severity.DANGER),
        (1000, Severity.DANGER),
    ],
)
def test_channel_a_boundaries(value, expected) -> None:
    assert classify(value, Channel.A) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (75, Severity.NORMAL),
        (75.01, Severity.CAUTION),
        (150, Severity.CAUTION),
        (150.01, Severity.DANGER),
    ],
)
def test_channel_b_boundaries(value, expected) -> None:
    assert classify(value, Channel.B) is expected


def test_channel_can_be_given_as_string() -> None:
    assert classify(400, "a") is Severity.CAUTION
    assert classify(400, "B") is Severity.DANGER


def test_unknown_channel_is_rejected() -> None:
    with pytest.raises(ValueError):
        classify(1, "c")


def test_garbage_values_classify_as_normal() -> None:
    assert classify(float("nan"), Channel.A) is Severity.NORMAL
    assert classify(-50, Channel.B) is Severity.NORMAL


def test_custom_threshold_config_is_honoured() -> None:
    legacy = ThresholdConfig.from_mapping(
        {
            "thresholds": {
                "version": 1,
                "channels": {"a": {"caution": 280, "danger": 400}, "b": {"caution": 140, "danger": 200}},
            }
        }
    )
    assert legacy.version == 1
    assert classify(350, Channel.A, legacy) is Severity.CAUTION
    assert classify(350, Channel.A) is Severity.CAUTION
    assert classify(450, Channel.A, legacy) is Severity.DANGER
    assert classify(450, Channel.A) is Severity.CAUTION


def test_reading_and_aggregate_are_classified_per_channel() -> None:
    reading = SensorReading(650.0, 10.0, datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert classify_reading(reading) == {Channel.A: Severity.DANGER, Channel.B: Severity.NORMAL}

    result = AggregateResult(mean_a=100.0, mean_b=100.0, max_a=700.0, max_b=300.0)
    severities = classify_aggregate(result)
    assert severities == {Channel.A: Severity.NORMAL, Channel.B: Severity.CAUTION}
    assert worst(severities) is Severity.CAUTION


def test_default_table_is_the_packaged_file() -> None:
    raw = yaml.safe_load(DEFAULT_THRESHOLDS_FILE.read_text(encoding="utf-8"))["thresholds"]
    defaults = threshold_config.DEFAULT_THRESHOLDS

    assert defaults.version == raw["version"]
    assert defaults.channel_a.caution == float(raw["channels"]["a"]["caution"])
    assert defaults.channel_a.danger == float(raw["channels"]["a"]["danger"])
    assert defaults.channel_b.caution == float(raw["channels"]["b"]["caution"])
    assert defaults.channel_b.danger == float(raw["channels"]["b"]["danger"])
    assert load_thresholds() is defaults


def test_default_classification_follows_edited_table(tmp_path, monkeypatch) -> None:
    path = tmp_path / "thresholds.yaml"
    path.write_text(
        "thresholds:\n  version: 3\n  channels:\n"
        "    a: {caution: 250, danger: 600}\n"
        "    b: {caution: 75, danger: 150}\n",
        encoding="utf-8",
    )
    edited = load_thresholds(path)
    monkeypatch.setattr(threshold_config, "DEFAULT_THRESHOLDS", edited)

    assert classify(280, Channel.A) is Severity.CAUTION
    assert classify(280, Channel.A) is classify(280, Channel.A, edited)
    reading = SensorReading(280.0, 10.0, datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert classify_reading(reading)[Channel.A] is Severity.CAUTION


def test_ceiling_caps_value_before_classification() -> None:
    assert classify(5000, Channel.A) is Severity.DANGER
    assert classify(700, Channel.A, ceiling=500.0) is Severity.CAUTION
    assert classify(float("inf"), Channel.A, ceiling=500.0) is Severity.NORMAL
