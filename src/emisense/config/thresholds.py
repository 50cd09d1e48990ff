"""Versioned severity thresholds shared by every classification call site."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

DEFAULT_THRESHOLDS_FILE = Path(__file__).resolve().parent / "thresholds.yaml"


@dataclass(frozen=True)
class ChannelThresholds:
    """
    Upper bounds for one channel.

    ``value > danger`` is Danger, ``caution < value <= danger`` is Caution,
    anything else is Normal.
    """

    caution: float
    danger: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.caution <= self.danger:
            raise ValueError(
                f"thresholds must satisfy 0 <= caution <= danger, got {self.caution}/{self.danger}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ChannelThresholds:
        return cls(caution=float(data["caution"]), danger=float(data["danger"]))

    def to_mapping(self) -> Dict[str, float]:
        return {"caution": float(self.caution), "danger": float(self.danger)}


@dataclass(frozen=True)
class ThresholdConfig:
    """
    Single source of truth for severity tiers.

    ``version`` identifies the product decision the numbers come from so
    reports can state which scheme classified them.
    """

    version: int
    channel_a: ChannelThresholds
    channel_b: ChannelThresholds

    def for_channel(self, channel: Any) -> ChannelThresholds:
        """Return thresholds for ``channel`` (a :class:`Channel` or ``"a"``/``"b"``)."""
        key = str(getattr(channel, "value", channel)).strip().lower()
        if key == "a":
            return self.channel_a
        if key == "b":
            return self.channel_b
        raise ValueError(f"Unknown channel {channel!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ThresholdConfig:
        """Build from a mapping; missing blocks fall back to the packaged defaults."""
        if not data:
            return DEFAULT_THRESHOLDS
        return _parse_thresholds(data, DEFAULT_THRESHOLDS)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "thresholds": {
                "version": int(self.version),
                "channels": {
                    "a": self.channel_a.to_mapping(),
                    "b": self.channel_b.to_mapping(),
                },
            }
        }


def _read_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {path}, got {type(raw).__name__}")
    return raw


def _parse_thresholds(data: Mapping[str, Any], fallback: ThresholdConfig | None) -> ThresholdConfig:
    """
    Parse a ``thresholds`` block.

    Channels or a version missing from ``data`` are taken from ``fallback``;
    with no fallback every part must be present.
    """
    block = data.get("thresholds", data)
    if not isinstance(block, Mapping):
        raise ValueError("thresholds block must be a mapping")
    channels = block.get("channels") or {}
    if not isinstance(channels, Mapping):
        raise ValueError("thresholds.channels must be a mapping")

    def _channel(key: str) -> ChannelThresholds:
        raw = channels.get(key)
        if raw:
            return ChannelThresholds.from_mapping(raw)
        if fallback is None:
            raise ValueError(f"thresholds for channel {key!r} are missing")
        return fallback.for_channel(key)

    version = block.get("version")
    if version is None:
        if fallback is None:
            raise ValueError("thresholds version is missing")
        version = fallback.version
    return ThresholdConfig(version=int(version), channel_a=_channel("a"), channel_b=_channel("b"))


# The packaged file is the only place the numbers live.
DEFAULT_THRESHOLDS = _parse_thresholds(_read_yaml(DEFAULT_THRESHOLDS_FILE), None)


def load_thresholds(path: str | Path | None = None) -> ThresholdConfig:
    """Load a thresholds file; ``None`` or a missing file gives the packaged table."""
    if path is None:
        return DEFAULT_THRESHOLDS
    cfg_path = Path(path)
    if not cfg_path.exists():
        return DEFAULT_THRESHOLDS
    return ThresholdConfig.from_mapping(_read_yaml(cfg_path))


def save_thresholds(path: str | Path, config: ThresholdConfig) -> None:
    """Write ``config`` as YAML, creating parent directories."""
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    with cfg_path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(config.to_mapping(), fh, default_flow_style=False, sort_keys=False)
