"""Runtime configuration helpers for the telemetry core and its clients."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

ENV_SOCKET_URL = "EMISENSE_SOCKET_URL"
ENV_API_URL = "EMISENSE_API_URL"

# Nested blocks accepted in the YAML file; their keys are merged to the top.
_NESTED_BLOCKS = ("telemetry", "api", "session")


@dataclass(slots=True)
class EmiSenseConfig:
    """
    Tuning knobs for the live link, the session core, and the report API.

    The defaults match the bench backend running on localhost:3001.
    """

    socket_url: str = "http://localhost:3001"
    socket_transports: list[str] = field(default_factory=lambda: ["websocket"])
    reconnect_delay_s: float = 1.0
    reconnect_attempts: int = 5

    api_base_url: str = "http://localhost:3001/api"
    request_timeout_s: float = 15.0

    display_capacity: int = 30
    reading_ceiling: float = 1000.0
    tick_interval_ms: int = 1000

    channel_a_key: str = "mq135_ppm"
    channel_b_key: str = "mq7_ppm"

    # None selects the packaged thresholds.yaml
    thresholds_path: str | None = None

    def sanitized(self) -> EmiSenseConfig:
        """Return a copy with derived limits applied."""
        ceiling = _finite_or(self.reading_ceiling, 1000.0)
        transports = [str(t) for t in (self.socket_transports or []) if str(t).strip()]
        return EmiSenseConfig(
            socket_url=str(self.socket_url).rstrip("/"),
            socket_transports=transports or ["websocket"],
            reconnect_delay_s=max(0.0, _finite_or(self.reconnect_delay_s, 1.0)),
            reconnect_attempts=max(1, int(self.reconnect_attempts)),
            api_base_url=str(self.api_base_url).rstrip("/"),
            request_timeout_s=max(0.5, _finite_or(self.request_timeout_s, 15.0)),
            display_capacity=max(1, int(self.display_capacity)),
            reading_ceiling=max(0.0, ceiling),
            tick_interval_ms=max(10, int(self.tick_interval_ms)),
            channel_a_key=str(self.channel_a_key),
            channel_b_key=str(self.channel_b_key),
            thresholds_path=str(self.thresholds_path) if self.thresholds_path else None,
        )


def _finite_or(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return number


def _recognized_fields() -> set[str]:
    """Return the dataclass field names accepted by :class:`EmiSenseConfig`."""
    return {f.name for f in fields(EmiSenseConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten the optional ``telemetry``/``api``/``session`` blocks."""
    merged: MutableMapping[str, Any] = {}
    for key, value in data.items():
        if key in _NESTED_BLOCKS and isinstance(value, Mapping):
            merged.update(value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(
    config: EmiSenseConfig,
    environ: Mapping[str, str] | None = None,
) -> EmiSenseConfig:
    """Let ``EMISENSE_SOCKET_URL``/``EMISENSE_API_URL`` replace the endpoints."""
    env = os.environ if environ is None else environ
    socket_url = env.get(ENV_SOCKET_URL, "").strip()
    api_url = env.get(ENV_API_URL, "").strip()
    if socket_url:
        config.socket_url = socket_url
    if api_url:
        config.api_base_url = api_url
    return config.sanitized()


def config_from_mapping(data: Mapping[str, Any] | None) -> EmiSenseConfig:
    """Build :class:`EmiSenseConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return EmiSenseConfig().sanitized()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    return EmiSenseConfig(**payload).sanitized()


def load_config(
    path: str | Path | None,
    *,
    environ: Mapping[str, str] | None = None,
) -> EmiSenseConfig:
    """
    Load configuration from ``path`` and apply environment overrides.

    Missing files fall back to default :class:`EmiSenseConfig`.
    """
    config = EmiSenseConfig()
    if path is not None:
        cfg_path = Path(path)
        if cfg_path.exists():
            with cfg_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, Mapping):
                raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
            config = config_from_mapping(raw)
    return apply_env_overrides(config, environ)


__all__ = [
    "EmiSenseConfig",
    "ENV_API_URL",
    "ENV_SOCKET_URL",
    "apply_env_overrides",
    "config_from_mapping",
    "load_config",
]
