"""Configuration objects and helpers for EmiSense.

Two YAML descriptors drive the runtime:
- the runtime config (endpoints, reconnect policy, buffer sizing), see
  :mod:`runtime`
- ``thresholds.yaml`` with the versioned severity thresholds, see
  :mod:`thresholds`
"""

from .runtime import EmiSenseConfig, config_from_mapping, load_config
from .thresholds import ChannelThresholds, ThresholdConfig, load_thresholds

__all__ = [
    "EmiSenseConfig",
    "config_from_mapping",
    "load_config",
    "ChannelThresholds",
    "ThresholdConfig",
    "load_thresholds",
]
