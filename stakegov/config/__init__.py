"""
stakegov Configuration

Loads config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    ClockConfig,
    GovernanceConfig,
    StakegovConfig,
    StateConfig,
    load_config,
)

__all__ = [
    "ClockConfig",
    "GovernanceConfig",
    "StakegovConfig",
    "StateConfig",
    "load_config",
]
