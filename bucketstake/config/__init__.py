"""
Bucket Staking Configuration

Loads the [staking] section of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    StakingConfig,
    load_config,
)

__all__ = [
    "StakingConfig",
    "load_config",
]
