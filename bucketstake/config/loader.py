"""
Bucket Staking TOML Configuration Loader

Loads the [staking] section of config.toml with environment variable
overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [staking] withdrawal_delay                → BUCKETSTAKE_WITHDRAWAL_DELAY
    [staking] min_amount                      → BUCKETSTAKE_MIN_AMOUNT
    [staking] amount_unit                     → BUCKETSTAKE_AMOUNT_UNIT
    [staking] min_duration                    → BUCKETSTAKE_MIN_DURATION
    [staking] max_duration                    → BUCKETSTAKE_MAX_DURATION
    [staking] emergency_withdraw_penalty_rate → BUCKETSTAKE_PENALTY_RATE
    [staking] owner                           → BUCKETSTAKE_OWNER
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    DEFAULT_PENALTY_RATE,
    MAX_PENALTY_RATE,
    MIN_BUCKET_AMOUNT,
    WITHDRAWAL_DELAY_BLOCKS,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


def _optional_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return _decimal(value, name)


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return _int(value, name)


@dataclass
class StakingConfig:
    """
    Staking policy configuration.

    Loaded from config.toml [staking] section.
    """

    # Blocks between unstake and withdraw
    withdrawal_delay: int = WITHDRAWAL_DELAY_BLOCKS

    # Registry floor for bucket type amounts (types must also be > 0)
    min_amount: Decimal = MIN_BUCKET_AMOUNT

    # When set, bucket type amounts must be exact multiples of it
    amount_unit: Optional[Decimal] = None

    # Optional bounds on bucket type durations, in blocks
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None

    # Percent of the bucket amount kept as a fee on emergency withdraw
    emergency_withdraw_penalty_rate: int = DEFAULT_PENALTY_RATE

    # Initial admin account for privileged calls
    owner: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakingConfig":
        """Create from dictionary."""
        return cls(
            withdrawal_delay=_int(
                data.get("withdrawal_delay", WITHDRAWAL_DELAY_BLOCKS), "withdrawal_delay"
            ),
            min_amount=_decimal(data.get("min_amount", MIN_BUCKET_AMOUNT), "min_amount"),
            amount_unit=_optional_decimal(data.get("amount_unit"), "amount_unit"),
            min_duration=_optional_int(data.get("min_duration"), "min_duration"),
            max_duration=_optional_int(data.get("max_duration"), "max_duration"),
            emergency_withdraw_penalty_rate=_int(
                data.get("emergency_withdraw_penalty_rate", DEFAULT_PENALTY_RATE),
                "emergency_withdraw_penalty_rate",
            ),
            owner=data.get("owner", ""),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "StakingConfig":
        """
        Load configuration from TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            StakingConfig instance (defaults if the file does not exist)
        """
        path = Path(config_path)

        if not path.exists():
            logger.debug(f"Config file {path} not found, using defaults")
            return cls()

        with open(path, "rb") as f:
            config_data = tomli.load(f)

        return cls.from_dict(config_data.get("staking", {}))

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("BUCKETSTAKE_WITHDRAWAL_DELAY"):
            self.withdrawal_delay = _int(v, "BUCKETSTAKE_WITHDRAWAL_DELAY")
        if v := os.environ.get("BUCKETSTAKE_MIN_AMOUNT"):
            self.min_amount = _decimal(v, "BUCKETSTAKE_MIN_AMOUNT")
        if v := os.environ.get("BUCKETSTAKE_AMOUNT_UNIT"):
            self.amount_unit = _decimal(v, "BUCKETSTAKE_AMOUNT_UNIT")
        if v := os.environ.get("BUCKETSTAKE_MIN_DURATION"):
            self.min_duration = _int(v, "BUCKETSTAKE_MIN_DURATION")
        if v := os.environ.get("BUCKETSTAKE_MAX_DURATION"):
            self.max_duration = _int(v, "BUCKETSTAKE_MAX_DURATION")
        if v := os.environ.get("BUCKETSTAKE_PENALTY_RATE"):
            self.emergency_withdraw_penalty_rate = _int(v, "BUCKETSTAKE_PENALTY_RATE")
        if v := os.environ.get("BUCKETSTAKE_OWNER"):
            self.owner = v

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.withdrawal_delay < 0:
            raise ConfigurationError("withdrawal_delay must not be negative")
        if self.min_amount < 0:
            raise ConfigurationError("min_amount must not be negative")
        if self.amount_unit is not None and self.amount_unit <= 0:
            raise ConfigurationError("amount_unit must be positive")
        if self.min_duration is not None and self.min_duration <= 0:
            raise ConfigurationError("min_duration must be positive")
        if (
            self.min_duration is not None
            and self.max_duration is not None
            and self.max_duration < self.min_duration
        ):
            raise ConfigurationError("max_duration must not be below min_duration")
        if not 0 <= self.emergency_withdraw_penalty_rate <= MAX_PENALTY_RATE:
            raise ConfigurationError(
                f"emergency_withdraw_penalty_rate must be 0-{MAX_PENALTY_RATE}"
            )
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "withdrawal_delay": self.withdrawal_delay,
            "min_amount": str(self.min_amount),
            "amount_unit": str(self.amount_unit) if self.amount_unit is not None else None,
            "min_duration": self.min_duration,
            "max_duration": self.max_duration,
            "emergency_withdraw_penalty_rate": self.emergency_withdraw_penalty_rate,
            "owner": self.owner,
        }


def load_config(config_path: Optional[str] = None) -> StakingConfig:
    """
    Load, override from environment and validate the staking configuration.

    Args:
        config_path: Path to config.toml (defaults to $BUCKETSTAKE_CONFIG or ./config.toml)
    """
    path = config_path or os.environ.get("BUCKETSTAKE_CONFIG", "config.toml")
    config = StakingConfig.from_file(path)
    config.apply_env()
    config.validate()
    logger.info(
        f"Staking config loaded: withdrawal_delay={config.withdrawal_delay} "
        f"penalty_rate={config.emergency_withdraw_penalty_rate}%"
    )
    return config
