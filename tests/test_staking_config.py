"""
Staking Configuration Test Suite

Tests for config.toml loading, environment overrides and validation.
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from bucketstake.config import StakingConfig, load_config
from bucketstake.constants import DEFAULT_PENALTY_RATE, WITHDRAWAL_DELAY_BLOCKS
from bucketstake.exceptions import ConfigurationError


SAMPLE_TOML = """
[staking]
withdrawal_delay = 120
min_amount = "10"
amount_unit = "5"
min_duration = 100
max_duration = 1000
emergency_withdraw_penalty_rate = 20
owner = "0xowner"
"""

ENV_VARS = (
    "BUCKETSTAKE_CONFIG",
    "BUCKETSTAKE_WITHDRAWAL_DELAY",
    "BUCKETSTAKE_MIN_AMOUNT",
    "BUCKETSTAKE_AMOUNT_UNIT",
    "BUCKETSTAKE_MIN_DURATION",
    "BUCKETSTAKE_MAX_DURATION",
    "BUCKETSTAKE_PENALTY_RATE",
    "BUCKETSTAKE_OWNER",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE_TOML)
    return path


class TestStakingConfig:

    def test_defaults(self):
        config = StakingConfig()
        assert config.withdrawal_delay == WITHDRAWAL_DELAY_BLOCKS
        assert config.emergency_withdraw_penalty_rate == DEFAULT_PENALTY_RATE
        assert config.amount_unit is None
        assert config.validate()

    def test_from_dict(self):
        config = StakingConfig.from_dict({"min_amount": "2.5", "max_duration": 50})
        assert config.min_amount == Decimal("2.5")
        assert config.max_duration == 50
        assert config.min_duration is None

    def test_from_dict_bad_number(self):
        with pytest.raises(ConfigurationError):
            StakingConfig.from_dict({"min_amount": "lots"})

    @pytest.mark.parametrize("data", [
        {"withdrawal_delay": "soon"},
        {"emergency_withdraw_penalty_rate": "high"},
        {"withdrawal_delay": True},
    ])
    def test_from_dict_bad_integer(self, data):
        with pytest.raises(ConfigurationError):
            StakingConfig.from_dict(data)

    @pytest.mark.parametrize("name", [
        "BUCKETSTAKE_WITHDRAWAL_DELAY",
        "BUCKETSTAKE_MIN_DURATION",
        "BUCKETSTAKE_MAX_DURATION",
        "BUCKETSTAKE_PENALTY_RATE",
    ])
    def test_apply_env_bad_integer(self, monkeypatch, name):
        monkeypatch.setenv(name, "soon")
        with pytest.raises(ConfigurationError):
            StakingConfig().apply_env()

    def test_from_file(self, config_file):
        config = StakingConfig.from_file(str(config_file))
        assert config.withdrawal_delay == 120
        assert config.min_amount == Decimal("10")
        assert config.amount_unit == Decimal("5")
        assert (config.min_duration, config.max_duration) == (100, 1000)
        assert config.emergency_withdraw_penalty_rate == 20
        assert config.owner == "0xowner"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = StakingConfig.from_file(str(tmp_path / "absent.toml"))
        assert config == StakingConfig()

    def test_apply_env(self, monkeypatch):
        monkeypatch.setenv("BUCKETSTAKE_WITHDRAWAL_DELAY", "7")
        monkeypatch.setenv("BUCKETSTAKE_AMOUNT_UNIT", "0.5")
        monkeypatch.setenv("BUCKETSTAKE_PENALTY_RATE", "90")
        monkeypatch.setenv("BUCKETSTAKE_OWNER", "0xadmin")
        config = StakingConfig()
        config.apply_env()
        assert config.withdrawal_delay == 7
        assert config.amount_unit == Decimal("0.5")
        assert config.emergency_withdraw_penalty_rate == 90
        assert config.owner == "0xadmin"

    @pytest.mark.parametrize("overrides", [
        {"withdrawal_delay": -1},
        {"min_amount": Decimal("-1")},
        {"amount_unit": Decimal("0")},
        {"min_duration": 0},
        {"min_duration": 10, "max_duration": 5},
        {"emergency_withdraw_penalty_rate": 101},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ConfigurationError):
            StakingConfig(**overrides).validate()

    def test_to_dict(self):
        data = StakingConfig(amount_unit=Decimal("5"), owner="0xowner").to_dict()
        assert data["amount_unit"] == "5"
        assert data["owner"] == "0xowner"
        assert StakingConfig.from_dict(data).amount_unit == Decimal("5")


class TestLoadConfig:

    def test_load_from_path_with_env_override(self, config_file, monkeypatch):
        monkeypatch.setenv("BUCKETSTAKE_WITHDRAWAL_DELAY", "60")
        config = load_config(str(config_file))
        assert config.withdrawal_delay == 60
        assert config.min_amount == Decimal("10")

    def test_load_from_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("BUCKETSTAKE_CONFIG", str(config_file))
        assert load_config().owner == "0xowner"

    def test_load_invalid(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[staking]\nemergency_withdraw_penalty_rate = 150\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))
