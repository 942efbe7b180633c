"""Unit tests for configuration"""
import logging
import pytest

from engagement import config
from engagement.exceptions import ConfigurationError
from engagement.logging_config import configure_logging
from engagement.models import EngagementPolicy, StreakType


def test_defaults_are_valid():
    """Test default configuration builds a valid policy"""
    config.validate_config()


def test_load_policy_uses_configuration(monkeypatch):
    """Test policy values come from configuration"""
    monkeypatch.setattr(config, "ENGAGEMENT_TIMEZONE", "Europe/Stockholm")
    monkeypatch.setattr(config, "RECOVERY_WINDOW_DAYS", 10)
    monkeypatch.setattr(config, "REMINDER_COOLDOWN_HOURS", 12)
    monkeypatch.setattr(config, "LOG_LEVEL", "INFO")

    policy = config.load_policy()

    assert isinstance(policy, EngagementPolicy)
    assert policy.timezone == "Europe/Stockholm"
    assert policy.recovery_window_days == 10
    assert policy.reminder_cooldown.total_seconds() == 12 * 3600


@pytest.mark.parametrize("key,value", [
    ("RECOVERY_WINDOW_DAYS", 0),
    ("RECOVERY_REQUIRED_ACTIONS", 0),
    ("REMINDER_COOLDOWN_HOURS", -1),
    ("MAX_RECOVERY_ATTEMPTS", -1),
    ("RISK_LAPSE_PERIODS", 0),
    ("LOG_LEVEL", "LOUD"),
])
def test_invalid_values_raise(monkeypatch, key, value):
    """Test invalid settings raise a configuration error"""
    monkeypatch.setattr(config, "LOG_LEVEL", "INFO")
    monkeypatch.setattr(config, key, value)

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config()

    assert exc_info.value.config_key == key


def test_unknown_timezone_raises(monkeypatch):
    """Test an unknown timezone setting raises"""
    monkeypatch.setattr(config, "LOG_LEVEL", "INFO")
    monkeypatch.setattr(config, "ENGAGEMENT_TIMEZONE", "Mars/Olympus_Mons")

    with pytest.raises(ConfigurationError):
        config.load_policy()


def test_policy_default_cadences():
    """Test default streak cadences"""
    policy = EngagementPolicy()
    assert policy.cadence_for(StreakType.DAILY_CHECK_IN).period_days == 1
    assert policy.cadence_for(StreakType.WEEKLY_GOAL_PROGRESS).period_days == 7
    assert all(policy.cadence_for(t).grace_periods == 1 for t in StreakType)


def test_configure_logging_sets_root_level():
    """Test logging setup applies the requested level"""
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("warning")
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)
