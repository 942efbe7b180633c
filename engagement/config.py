"""Configuration management"""
import os
from dotenv import load_dotenv

from engagement.exceptions import ConfigurationError
from engagement.models.policy import EngagementPolicy

load_dotenv()

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Calendar days are evaluated in this IANA timezone
ENGAGEMENT_TIMEZONE: str = os.getenv("ENGAGEMENT_TIMEZONE", "UTC")

# Reminders
REMINDER_COOLDOWN_HOURS: int = int(os.getenv("REMINDER_COOLDOWN_HOURS", "24"))

# Recovery
RECOVERY_WINDOW_DAYS: int = int(os.getenv("RECOVERY_WINDOW_DAYS", "7"))
RECOVERY_REQUIRED_ACTIONS: int = int(os.getenv("RECOVERY_REQUIRED_ACTIONS", "3"))
MAX_RECOVERY_ATTEMPTS: int = int(os.getenv("MAX_RECOVERY_ATTEMPTS", "5"))

# Streaks idle for more periods than this are treated as lapsed
RISK_LAPSE_PERIODS: int = int(os.getenv("RISK_LAPSE_PERIODS", "7"))

# Observability
ENABLE_METRICS: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# Validation
def validate_config() -> None:
    """Validate configuration values"""
    if LOG_LEVEL.upper() not in VALID_LOG_LEVELS:
        raise ConfigurationError(f"LOG_LEVEL must be one of {sorted(VALID_LOG_LEVELS)}", config_key="LOG_LEVEL")
    if REMINDER_COOLDOWN_HOURS < 0:
        raise ConfigurationError("REMINDER_COOLDOWN_HOURS must be >= 0", config_key="REMINDER_COOLDOWN_HOURS")
    if RECOVERY_WINDOW_DAYS < 1:
        raise ConfigurationError("RECOVERY_WINDOW_DAYS must be >= 1", config_key="RECOVERY_WINDOW_DAYS")
    if RECOVERY_REQUIRED_ACTIONS < 1:
        raise ConfigurationError("RECOVERY_REQUIRED_ACTIONS must be >= 1", config_key="RECOVERY_REQUIRED_ACTIONS")
    if MAX_RECOVERY_ATTEMPTS < 0:
        raise ConfigurationError("MAX_RECOVERY_ATTEMPTS must be >= 0", config_key="MAX_RECOVERY_ATTEMPTS")
    if RISK_LAPSE_PERIODS < 1:
        raise ConfigurationError("RISK_LAPSE_PERIODS must be >= 1", config_key="RISK_LAPSE_PERIODS")


def load_policy() -> EngagementPolicy:
    """Build the engagement policy from configuration"""
    validate_config()
    try:
        return EngagementPolicy(
            timezone=ENGAGEMENT_TIMEZONE,
            reminder_cooldown_hours=REMINDER_COOLDOWN_HOURS,
            recovery_window_days=RECOVERY_WINDOW_DAYS,
            recovery_required_actions=RECOVERY_REQUIRED_ACTIONS,
            max_recovery_attempts=MAX_RECOVERY_ATTEMPTS,
            risk_lapse_periods=RISK_LAPSE_PERIODS,
        )
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid engagement configuration: {e}",
            config_key="ENGAGEMENT_TIMEZONE",
            cause=e
        )
