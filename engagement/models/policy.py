"""Tunable engagement rules"""
from datetime import timedelta
from typing import Dict

from pydantic import BaseModel, Field, field_validator, model_validator
import pytz

from engagement.models.gamification import StreakType, UserAction


class StreakCadence(BaseModel):
    """How often a streak type must be fed"""
    period_days: int = Field(default=1, ge=1)
    grace_periods: int = Field(default=1, ge=1)  # gaps up to this many periods still extend


DAILY = StreakCadence(period_days=1, grace_periods=1)
WEEKLY = StreakCadence(period_days=7, grace_periods=1)

DEFAULT_CADENCES: Dict[StreakType, StreakCadence] = {
    StreakType.DAILY_CHECK_IN: DAILY,
    StreakType.UNDER_BUDGET: DAILY,
    StreakType.GOAL_PROGRESS: DAILY,
    StreakType.TRANSACTION_CATEGORIZATION: DAILY,
    StreakType.SAVINGS_CONTRIBUTION: DAILY,
    StreakType.WEEKLY_BUDGET_ADHERENCE: WEEKLY,
    StreakType.DAILY_SAVINGS: DAILY,
    StreakType.WEEKLY_GOAL_PROGRESS: WEEKLY,
    StreakType.MICRO_WIN_COMPLETION: DAILY,
    StreakType.FINANCIAL_HEALTH_CHECK: DAILY,
}

DEFAULT_ACTION_POINTS: Dict[UserAction, int] = {
    UserAction.CHECK_BALANCE: 5,
    UserAction.CATEGORIZE_TRANSACTION: 10,
    UserAction.UPDATE_GOAL: 15,
    UserAction.LINK_ACCOUNT: 50,
    UserAction.COMPLETE_MICRO_TASK: 20,
    UserAction.REVIEW_INSIGHTS: 10,
    UserAction.SET_BUDGET: 25,
    UserAction.MAKE_SAVINGS_CONTRIBUTION: 30,
}

# Streak milestone -> bonus points
DEFAULT_MILESTONE_BONUSES: Dict[int, int] = {
    3: 20,
    7: 50,
    14: 100,
    21: 150,
    30: 200,
    50: 300,
    60: 350,
    90: 500,
    180: 750,
    365: 1000,
}


class EngagementPolicy(BaseModel):
    """
    Every tunable rule of the engagement core

    Built from the environment by engagement.config.load_policy(); tests
    construct it directly.
    """
    timezone: str = "UTC"
    reminder_cooldown_hours: int = Field(default=24, ge=0)
    recovery_window_days: int = Field(default=7, ge=1)
    recovery_required_actions: int = Field(default=3, ge=1)
    recovery_action_points: int = Field(default=10, ge=0)
    max_recovery_attempts: int = Field(default=5, ge=0)
    risk_lapse_periods: int = Field(default=7, ge=1)
    cadences: Dict[StreakType, StreakCadence] = Field(
        default_factory=lambda: dict(DEFAULT_CADENCES)
    )
    action_points: Dict[UserAction, int] = Field(
        default_factory=lambda: dict(DEFAULT_ACTION_POINTS)
    )
    milestone_bonuses: Dict[int, int] = Field(
        default_factory=lambda: dict(DEFAULT_MILESTONE_BONUSES)
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure valid IANA timezone"""
        try:
            pytz.timezone(v)
        except pytz.exceptions.UnknownTimeZoneError:
            raise ValueError(
                f"Invalid timezone: '{v}'. "
                f"Use IANA timezone (e.g., 'Europe/Stockholm', 'America/New_York')"
            )
        return v

    @field_validator("milestone_bonuses")
    @classmethod
    def validate_milestones(cls, v: Dict[int, int]) -> Dict[int, int]:
        for threshold, bonus in v.items():
            if threshold < 1 or bonus < 0:
                raise ValueError(f"Invalid milestone {threshold} -> {bonus}")
        return v

    @model_validator(mode="after")
    def fill_missing_cadences(self) -> "EngagementPolicy":
        for streak_type in StreakType:
            self.cadences.setdefault(streak_type, DEFAULT_CADENCES[streak_type])
        return self

    @property
    def reminder_cooldown(self) -> timedelta:
        return timedelta(hours=self.reminder_cooldown_hours)

    @property
    def recovery_window(self) -> timedelta:
        return timedelta(days=self.recovery_window_days)

    @property
    def milestones(self) -> list[int]:
        return sorted(self.milestone_bonuses)

    def cadence_for(self, streak_type: StreakType) -> StreakCadence:
        return self.cadences[streak_type]

    def points_for(self, action: UserAction) -> int:
        return self.action_points.get(action, 0)
