"""Gamification models: actions, streaks, profile, achievements, points history"""
from enum import Enum
from typing import Optional
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from engagement.models.base import new_id, utc_now
from engagement.utils.levels import level_from_points


class UserAction(str, Enum):
    """Actions a user can report"""
    CHECK_BALANCE = "CHECK_BALANCE"
    CATEGORIZE_TRANSACTION = "CATEGORIZE_TRANSACTION"
    UPDATE_GOAL = "UPDATE_GOAL"
    LINK_ACCOUNT = "LINK_ACCOUNT"
    COMPLETE_MICRO_TASK = "COMPLETE_MICRO_TASK"
    REVIEW_INSIGHTS = "REVIEW_INSIGHTS"
    SET_BUDGET = "SET_BUDGET"
    MAKE_SAVINGS_CONTRIBUTION = "MAKE_SAVINGS_CONTRIBUTION"


class StreakType(str, Enum):
    """Behaviours tracked as streaks"""
    DAILY_CHECK_IN = "DAILY_CHECK_IN"
    UNDER_BUDGET = "UNDER_BUDGET"
    GOAL_PROGRESS = "GOAL_PROGRESS"
    TRANSACTION_CATEGORIZATION = "TRANSACTION_CATEGORIZATION"
    SAVINGS_CONTRIBUTION = "SAVINGS_CONTRIBUTION"
    WEEKLY_BUDGET_ADHERENCE = "WEEKLY_BUDGET_ADHERENCE"
    DAILY_SAVINGS = "DAILY_SAVINGS"
    WEEKLY_GOAL_PROGRESS = "WEEKLY_GOAL_PROGRESS"
    MICRO_WIN_COMPLETION = "MICRO_WIN_COMPLETION"
    FINANCIAL_HEALTH_CHECK = "FINANCIAL_HEALTH_CHECK"


class StreakRiskLevel(str, Enum):
    """How close a streak is to lapsing"""
    SAFE = "SAFE"
    LOW_RISK = "LOW_RISK"
    MEDIUM_RISK = "MEDIUM_RISK"
    HIGH_RISK = "HIGH_RISK"
    BROKEN = "BROKEN"


class PointsSource(str, Enum):
    """Why a points history entry was written"""
    ACTION = "ACTION"
    MILESTONE = "MILESTONE"
    ACHIEVEMENT = "ACHIEVEMENT"
    RECOVERY = "RECOVERY"
    MICRO_WIN = "MICRO_WIN"
    GOAL_PROGRESS = "GOAL_PROGRESS"


class AchievementCategory(str, Enum):
    """Achievement categories"""
    SAVINGS = "SAVINGS"
    BUDGETING = "BUDGETING"
    GOAL_ACHIEVEMENT = "GOAL_ACHIEVEMENT"
    ENGAGEMENT = "ENGAGEMENT"
    FINANCIAL_HEALTH = "FINANCIAL_HEALTH"


class AchievementType(str, Enum):
    """One-time achievements"""
    FIRST_GOAL_CREATED = "FIRST_GOAL_CREATED"
    FIRST_ACCOUNT_LINKED = "FIRST_ACCOUNT_LINKED"
    SAVINGS_MILESTONE_100 = "SAVINGS_MILESTONE_100"
    SAVINGS_MILESTONE_500 = "SAVINGS_MILESTONE_500"
    SAVINGS_MILESTONE_1000 = "SAVINGS_MILESTONE_1000"
    BUDGET_ADHERENCE_WEEK = "BUDGET_ADHERENCE_WEEK"
    BUDGET_ADHERENCE_MONTH = "BUDGET_ADHERENCE_MONTH"
    TRANSACTION_CATEGORIZER = "TRANSACTION_CATEGORIZER"
    GOAL_ACHIEVER = "GOAL_ACHIEVER"
    STREAK_MASTER_7 = "STREAK_MASTER_7"
    STREAK_MASTER_30 = "STREAK_MASTER_30"
    FINANCIAL_HEALTH_CHAMPION = "FINANCIAL_HEALTH_CHAMPION"
    MICRO_WIN_COLLECTOR = "MICRO_WIN_COLLECTOR"
    ENGAGEMENT_SUPERSTAR = "ENGAGEMENT_SUPERSTAR"


class Streak(BaseModel):
    """
    One incarnation of a (user, streak type) streak

    A break keeps the row as history; recoveries and organic restarts
    start a new row that carries best_count and recovery_attempts forward.
    """
    id: str = Field(default_factory=new_id)
    user_id: str
    streak_type: StreakType
    current_count: int = Field(default=1, ge=0)
    best_count: int = Field(default=1, ge=0)
    last_activity_date: date
    started_on: date
    is_active: bool = True
    risk_level: StreakRiskLevel = StreakRiskLevel.SAFE
    recovery_attempts: int = Field(default=0, ge=0)
    last_reminder_sent: Optional[datetime] = None
    lost_count: Optional[int] = None  # count at the most recent break
    last_milestone: int = 0  # highest milestone celebrated in this incarnation
    version: int = 1

    @model_validator(mode="after")
    def check_invariants(self) -> "Streak":
        if self.best_count < self.current_count:
            raise ValueError(
                f"best_count ({self.best_count}) must be >= current_count ({self.current_count})"
            )
        if self.risk_level == StreakRiskLevel.BROKEN and self.is_active:
            raise ValueError("A BROKEN streak cannot be active")
        return self


class Achievement(BaseModel):
    """Unlocked achievement (immutable)"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    achievement_type: AchievementType
    title: str
    description: str
    badge_icon: str
    points_awarded: int
    unlocked_at: datetime
    category: AchievementCategory


class PointsHistoryEntry(BaseModel):
    """Append-only audit record of a points grant"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    points: int = Field(ge=0)
    action: Optional[UserAction] = None  # None for grants not tied to an action
    description: Optional[str] = None
    earned_at: datetime
    source: PointsSource = PointsSource.ACTION


class GamificationProfile(BaseModel):
    """Per-user points aggregate; level is always derived from total_points"""
    user_id: str
    total_points: int = Field(default=0, ge=0)
    current_streaks: list[Streak] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    last_activity: datetime = Field(default_factory=utc_now)
    version: int = 0

    @computed_field
    @property
    def level(self) -> int:
        return level_from_points(self.total_points)
