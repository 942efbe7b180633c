"""Derived results and events returned by engagement operations"""
from enum import Enum
from typing import Any, Dict, Optional
from datetime import datetime

from pydantic import BaseModel, Field

from engagement.models.base import new_id, utc_now
from engagement.models.gamification import (
    Achievement,
    Streak,
    StreakRiskLevel,
    StreakType,
    UserAction,
)
from engagement.models.recovery import RecoveryAction, StreakRecovery


class CelebrationType(str, Enum):
    STREAK_MILESTONE = "STREAK_MILESTONE"
    GOAL_MILESTONE = "GOAL_MILESTONE"
    LEVEL_UP = "LEVEL_UP"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    MICRO_WIN = "MICRO_WIN"
    RECOVERY_COMPLETE = "RECOVERY_COMPLETE"


class CelebrationIntensity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ReminderType(str, Enum):
    GENTLE_NUDGE = "GENTLE_NUDGE"
    MOTIVATION_BOOST = "MOTIVATION_BOOST"
    STREAK_RISK_ALERT = "STREAK_RISK_ALERT"
    RECOVERY_SUPPORT = "RECOVERY_SUPPORT"


class MicroWinDifficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class CelebrationEvent(BaseModel):
    """Something worth celebrating; rendering is left to the client"""
    id: str = Field(default_factory=new_id)
    user_id: str
    type: CelebrationType
    title_key: str
    message_key: str
    intensity: CelebrationIntensity
    duration_ms: int
    bonus_points: int = 0
    is_new_record: bool = False
    streak_id: Optional[str] = None
    milestone: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


class PointsResult(BaseModel):
    """Outcome of a points grant, achievement bonuses included"""
    user_id: str
    action: UserAction
    points_awarded: int
    bonus_points: int = 0
    total_points: int
    previous_level: int
    new_level: int
    leveled_up: bool
    new_achievements: list[Achievement] = Field(default_factory=list)
    celebrations: list[CelebrationEvent] = Field(default_factory=list)


class LevelUpResult(BaseModel):
    previous_level: int
    new_level: int
    total_points: int
    unlocked_features: list[str] = Field(default_factory=list)
    celebration: Optional[CelebrationEvent] = None


class StreakUpdateResult(BaseModel):
    """Outcome of recording one activity against one streak type"""
    streak: Streak
    was_extended: bool = False
    was_broken: bool = False
    was_started: bool = False
    was_restarted: bool = False
    previous_count: int = 0
    celebration: Optional[CelebrationEvent] = None

    @property
    def changed(self) -> bool:
        return self.was_extended or self.was_broken or self.was_started or self.was_restarted


class RiskAnalysis(BaseModel):
    streak: Streak
    risk_level: StreakRiskLevel
    days_since_last_activity: int
    urgency_score: float
    recommended_actions: list[UserAction] = Field(default_factory=list)
    reminder_message_key: Optional[str] = None
    reminder_type: Optional[ReminderType] = None
    should_remind: bool = False


class StreakReminder(BaseModel):
    """Reminder handed to the notification scheduler"""
    id: str = Field(default_factory=new_id)
    user_id: str
    streak_id: Optional[str] = None
    streak_type: StreakType
    reminder_type: ReminderType
    message_key: str
    scheduled_for: datetime
    is_read: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    context_data: Dict[str, Any] = Field(default_factory=dict)


class RecoveryActionResult(BaseModel):
    recovery: StreakRecovery
    action_processed: Optional[RecoveryAction] = None
    points_awarded: int = 0
    is_complete: bool = False
    actions_remaining: int = 0
    new_streak: Optional[Streak] = None
    celebration: Optional[CelebrationEvent] = None


class MicroWinOpportunity(BaseModel):
    """Small, achievable task suggested to the user"""
    id: str = Field(default_factory=new_id)
    title_key: str
    description_key: str
    action: UserAction
    difficulty: MicroWinDifficulty
    points: int
    is_personalized: bool = False
    streak_type: Optional[StreakType] = None
    context_data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0


class DetectedMicroWin(BaseModel):
    title_key: str
    description_key: str
    difficulty: MicroWinDifficulty
    points: int


class MicroWinResult(BaseModel):
    micro_wins: list[DetectedMicroWin] = Field(default_factory=list)
    total_points: int = 0
    points_result: Optional[PointsResult] = None
    celebrations: list[CelebrationEvent] = Field(default_factory=list)


class StreakStatistics(BaseModel):
    active_streaks: int = 0
    total_streaks: int = 0
    longest_current_streak: int = 0
    longest_ever_streak: int = 0
    at_risk_streaks: int = 0
    total_recoveries: int = 0
    successful_recoveries: int = 0
    recovery_success_rate: float = 0.0
    streaks_by_type: Dict[StreakType, int] = Field(default_factory=dict)


class ActionOutcome(BaseModel):
    """Everything one user action caused"""
    user_id: str
    action: UserAction
    occurred_at: datetime
    points: PointsResult
    streak_updates: list[StreakUpdateResult] = Field(default_factory=list)
    recovery_results: list[RecoveryActionResult] = Field(default_factory=list)
    recoveries_started: list[StreakRecovery] = Field(default_factory=list)
    risk_analyses: list[RiskAnalysis] = Field(default_factory=list)
    new_achievements: list[Achievement] = Field(default_factory=list)
    celebrations: list[CelebrationEvent] = Field(default_factory=list)
