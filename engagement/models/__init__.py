"""Data models"""
from engagement.models.base import evolve, new_id
from engagement.models.gamification import (
    Achievement,
    AchievementCategory,
    AchievementType,
    GamificationProfile,
    PointsHistoryEntry,
    PointsSource,
    Streak,
    StreakRiskLevel,
    StreakType,
    UserAction,
)
from engagement.models.recovery import RecoveryAction, RecoveryStatus, StreakRecovery
from engagement.models.events import (
    ActionOutcome,
    CelebrationEvent,
    CelebrationIntensity,
    CelebrationType,
    DetectedMicroWin,
    LevelUpResult,
    MicroWinDifficulty,
    MicroWinOpportunity,
    MicroWinResult,
    PointsResult,
    RecoveryActionResult,
    ReminderType,
    RiskAnalysis,
    StreakReminder,
    StreakStatistics,
    StreakUpdateResult,
)
from engagement.models.policy import EngagementPolicy, StreakCadence

__all__ = [
    "evolve",
    "new_id",
    "Achievement",
    "AchievementCategory",
    "AchievementType",
    "GamificationProfile",
    "PointsHistoryEntry",
    "PointsSource",
    "Streak",
    "StreakRiskLevel",
    "StreakType",
    "UserAction",
    "RecoveryAction",
    "RecoveryStatus",
    "StreakRecovery",
    "ActionOutcome",
    "CelebrationEvent",
    "CelebrationIntensity",
    "CelebrationType",
    "DetectedMicroWin",
    "LevelUpResult",
    "MicroWinDifficulty",
    "MicroWinOpportunity",
    "MicroWinResult",
    "PointsResult",
    "RecoveryActionResult",
    "ReminderType",
    "RiskAnalysis",
    "StreakReminder",
    "StreakStatistics",
    "StreakUpdateResult",
    "EngagementPolicy",
    "StreakCadence",
]
