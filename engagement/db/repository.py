"""
Storage boundary for the engagement core

Implementations persist whole records. Updates are compare-and-swap on the
record's version: the stored row must be at version - 1, otherwise the
implementation raises ConcurrencyConflictError.
"""

from typing import Optional, Protocol

from engagement.models import (
    Achievement,
    AchievementType,
    GamificationProfile,
    PointsHistoryEntry,
    PointsSource,
    Streak,
    StreakRecovery,
    StreakReminder,
    StreakType,
    UserAction,
)


class EngagementRepository(Protocol):
    # Profile
    async def get_gamification_profile(self, user_id: str) -> Optional[GamificationProfile]: ...

    async def create_gamification_profile(self, profile: GamificationProfile) -> GamificationProfile: ...

    async def update_gamification_profile(self, profile: GamificationProfile) -> GamificationProfile: ...

    # Streaks
    async def get_streak(self, user_id: str, streak_type: StreakType) -> Optional[Streak]:
        """Latest incarnation for (user_id, streak_type)"""
        ...

    async def get_streak_by_id(self, user_id: str, streak_id: str) -> Optional[Streak]: ...

    async def get_active_streaks(self, user_id: str) -> list[Streak]: ...

    async def get_all_user_streaks(self, user_id: str) -> list[Streak]: ...

    async def update_streak(self, streak: Streak) -> Streak:
        """Insert a new incarnation or compare-and-swap an existing one"""
        ...

    # Recoveries
    async def create_streak_recovery(self, recovery: StreakRecovery) -> StreakRecovery: ...

    async def get_streak_recovery(self, user_id: str, recovery_id: str) -> Optional[StreakRecovery]: ...

    async def update_streak_recovery(self, recovery: StreakRecovery) -> StreakRecovery: ...

    async def get_active_recoveries(self, user_id: str) -> list[StreakRecovery]: ...

    async def get_all_recoveries(self, user_id: str) -> list[StreakRecovery]: ...

    # Achievements
    async def get_achievement(self, user_id: str, achievement_type: AchievementType) -> Optional[Achievement]: ...

    async def get_achievements(self, user_id: str) -> list[Achievement]: ...

    async def add_achievement(self, achievement: Achievement) -> Achievement:
        """Store an achievement; returns the existing record if one is already stored"""
        ...

    # Points history
    async def add_points_history(self, entry: PointsHistoryEntry) -> PointsHistoryEntry: ...

    async def get_points_history(self, user_id: str, limit: int = 50) -> list[PointsHistoryEntry]:
        """Most recent first"""
        ...

    async def count_actions(
        self,
        user_id: str,
        action: UserAction,
        source: PointsSource = PointsSource.ACTION
    ) -> int: ...

    # Reminders
    async def create_streak_reminder(self, reminder: StreakReminder) -> StreakReminder: ...

    async def get_active_reminders(self, user_id: str) -> list[StreakReminder]: ...

    async def mark_reminder_as_read(self, user_id: str, reminder_id: str) -> Optional[StreakReminder]: ...

    # GDPR
    async def delete_user_data(self, user_id: str) -> None: ...
