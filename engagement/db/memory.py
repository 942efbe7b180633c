"""
In-memory EngagementRepository

Used by tests and by processes embedding the core without a database.
Records are copied on the way in and out so callers never share state
with the store.
"""

import logging
from typing import Dict, List, Optional, Tuple

from engagement.exceptions import ConcurrencyConflictError
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

logger = logging.getLogger(__name__)


def _check_version(record_type: str, record_id: str, stored_version: int, new_version: int) -> None:
    if stored_version != new_version - 1:
        raise ConcurrencyConflictError(
            message=(
                f"{record_type} {record_id} is at version {stored_version}, "
                f"update expected {new_version - 1}"
            ),
            record_type=record_type,
            record_id=record_id,
            expected_version=new_version - 1,
            actual_version=stored_version,
        )


class InMemoryEngagementRepository:
    """Dict-backed store with compare-and-swap updates"""

    def __init__(self):
        self._profiles: Dict[str, GamificationProfile] = {}
        self._streaks: Dict[str, Streak] = {}  # insertion order = incarnation order
        self._recoveries: Dict[str, StreakRecovery] = {}
        self._achievements: Dict[Tuple[str, AchievementType], Achievement] = {}
        self._history: List[PointsHistoryEntry] = []
        self._reminders: Dict[str, StreakReminder] = {}

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_gamification_profile(self, user_id: str) -> Optional[GamificationProfile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def create_gamification_profile(self, profile: GamificationProfile) -> GamificationProfile:
        if profile.user_id in self._profiles:
            stored = self._profiles[profile.user_id]
            raise ConcurrencyConflictError(
                message=f"Profile for {profile.user_id} already exists",
                record_type="profile",
                record_id=profile.user_id,
                expected_version=None,
                actual_version=stored.version,
                current_state=stored.model_copy(deep=True),
            )
        self._profiles[profile.user_id] = profile.model_copy(deep=True)
        return profile

    async def update_gamification_profile(self, profile: GamificationProfile) -> GamificationProfile:
        stored = self._profiles.get(profile.user_id)
        if stored is not None:
            _check_version("profile", profile.user_id, stored.version, profile.version)
        self._profiles[profile.user_id] = profile.model_copy(deep=True)
        return profile

    # ------------------------------------------------------------------
    # Streaks
    # ------------------------------------------------------------------

    async def get_streak(self, user_id: str, streak_type: StreakType) -> Optional[Streak]:
        latest = None
        for streak in self._streaks.values():
            if streak.user_id == user_id and streak.streak_type == streak_type:
                latest = streak
        return latest.model_copy(deep=True) if latest else None

    async def get_streak_by_id(self, user_id: str, streak_id: str) -> Optional[Streak]:
        streak = self._streaks.get(streak_id)
        if streak is None or streak.user_id != user_id:
            return None
        return streak.model_copy(deep=True)

    async def get_active_streaks(self, user_id: str) -> list[Streak]:
        return [
            s.model_copy(deep=True) for s in self._streaks.values()
            if s.user_id == user_id and s.is_active
        ]

    async def get_all_user_streaks(self, user_id: str) -> list[Streak]:
        return [s.model_copy(deep=True) for s in self._streaks.values() if s.user_id == user_id]

    async def update_streak(self, streak: Streak) -> Streak:
        stored = self._streaks.get(streak.id)
        if stored is not None:
            _check_version("streak", streak.id, stored.version, streak.version)
        else:
            logger.debug(f"Inserting {streak.streak_type.value} streak {streak.id} for {streak.user_id}")
        self._streaks[streak.id] = streak.model_copy(deep=True)
        return streak

    # ------------------------------------------------------------------
    # Recoveries
    # ------------------------------------------------------------------

    async def create_streak_recovery(self, recovery: StreakRecovery) -> StreakRecovery:
        self._recoveries[recovery.id] = recovery.model_copy(deep=True)
        return recovery

    async def get_streak_recovery(self, user_id: str, recovery_id: str) -> Optional[StreakRecovery]:
        recovery = self._recoveries.get(recovery_id)
        if recovery is None or recovery.user_id != user_id:
            return None
        return recovery.model_copy(deep=True)

    async def update_streak_recovery(self, recovery: StreakRecovery) -> StreakRecovery:
        stored = self._recoveries.get(recovery.id)
        if stored is not None:
            _check_version("recovery", recovery.id, stored.version, recovery.version)
        self._recoveries[recovery.id] = recovery.model_copy(deep=True)
        return recovery

    async def get_active_recoveries(self, user_id: str) -> list[StreakRecovery]:
        return [
            r.model_copy(deep=True) for r in self._recoveries.values()
            if r.user_id == user_id and r.is_open
        ]

    async def get_all_recoveries(self, user_id: str) -> list[StreakRecovery]:
        return [r.model_copy(deep=True) for r in self._recoveries.values() if r.user_id == user_id]

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------

    async def get_achievement(self, user_id: str, achievement_type: AchievementType) -> Optional[Achievement]:
        return self._achievements.get((user_id, achievement_type))

    async def get_achievements(self, user_id: str) -> list[Achievement]:
        return [a for (uid, _), a in self._achievements.items() if uid == user_id]

    async def add_achievement(self, achievement: Achievement) -> Achievement:
        key = (achievement.user_id, achievement.achievement_type)
        if key in self._achievements:
            return self._achievements[key]
        self._achievements[key] = achievement
        return achievement

    # ------------------------------------------------------------------
    # Points history
    # ------------------------------------------------------------------

    async def add_points_history(self, entry: PointsHistoryEntry) -> PointsHistoryEntry:
        self._history.append(entry)
        return entry

    async def get_points_history(self, user_id: str, limit: int = 50) -> list[PointsHistoryEntry]:
        entries = [e for e in self._history if e.user_id == user_id]
        entries.reverse()
        entries.sort(key=lambda e: e.earned_at, reverse=True)
        return entries[:limit]

    async def count_actions(
        self,
        user_id: str,
        action: UserAction,
        source: PointsSource = PointsSource.ACTION
    ) -> int:
        return sum(
            1 for e in self._history
            if e.user_id == user_id and e.action == action and e.source == source
        )

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def create_streak_reminder(self, reminder: StreakReminder) -> StreakReminder:
        self._reminders[reminder.id] = reminder.model_copy(deep=True)
        return reminder

    async def get_active_reminders(self, user_id: str) -> list[StreakReminder]:
        reminders = [
            r.model_copy(deep=True) for r in self._reminders.values()
            if r.user_id == user_id and not r.is_read
        ]
        reminders.sort(key=lambda r: r.scheduled_for)
        return reminders

    async def mark_reminder_as_read(self, user_id: str, reminder_id: str) -> Optional[StreakReminder]:
        reminder = self._reminders.get(reminder_id)
        if reminder is None or reminder.user_id != user_id:
            return None
        updated = reminder.model_copy(update={"is_read": True})
        self._reminders[reminder_id] = updated
        return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # GDPR
    # ------------------------------------------------------------------

    async def delete_user_data(self, user_id: str) -> None:
        self._profiles.pop(user_id, None)
        self._streaks = {k: v for k, v in self._streaks.items() if v.user_id != user_id}
        self._recoveries = {k: v for k, v in self._recoveries.items() if v.user_id != user_id}
        self._achievements = {k: v for k, v in self._achievements.items() if k[0] != user_id}
        self._history = [e for e in self._history if e.user_id != user_id]
        self._reminders = {k: v for k, v in self._reminders.items() if v.user_id != user_id}
        logger.info(f"Deleted engagement data for user {user_id}")
