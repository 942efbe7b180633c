"""
Compute-then-persist change set

Service operations stage every record they produce here and commit once
all state has been computed. If computing fails nothing is written.

The commit is ordered, not atomic: the repository contract only makes each
call atomic. Writes go streaks, recoveries, profile, achievements, history,
then reminders; if one fails the remaining writes are skipped and the error
propagates, so rows written before it stay written. A transactional
repository can wrap commit() in its own transaction.
"""

import logging
from typing import Dict, List, Optional

from engagement.db.repository import EngagementRepository
from engagement.observability.metrics import track_commit
from engagement.models import (
    Achievement,
    GamificationProfile,
    PointsHistoryEntry,
    Streak,
    StreakRecovery,
    StreakReminder,
)

logger = logging.getLogger(__name__)


class ChangeSet:
    """Records staged by one service operation"""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.profile: Optional[GamificationProfile] = None
        self.streaks: Dict[str, Streak] = {}
        self.new_recoveries: Dict[str, StreakRecovery] = {}
        self.updated_recoveries: Dict[str, StreakRecovery] = {}
        self.achievements: List[Achievement] = []
        self.history: List[PointsHistoryEntry] = []
        self.reminders: List[StreakReminder] = []

    def put_profile(self, profile: GamificationProfile) -> None:
        self.profile = profile

    def put_streak(self, streak: Streak) -> None:
        self.streaks[streak.id] = streak

    def add_recovery(self, recovery: StreakRecovery) -> None:
        self.new_recoveries[recovery.id] = recovery

    def put_recovery(self, recovery: StreakRecovery) -> None:
        if recovery.id in self.new_recoveries:
            self.new_recoveries[recovery.id] = recovery
        else:
            self.updated_recoveries[recovery.id] = recovery

    def add_achievement(self, achievement: Achievement) -> None:
        self.achievements.append(achievement)

    def add_history(self, entry: PointsHistoryEntry) -> None:
        self.history.append(entry)

    def add_reminder(self, reminder: StreakReminder) -> None:
        self.reminders.append(reminder)

    @property
    def is_empty(self) -> bool:
        return not (
            self.profile or self.streaks or self.new_recoveries or self.updated_recoveries
            or self.achievements or self.history or self.reminders
        )

    async def commit(self, repository: EngagementRepository) -> None:
        if self.is_empty:
            return

        with track_commit():
            for streak in self.streaks.values():
                await repository.update_streak(streak)
            for recovery in self.new_recoveries.values():
                await repository.create_streak_recovery(recovery)
            for recovery in self.updated_recoveries.values():
                await repository.update_streak_recovery(recovery)
            if self.profile is not None:
                await repository.update_gamification_profile(self.profile)
            for achievement in self.achievements:
                await repository.add_achievement(achievement)
            for entry in self.history:
                await repository.add_points_history(entry)
            for reminder in self.reminders:
                await repository.create_streak_reminder(reminder)

        logger.debug(
            f"Committed changes for {self.user_id}: {len(self.streaks)} streaks, "
            f"{len(self.new_recoveries) + len(self.updated_recoveries)} recoveries, "
            f"{len(self.achievements)} achievements, {len(self.history)} history entries"
        )
