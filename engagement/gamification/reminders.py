"""
Reminder planning

Turns risk analyses and open recoveries into StreakReminder records.
Delivery is the notification scheduler's job.

Delay before delivery:
- GENTLE_NUDGE: 2 hours
- MOTIVATION_BOOST: 1 hour
- STREAK_RISK_ALERT: 30 minutes
- RECOVERY_SUPPORT: 4 hours, 1 day and 2 days after the recovery starts
"""

from typing import Iterable, List
from datetime import datetime, timedelta
import logging

from engagement.gamification.recovery_system import RECOVERY_REMINDER_OFFSETS_HOURS
from engagement.models import (
    ReminderType,
    RiskAnalysis,
    Streak,
    StreakRecovery,
    StreakReminder,
    evolve,
)
from engagement.utils.clock import ensure_utc

logger = logging.getLogger(__name__)

REMINDER_DELAYS = {
    ReminderType.GENTLE_NUDGE: timedelta(hours=2),
    ReminderType.MOTIVATION_BOOST: timedelta(hours=1),
    ReminderType.STREAK_RISK_ALERT: timedelta(minutes=30),
    ReminderType.RECOVERY_SUPPORT: timedelta(hours=4),
}


def build_risk_reminders(analyses: Iterable[RiskAnalysis], now: datetime) -> List[StreakReminder]:
    """One reminder per analysis that is allowed to remind"""
    now = ensure_utc(now)
    reminders = []
    for analysis in analyses:
        if not analysis.should_remind or analysis.reminder_type is None:
            continue
        streak = analysis.streak
        reminders.append(StreakReminder(
            user_id=streak.user_id,
            streak_id=streak.id,
            streak_type=streak.streak_type,
            reminder_type=analysis.reminder_type,
            message_key=analysis.reminder_message_key,
            scheduled_for=now + REMINDER_DELAYS[analysis.reminder_type],
            created_at=now,
            context_data={
                "streak_count": streak.current_count,
                "risk_level": analysis.risk_level.value,
                "recommended_actions": [a.value for a in analysis.recommended_actions],
            },
        ))
    return reminders


def build_recovery_reminders(recovery: StreakRecovery) -> List[StreakReminder]:
    started = ensure_utc(recovery.recovery_started)
    return [
        StreakReminder(
            user_id=recovery.user_id,
            streak_id=recovery.original_streak_id,
            streak_type=recovery.streak_type,
            reminder_type=ReminderType.RECOVERY_SUPPORT,
            message_key="streak_reminder.recovery_support",
            scheduled_for=started + timedelta(hours=hours),
            created_at=started,
            context_data={"recovery_id": recovery.id, "original_count": recovery.original_count},
        )
        for hours in RECOVERY_REMINDER_OFFSETS_HOURS
    ]


def stamp_reminder_sent(streak: Streak, now: datetime) -> Streak:
    return evolve(streak, last_reminder_sent=ensure_utc(now), version=streak.version + 1)
