"""
Notification scheduler boundary

The engagement core only hands reminders and celebrations over; delivery,
templating and copy live outside.
"""

import logging
from typing import Optional, Protocol

from engagement.models import CelebrationEvent, RiskAnalysis, StreakReminder

logger = logging.getLogger(__name__)


class NotificationScheduler(Protocol):
    async def schedule_reminder(self, reminder: StreakReminder, analysis: Optional[RiskAnalysis] = None) -> None: ...

    async def publish_celebration(self, user_id: str, event: CelebrationEvent) -> None: ...


class LoggingNotificationScheduler:
    """Default scheduler: logs what would be delivered"""

    async def schedule_reminder(self, reminder: StreakReminder, analysis: Optional[RiskAnalysis] = None) -> None:
        logger.info(
            f"Reminder {reminder.message_key} for user {reminder.user_id} "
            f"scheduled at {reminder.scheduled_for.isoformat()}"
        )

    async def publish_celebration(self, user_id: str, event: CelebrationEvent) -> None:
        logger.info(f"Celebration {event.type.value} ({event.intensity.value}) for user {user_id}")
