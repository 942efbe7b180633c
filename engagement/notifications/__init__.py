from engagement.notifications.scheduler import LoggingNotificationScheduler, NotificationScheduler

__all__ = ["LoggingNotificationScheduler", "NotificationScheduler"]
