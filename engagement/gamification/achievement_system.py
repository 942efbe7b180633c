"""
Achievement System

One-time achievements across categories:
- Engagement (account linking, streaks, micro-wins, categorization)
- Savings (points thresholds)
- Budgeting (under-budget streaks)
- Goal achievement (first goal update, completed goal)
- Financial health (health check streak)

Unlocking is idempotent: an achievement is stored once per user and a
repeat unlock returns the stored record without granting points again.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set
from datetime import datetime
import logging

from engagement.models import (
    Achievement,
    AchievementCategory,
    AchievementType,
    Streak,
    StreakType,
    UserAction,
)

logger = logging.getLogger(__name__)


ACHIEVEMENT_DEFINITIONS: Dict[AchievementType, Dict[str, object]] = {
    AchievementType.FIRST_GOAL_CREATED: {
        "title": "Goal Setter",
        "description": "Created your first financial goal",
        "icon": "🎯",
        "points": 50,
        "category": AchievementCategory.GOAL_ACHIEVEMENT,
    },
    AchievementType.FIRST_ACCOUNT_LINKED: {
        "title": "Connected",
        "description": "Linked your first account",
        "icon": "🔗",
        "points": 100,
        "category": AchievementCategory.ENGAGEMENT,
    },
    AchievementType.SAVINGS_MILESTONE_100: {
        "title": "Saver",
        "description": "Reached 100 points",
        "icon": "💰",
        "points": 75,
        "category": AchievementCategory.SAVINGS,
    },
    AchievementType.SAVINGS_MILESTONE_500: {
        "title": "Super Saver",
        "description": "Reached 500 points",
        "icon": "💎",
        "points": 150,
        "category": AchievementCategory.SAVINGS,
    },
    AchievementType.SAVINGS_MILESTONE_1000: {
        "title": "Savings Champion",
        "description": "Reached 1000 points",
        "icon": "👑",
        "points": 250,
        "category": AchievementCategory.SAVINGS,
    },
    AchievementType.BUDGET_ADHERENCE_WEEK: {
        "title": "Budget Keeper",
        "description": "Stayed under budget for 7 days",
        "icon": "📊",
        "points": 100,
        "category": AchievementCategory.BUDGETING,
    },
    AchievementType.BUDGET_ADHERENCE_MONTH: {
        "title": "Budget Master",
        "description": "Stayed under budget for 30 days",
        "icon": "🏆",
        "points": 300,
        "category": AchievementCategory.BUDGETING,
    },
    AchievementType.TRANSACTION_CATEGORIZER: {
        "title": "Organizer",
        "description": "Categorized 50 transactions",
        "icon": "📋",
        "points": 125,
        "category": AchievementCategory.ENGAGEMENT,
    },
    AchievementType.GOAL_ACHIEVER: {
        "title": "Goal Crusher",
        "description": "Completed a financial goal",
        "icon": "🎉",
        "points": 500,
        "category": AchievementCategory.GOAL_ACHIEVEMENT,
    },
    AchievementType.STREAK_MASTER_7: {
        "title": "Streak Starter",
        "description": "Kept a streak going for 7 periods",
        "icon": "🔥",
        "points": 100,
        "category": AchievementCategory.ENGAGEMENT,
    },
    AchievementType.STREAK_MASTER_30: {
        "title": "Streak Legend",
        "description": "Kept a streak going for 30 periods",
        "icon": "⚡",
        "points": 400,
        "category": AchievementCategory.ENGAGEMENT,
    },
    AchievementType.FINANCIAL_HEALTH_CHAMPION: {
        "title": "Health Champion",
        "description": "Checked your financial health 14 days in a row",
        "icon": "💪",
        "points": 200,
        "category": AchievementCategory.FINANCIAL_HEALTH,
    },
    AchievementType.MICRO_WIN_COLLECTOR: {
        "title": "Micro Win Master",
        "description": "Completed 25 micro tasks",
        "icon": "⭐",
        "points": 150,
        "category": AchievementCategory.ENGAGEMENT,
    },
    AchievementType.ENGAGEMENT_SUPERSTAR: {
        "title": "Engagement Superstar",
        "description": "Checked in 30 days in a row",
        "icon": "🌟",
        "points": 350,
        "category": AchievementCategory.ENGAGEMENT,
    },
}

POINTS_THRESHOLDS = (
    (100, AchievementType.SAVINGS_MILESTONE_100),
    (500, AchievementType.SAVINGS_MILESTONE_500),
    (1000, AchievementType.SAVINGS_MILESTONE_1000),
)

# (streak type or None for any type, count, achievement)
STREAK_THRESHOLDS = (
    (None, 7, AchievementType.STREAK_MASTER_7),
    (None, 30, AchievementType.STREAK_MASTER_30),
    (StreakType.DAILY_CHECK_IN, 30, AchievementType.ENGAGEMENT_SUPERSTAR),
    (StreakType.UNDER_BUDGET, 7, AchievementType.BUDGET_ADHERENCE_WEEK),
    (StreakType.UNDER_BUDGET, 30, AchievementType.BUDGET_ADHERENCE_MONTH),
    (StreakType.FINANCIAL_HEALTH_CHECK, 14, AchievementType.FINANCIAL_HEALTH_CHAMPION),
)

ACTION_COUNT_THRESHOLDS = (
    (UserAction.LINK_ACCOUNT, 1, AchievementType.FIRST_ACCOUNT_LINKED),
    (UserAction.UPDATE_GOAL, 1, AchievementType.FIRST_GOAL_CREATED),
    (UserAction.CATEGORIZE_TRANSACTION, 50, AchievementType.TRANSACTION_CATEGORIZER),
    (UserAction.COMPLETE_MICRO_TASK, 25, AchievementType.MICRO_WIN_COLLECTOR),
)


def achievement_points(achievement_type: AchievementType) -> int:
    return int(ACHIEVEMENT_DEFINITIONS[achievement_type]["points"])


def build_achievement(user_id: str, achievement_type: AchievementType, unlocked_at: datetime) -> Achievement:
    definition = ACHIEVEMENT_DEFINITIONS[achievement_type]
    return Achievement(
        user_id=user_id,
        achievement_type=achievement_type,
        title=definition["title"],
        description=definition["description"],
        badge_icon=definition["icon"],
        points_awarded=definition["points"],
        unlocked_at=unlocked_at,
        category=definition["category"],
    )


def find_unlocked_achievements(
    unlocked: Set[AchievementType],
    total_points: int = 0,
    streaks: Iterable[Streak] = (),
    action_counts: Optional[Mapping[UserAction, int]] = None,
    goal_completed: bool = False
) -> List[AchievementType]:
    """
    Achievements whose conditions hold and that are not unlocked yet

    Args:
        unlocked: Achievement types the user already has
        total_points: Current points total
        streaks: Active streaks (current counts are checked)
        action_counts: Lifetime ACTION history counts per action
        goal_completed: A goal reached 100% in this operation

    Returns:
        Newly qualifying achievement types, in definition order
    """
    action_counts = action_counts or {}
    streaks = list(streaks)
    qualifying: List[AchievementType] = []

    for threshold, achievement_type in POINTS_THRESHOLDS:
        if total_points >= threshold:
            qualifying.append(achievement_type)

    for streak_type, count, achievement_type in STREAK_THRESHOLDS:
        for streak in streaks:
            if streak_type is not None and streak.streak_type != streak_type:
                continue
            if streak.current_count >= count:
                qualifying.append(achievement_type)
                break

    for action, count, achievement_type in ACTION_COUNT_THRESHOLDS:
        if action_counts.get(action, 0) >= count:
            qualifying.append(achievement_type)

    if goal_completed:
        qualifying.append(AchievementType.GOAL_ACHIEVER)

    order = list(ACHIEVEMENT_DEFINITIONS)
    new_types = sorted({t for t in qualifying if t not in unlocked}, key=order.index)
    if new_types:
        logger.debug(f"Achievements qualifying: {[t.value for t in new_types]}")
    return new_types
