"""Unit tests for achievement definitions and unlock rules"""
import pytest

from pydantic import ValidationError as ModelValidationError

from engagement.gamification.achievement_system import (
    ACHIEVEMENT_DEFINITIONS,
    achievement_points,
    build_achievement,
    find_unlocked_achievements,
)
from engagement.models import (
    AchievementCategory,
    AchievementType,
    StreakType,
    UserAction,
)


def test_every_achievement_is_defined():
    """Test every achievement type has a definition"""
    assert set(ACHIEVEMENT_DEFINITIONS) == set(AchievementType)


def test_build_achievement(test_user_id, clock):
    """Test achievement records carry their definition and points"""
    achievement = build_achievement(test_user_id, AchievementType.STREAK_MASTER_30, clock.now())

    assert achievement.title == "Streak Legend"
    assert achievement.badge_icon == "⚡"
    assert achievement.points_awarded == 400
    assert achievement.category == AchievementCategory.ENGAGEMENT
    assert achievement.unlocked_at == clock.now()


def test_achievement_is_immutable(test_user_id, clock):
    """Test unlocked achievements cannot be modified"""
    achievement = build_achievement(test_user_id, AchievementType.FIRST_GOAL_CREATED, clock.now())
    with pytest.raises(ModelValidationError):
        achievement.points_awarded = 1000


def test_points_table():
    """Test achievement point values"""
    assert achievement_points(AchievementType.FIRST_ACCOUNT_LINKED) == 100
    assert achievement_points(AchievementType.GOAL_ACHIEVER) == 500
    assert achievement_points(AchievementType.ENGAGEMENT_SUPERSTAR) == 350


# ============================================
# Unlock rules
# ============================================

def test_points_thresholds():
    """Test point milestones unlock at their thresholds"""
    assert find_unlocked_achievements(set(), total_points=99) == []
    assert find_unlocked_achievements(set(), total_points=600) == [
        AchievementType.SAVINGS_MILESTONE_100,
        AchievementType.SAVINGS_MILESTONE_500,
    ]


def test_already_unlocked_are_skipped():
    """Test achievements already held are not unlocked again"""
    unlocked = {AchievementType.SAVINGS_MILESTONE_100}
    assert find_unlocked_achievements(unlocked, total_points=150) == []


def test_streak_thresholds(make_streak):
    """Test streak achievements unlock at their counts"""
    streaks = [
        make_streak(streak_type=StreakType.UNDER_BUDGET, current_count=7),
        make_streak(streak_type=StreakType.DAILY_CHECK_IN, current_count=30),
    ]

    found = find_unlocked_achievements(set(), streaks=streaks)

    assert AchievementType.STREAK_MASTER_7 in found
    assert AchievementType.STREAK_MASTER_30 in found
    assert AchievementType.ENGAGEMENT_SUPERSTAR in found
    assert AchievementType.BUDGET_ADHERENCE_WEEK in found
    assert AchievementType.BUDGET_ADHERENCE_MONTH not in found


def test_financial_health_champion_needs_fourteen(make_streak):
    """Test the health check achievement needs a 14-period streak"""
    short = [make_streak(streak_type=StreakType.FINANCIAL_HEALTH_CHECK, current_count=13)]
    long = [make_streak(streak_type=StreakType.FINANCIAL_HEALTH_CHECK, current_count=14)]

    assert AchievementType.FINANCIAL_HEALTH_CHAMPION not in find_unlocked_achievements(set(), streaks=short)
    assert AchievementType.FINANCIAL_HEALTH_CHAMPION in find_unlocked_achievements(set(), streaks=long)


def test_action_count_thresholds():
    """Test action count achievements unlock at their thresholds"""
    counts = {
        UserAction.LINK_ACCOUNT: 1,
        UserAction.UPDATE_GOAL: 1,
        UserAction.CATEGORIZE_TRANSACTION: 49,
        UserAction.COMPLETE_MICRO_TASK: 25,
    }

    found = find_unlocked_achievements(set(), action_counts=counts)

    assert found == [
        AchievementType.FIRST_GOAL_CREATED,
        AchievementType.FIRST_ACCOUNT_LINKED,
        AchievementType.MICRO_WIN_COLLECTOR,
    ]


def test_goal_completion():
    """Test completing a goal unlocks its achievement"""
    assert find_unlocked_achievements(set(), goal_completed=True) == [AchievementType.GOAL_ACHIEVER]
