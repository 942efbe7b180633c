"""Unit tests for the streak state tracker"""
import pytest
from datetime import date, timedelta

from pydantic import ValidationError as ModelValidationError

from engagement.gamification.streak_system import (
    compute_streak_statistics,
    mark_streak_broken,
    period_gap,
    qualifying_actions,
    record_activity,
    restart_streak,
    streak_types_for_action,
)
from engagement.models import (
    CelebrationIntensity,
    EngagementPolicy,
    RecoveryStatus,
    Streak,
    StreakRecovery,
    StreakRiskLevel,
    StreakType,
    UserAction,
)


# ============================================
# Action mapping
# ============================================

def test_action_streak_mapping():
    """Test actions map to their streak types"""
    assert streak_types_for_action(UserAction.CHECK_BALANCE) == [StreakType.DAILY_CHECK_IN]
    assert streak_types_for_action(UserAction.SET_BUDGET) == [
        StreakType.UNDER_BUDGET,
        StreakType.WEEKLY_BUDGET_ADHERENCE,
    ]
    assert streak_types_for_action(UserAction.LINK_ACCOUNT) == []


def test_qualifying_actions():
    """Test every streak type has a qualifying action"""
    assert qualifying_actions(StreakType.WEEKLY_GOAL_PROGRESS) == [UserAction.UPDATE_GOAL]
    assert qualifying_actions(StreakType.FINANCIAL_HEALTH_CHECK) == [UserAction.REVIEW_INSIGHTS]
    for streak_type in StreakType:
        assert qualifying_actions(streak_type), f"{streak_type} has no trigger"


# ============================================
# Record activity
# ============================================

def test_first_activity_starts_streak(test_user_id, today, policy):
    """Test first activity creates streak of 1"""
    result = record_activity(None, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert result.was_started
    assert result.streak.current_count == 1
    assert result.streak.best_count == 1
    assert result.streak.risk_level == StreakRiskLevel.SAFE
    assert result.streak.started_on == today


def test_same_day_activity_is_idempotent(make_streak, test_user_id, today, policy):
    """Test same day activity changes nothing"""
    streak = make_streak(current_count=4, last_activity_date=today)

    result = record_activity(streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert not result.changed
    assert result.streak == streak


def test_backdated_activity_is_ignored(make_streak, test_user_id, today, policy):
    """Test backdated activity is ignored"""
    streak = make_streak(current_count=4, last_activity_date=today)

    result = record_activity(
        streak, test_user_id, StreakType.DAILY_CHECK_IN, today - timedelta(days=3), policy
    )

    assert not result.changed
    assert result.streak.current_count == 4


def test_next_day_extends(make_streak, test_user_id, today, policy):
    """Test consecutive day activity increments streak"""
    streak = make_streak(current_count=4, last_activity_date=today - timedelta(days=1))

    result = record_activity(streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert result.was_extended
    assert result.previous_count == 4
    assert result.streak.current_count == 5
    assert result.streak.best_count == 5
    assert result.streak.last_activity_date == today
    assert result.streak.version == streak.version + 1


def test_gap_beyond_grace_breaks(make_streak, test_user_id, today, policy):
    """Test a gap beyond the grace breaks the streak"""
    streak = make_streak(current_count=12, best_count=20, last_activity_date=today - timedelta(days=2))

    result = record_activity(streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert result.was_broken
    broken = result.streak
    assert broken.current_count == 1
    assert broken.best_count == 20
    assert broken.lost_count == 12
    assert broken.risk_level == StreakRiskLevel.BROKEN
    assert not broken.is_active
    assert broken.last_activity_date == today


def test_repeat_on_break_day_is_idempotent(make_streak, test_user_id, today, policy):
    """Test a second activity on the day of a break changes nothing"""
    streak = make_streak(current_count=5, last_activity_date=today - timedelta(days=3))

    broken = record_activity(streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy).streak
    repeat = record_activity(broken, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert not repeat.changed
    assert repeat.streak == broken

    next_day = record_activity(
        broken, test_user_id, StreakType.DAILY_CHECK_IN, today + timedelta(days=1), policy
    )
    assert next_day.was_restarted
    assert next_day.streak.best_count == 5


def test_wider_grace_extends_across_gap(make_streak, test_user_id, today):
    """Test a wider grace extends across a gap"""
    policy = EngagementPolicy(cadences={StreakType.DAILY_CHECK_IN: {"period_days": 1, "grace_periods": 2}})
    streak = make_streak(current_count=3, last_activity_date=today - timedelta(days=2))

    result = record_activity(streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert result.was_extended
    assert result.streak.current_count == 4


def test_inactive_streak_restarts_as_new_row(make_broken_streak, test_user_id, today, policy):
    """Test activity on a broken streak restarts it as a new row"""
    broken = make_broken_streak(
        lost_count=9, last_activity_date=today - timedelta(days=5), recovery_attempts=2
    )

    result = record_activity(broken, test_user_id, StreakType.DAILY_CHECK_IN, today, policy)

    assert result.was_restarted
    assert result.streak.id != broken.id
    assert result.streak.current_count == 1
    assert result.streak.best_count == 9
    assert result.streak.recovery_attempts == 2
    assert result.streak.is_active


def test_best_never_below_current_after_extensions(test_user_id, today, policy):
    """Test best count keeps up with extensions"""
    streak = None
    day = today
    for _ in range(10):
        streak = record_activity(streak, test_user_id, StreakType.DAILY_CHECK_IN, day, policy).streak
        assert streak.best_count >= streak.current_count
        day += timedelta(days=1)
    assert streak.current_count == 10


# ============================================
# Weekly cadence
# ============================================

def test_weekly_periods_align_to_monday():
    """Test weekly periods start on Monday"""
    cadence = EngagementPolicy().cadence_for(StreakType.WEEKLY_BUDGET_ADHERENCE)
    monday = date(2024, 3, 4)
    assert period_gap(monday, date(2024, 3, 10), cadence) == 0  # Sunday, same week
    assert period_gap(monday, date(2024, 3, 11), cadence) == 1
    assert period_gap(date(2024, 3, 10), date(2024, 3, 11), cadence) == 1


def test_weekly_streak(make_streak, test_user_id, policy):
    """Test weekly streak extension and break"""
    monday = date(2024, 3, 4)
    streak = make_streak(
        streak_type=StreakType.WEEKLY_BUDGET_ADHERENCE,
        current_count=2,
        last_activity_date=monday,
    )

    same_week = record_activity(
        streak, test_user_id, StreakType.WEEKLY_BUDGET_ADHERENCE, date(2024, 3, 9), policy
    )
    assert not same_week.changed

    next_week = record_activity(
        streak, test_user_id, StreakType.WEEKLY_BUDGET_ADHERENCE, date(2024, 3, 12), policy
    )
    assert next_week.was_extended
    assert next_week.streak.current_count == 3

    skipped_week = record_activity(
        streak, test_user_id, StreakType.WEEKLY_BUDGET_ADHERENCE, date(2024, 3, 18), policy
    )
    assert skipped_week.was_broken


# ============================================
# Milestones during extension
# ============================================

def test_extension_to_seven_fires_medium_milestone(make_streak, test_user_id, today, policy, clock):
    """Test reaching 7 fires a medium milestone"""
    streak = make_streak(current_count=6, last_activity_date=today - timedelta(days=1))

    result = record_activity(
        streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy, now=clock.now()
    )

    assert result.celebration is not None
    assert result.celebration.intensity == CelebrationIntensity.MEDIUM
    assert result.celebration.bonus_points == 50
    assert result.celebration.milestone == 7
    assert result.streak.last_milestone == 7
    # One mutation, one version bump
    assert result.streak.version == streak.version + 1


def test_milestone_does_not_refire(make_streak, test_user_id, today, policy, clock):
    """Test a celebrated milestone does not fire again"""
    # Count 6 with 7 already celebrated (e.g. a grace replay)
    streak = make_streak(current_count=6, last_activity_date=today - timedelta(days=1), last_milestone=7)

    result = record_activity(
        streak, test_user_id, StreakType.DAILY_CHECK_IN, today, policy, now=clock.now()
    )

    assert result.was_extended
    assert result.celebration is None


# ============================================
# Breaking and validation
# ============================================

def test_mark_streak_broken_is_idempotent(make_streak):
    """Test breaking a broken streak changes nothing"""
    streak = make_streak(current_count=5)
    broken = mark_streak_broken(streak)
    assert broken.lost_count == 5
    assert broken.last_activity_date == streak.last_activity_date
    assert mark_streak_broken(broken) is broken


def test_restart_streak_carries_best_and_attempts(make_broken_streak, today):
    """Test restarting an inactive streak keeps its best and recovery attempts"""
    broken = make_broken_streak(lost_count=6, recovery_attempts=5)

    result = restart_streak(broken, today)

    assert result.was_restarted
    assert result.previous_count == 1
    assert result.streak.id != broken.id
    assert result.streak.is_active
    assert result.streak.best_count == 6
    assert result.streak.recovery_attempts == 5


def test_streak_rejects_best_below_current(test_user_id, today):
    """Test best below current is invalid"""
    with pytest.raises(ModelValidationError):
        Streak(
            user_id=test_user_id,
            streak_type=StreakType.DAILY_CHECK_IN,
            current_count=5,
            best_count=3,
            last_activity_date=today,
            started_on=today,
        )


def test_streak_rejects_active_broken(make_streak):
    """Test an active broken streak is invalid"""
    with pytest.raises(ModelValidationError):
        make_streak(risk_level=StreakRiskLevel.BROKEN, is_active=True)


# ============================================
# Statistics
# ============================================

def test_compute_streak_statistics(make_streak, make_broken_streak, test_user_id, today, clock, policy):
    """Test streak statistics"""
    active_safe = make_streak(current_count=8, last_activity_date=today)
    active_risky = make_streak(
        streak_type=StreakType.UNDER_BUDGET, current_count=3, last_activity_date=today - timedelta(days=2)
    )
    broken = make_broken_streak(lost_count=25, streak_type=StreakType.GOAL_PROGRESS)

    def recovery(status, successful):
        return StreakRecovery(
            user_id=test_user_id,
            original_streak_id=broken.id,
            streak_type=StreakType.GOAL_PROGRESS,
            broken_at=clock.now(),
            recovery_started=clock.now(),
            original_count=25,
            status=status,
            is_successful=successful,
        )

    stats = compute_streak_statistics(
        [active_safe, active_risky],
        [active_safe, active_risky, broken],
        [recovery(RecoveryStatus.SUCCEEDED, True), recovery(RecoveryStatus.FAILED, False),
         recovery(RecoveryStatus.RECOVERING, False)],
        today,
        policy,
    )

    assert stats.active_streaks == 2
    assert stats.total_streaks == 3
    assert stats.longest_current_streak == 8
    assert stats.longest_ever_streak == 25
    assert stats.at_risk_streaks == 1
    assert stats.total_recoveries == 3
    assert stats.successful_recoveries == 1
    assert stats.recovery_success_rate == 0.5
    assert stats.streaks_by_type[StreakType.DAILY_CHECK_IN] == 8
