"""
Streak State Tracking System

Tracks consecutive-period behaviour per streak type:
- daily check-ins, budget adherence, savings, goal progress, ...
- weekly budget adherence and weekly goal progress

Each streak type has a cadence (period length in days and a grace of
missed periods). Periods are numbered (date.toordinal() - 1) // period_days,
so 7-day periods line up with Monday-start calendar weeks.

Rules for an activity on a streak's timeline:
- same period (or an earlier one): no change
- next period, or within the grace: extend
- beyond the grace: break (best kept, count reset, marked BROKEN, the
  breaking activity recorded as the last activity)
- activity on an inactive streak in a later period: restart as a new row
"""

from typing import Dict, Iterable, List, Optional
from datetime import date
import logging

from engagement.gamification.celebrations import fire_streak_milestone
from engagement.models import (
    EngagementPolicy,
    Streak,
    StreakCadence,
    StreakRecovery,
    StreakRiskLevel,
    StreakStatistics,
    StreakType,
    StreakUpdateResult,
    UserAction,
    evolve,
)
from engagement.models.recovery import RecoveryStatus

logger = logging.getLogger(__name__)

# Which streaks an action feeds
ACTION_STREAK_TYPES: Dict[UserAction, List[StreakType]] = {
    UserAction.CHECK_BALANCE: [StreakType.DAILY_CHECK_IN],
    UserAction.CATEGORIZE_TRANSACTION: [StreakType.TRANSACTION_CATEGORIZATION],
    UserAction.UPDATE_GOAL: [StreakType.GOAL_PROGRESS, StreakType.WEEKLY_GOAL_PROGRESS],
    UserAction.MAKE_SAVINGS_CONTRIBUTION: [StreakType.SAVINGS_CONTRIBUTION, StreakType.DAILY_SAVINGS],
    UserAction.SET_BUDGET: [StreakType.UNDER_BUDGET, StreakType.WEEKLY_BUDGET_ADHERENCE],
    UserAction.COMPLETE_MICRO_TASK: [StreakType.MICRO_WIN_COMPLETION],
    UserAction.REVIEW_INSIGHTS: [StreakType.FINANCIAL_HEALTH_CHECK],
    UserAction.LINK_ACCOUNT: [],
}


def streak_types_for_action(action: UserAction) -> List[StreakType]:
    return list(ACTION_STREAK_TYPES.get(action, []))


def qualifying_actions(streak_type: StreakType) -> List[UserAction]:
    """Actions that feed streak_type, in declaration order"""
    return [action for action, types in ACTION_STREAK_TYPES.items() if streak_type in types]


def period_index(day: date, cadence: StreakCadence) -> int:
    return (day.toordinal() - 1) // cadence.period_days


def period_gap(last: date, current: date, cadence: StreakCadence) -> int:
    """Whole periods from last to current (negative when current is earlier)"""
    return period_index(current, cadence) - period_index(last, cadence)


def start_streak(
    user_id: str,
    streak_type: StreakType,
    activity_date: date,
    best_count: int = 1,
    recovery_attempts: int = 0
) -> Streak:
    """New streak incarnation with a count of 1"""
    return Streak(
        user_id=user_id,
        streak_type=streak_type,
        current_count=1,
        best_count=max(best_count, 1),
        last_activity_date=activity_date,
        started_on=activity_date,
        is_active=True,
        risk_level=StreakRiskLevel.SAFE,
        recovery_attempts=recovery_attempts,
    )


def mark_streak_broken(streak: Streak, activity_date: Optional[date] = None) -> Streak:
    """
    Break a streak: best kept, lost count remembered, count reset to 1

    When the break is caused by an activity, activity_date becomes the
    last activity so a repeat in the same period is a no-op. Breaking an
    already broken streak returns it unchanged.
    """
    if streak.risk_level == StreakRiskLevel.BROKEN:
        return streak

    logger.info(
        f"User {streak.user_id} {streak.streak_type.value} streak broken at {streak.current_count}"
    )
    return evolve(
        streak,
        lost_count=streak.current_count,
        current_count=1,
        is_active=False,
        last_activity_date=activity_date or streak.last_activity_date,
        risk_level=StreakRiskLevel.BROKEN,
        version=streak.version + 1,
    )


def restart_streak(broken: Streak, activity_date: date) -> StreakUpdateResult:
    """New active incarnation of an inactive streak, carrying its best and attempts"""
    streak = start_streak(
        broken.user_id,
        broken.streak_type,
        activity_date,
        best_count=broken.best_count,
        recovery_attempts=broken.recovery_attempts,
    )
    logger.info(
        f"User {broken.user_id} restarted {broken.streak_type.value} streak (best {streak.best_count})"
    )
    return StreakUpdateResult(
        streak=streak,
        was_restarted=True,
        previous_count=broken.current_count,
    )


def record_activity(
    existing: Optional[Streak],
    user_id: str,
    streak_type: StreakType,
    activity_date: date,
    policy: EngagementPolicy,
    now=None
) -> StreakUpdateResult:
    """
    Apply one activity to the latest incarnation of a streak

    Args:
        existing: Latest streak row for (user_id, streak_type), or None
        activity_date: Calendar date of the activity in the user's timezone
        now: Timestamp stamped on milestone celebrations

    Returns:
        StreakUpdateResult; result.streak is the row to persist (a new row
        when was_started or was_restarted)
    """
    cadence = policy.cadence_for(streak_type)

    if existing is None:
        streak = start_streak(user_id, streak_type, activity_date)
        logger.info(f"User {user_id} started {streak_type.value} streak")
        return StreakUpdateResult(streak=streak, was_started=True, previous_count=0)

    gap = period_gap(existing.last_activity_date, activity_date, cadence)

    if gap <= 0:
        # Same period already counted, or a backdated activity
        return StreakUpdateResult(streak=existing, previous_count=existing.current_count)

    if not existing.is_active:
        return restart_streak(existing, activity_date)

    if gap <= cadence.grace_periods:
        new_count = existing.current_count + 1
        streak = evolve(
            existing,
            current_count=new_count,
            best_count=max(existing.best_count, new_count),
            last_activity_date=activity_date,
            risk_level=StreakRiskLevel.SAFE,
            version=existing.version + 1,
        )
        celebration = None
        if now is not None:
            celebration, streak = fire_streak_milestone(streak, policy, now)
        logger.debug(f"User {user_id} {streak_type.value} streak extended to {new_count}")
        return StreakUpdateResult(
            streak=streak,
            was_extended=True,
            previous_count=existing.current_count,
            celebration=celebration,
        )

    logger.info(
        f"User {user_id} {streak_type.value} streak broken: gap of {gap} periods "
        f"exceeds grace of {cadence.grace_periods}"
    )
    return StreakUpdateResult(
        streak=mark_streak_broken(existing, activity_date),
        was_broken=True,
        previous_count=existing.current_count,
    )


def elapsed_periods(streak: Streak, today: date, policy: EngagementPolicy) -> int:
    return max(period_gap(streak.last_activity_date, today, policy.cadence_for(streak.streak_type)), 0)


def compute_streak_statistics(
    active_streaks: Iterable[Streak],
    all_streaks: Iterable[Streak],
    recoveries: Iterable[StreakRecovery],
    today: date,
    policy: EngagementPolicy
) -> StreakStatistics:
    """
    Summarize a user's streak history

    A streak is at risk when at least one period has elapsed since its last
    activity but it has not lapsed yet.
    """
    active_streaks = list(active_streaks)
    all_streaks = list(all_streaks)
    recoveries = list(recoveries)

    at_risk = 0
    for streak in active_streaks:
        elapsed = elapsed_periods(streak, today, policy)
        if 1 <= elapsed <= policy.risk_lapse_periods:
            at_risk += 1

    by_type: Dict[StreakType, int] = {}
    for streak in active_streaks:
        by_type[streak.streak_type] = max(by_type.get(streak.streak_type, 0), streak.current_count)

    closed = [r for r in recoveries if r.status != RecoveryStatus.RECOVERING]
    successful = [r for r in closed if r.is_successful]

    return StreakStatistics(
        active_streaks=len(active_streaks),
        total_streaks=len(all_streaks),
        longest_current_streak=max((s.current_count for s in active_streaks), default=0),
        longest_ever_streak=max((s.best_count for s in all_streaks), default=0),
        at_risk_streaks=at_risk,
        total_recoveries=len(recoveries),
        successful_recoveries=len(successful),
        recovery_success_rate=(len(successful) / len(closed)) if closed else 0.0,
        streaks_by_type=by_type,
    )
