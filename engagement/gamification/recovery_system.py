"""
Streak Recovery Coordinator

A broken streak can be recovered by completing a number of qualifying
actions (default 3) inside a window (default 7 days) that starts when the
recovery is initiated.

- Each recovery action earns points (default 10, source RECOVERY)
- The same action type at an identical timestamp is a duplicate and ignored
- Success seeds a new streak: count 1, best carried, recovery_attempts + 1
- A recovery still open after its window is FAILED; no streak is created
- A broken streak gets one recovery attempt; users with
  max_recovery_attempts successful recoveries are no longer eligible
"""

from typing import Iterable, Optional, Tuple
from datetime import date, datetime
import logging

from engagement.exceptions import ConflictError, ValidationError
from engagement.gamification.celebrations import build_recovery_celebration
from engagement.gamification.streak_system import qualifying_actions, start_streak
from engagement.models import (
    EngagementPolicy,
    RecoveryAction,
    RecoveryActionResult,
    RecoveryStatus,
    Streak,
    StreakRecovery,
    StreakRiskLevel,
    UserAction,
    evolve,
)
from engagement.utils.clock import ensure_utc

logger = logging.getLogger(__name__)

# Reminder offsets after a recovery starts
RECOVERY_REMINDER_OFFSETS_HOURS = (4, 24, 48)


def recovery_deadline(recovery: StreakRecovery, policy: EngagementPolicy) -> datetime:
    return ensure_utc(recovery.recovery_started) + policy.recovery_window


def is_expired(recovery: StreakRecovery, now: datetime, policy: EngagementPolicy) -> bool:
    return recovery.is_open and ensure_utc(now) >= recovery_deadline(recovery, policy)


def is_eligible(streak: Streak, policy: EngagementPolicy) -> bool:
    return (
        streak.risk_level == StreakRiskLevel.BROKEN
        and streak.recovery_attempts < policy.max_recovery_attempts
    )


def initiate_recovery(
    streak: Streak,
    existing: Iterable[StreakRecovery],
    now: datetime,
    policy: EngagementPolicy
) -> Tuple[StreakRecovery, bool]:
    """
    Open a recovery for a broken streak

    Args:
        existing: Recoveries already recorded for this streak

    Returns:
        (recovery, created): the open recovery is returned unchanged with
        created=False when one exists

    Raises:
        ConflictError: streak is not broken, eligibility is exhausted, or
            this streak's recovery has already closed
    """
    existing = list(existing)

    if streak.risk_level != StreakRiskLevel.BROKEN:
        raise ConflictError(
            message=f"Streak {streak.id} is not broken",
            current_state=streak,
            user_id=streak.user_id,
            operation="initiate_streak_recovery",
            user_message="This streak is still going, nothing to recover.",
        )

    for recovery in existing:
        if recovery.is_open:
            return recovery, False

    if streak.recovery_attempts >= policy.max_recovery_attempts:
        raise ConflictError(
            message=(
                f"Recovery attempts exhausted for streak {streak.id} "
                f"({streak.recovery_attempts}/{policy.max_recovery_attempts})"
            ),
            current_state=streak,
            user_id=streak.user_id,
            operation="initiate_streak_recovery",
            user_message="No recovery attempts left for this streak.",
        )

    if existing:
        raise ConflictError(
            message=f"Streak {streak.id} already had its recovery attempt",
            current_state=existing[-1],
            user_id=streak.user_id,
            operation="initiate_streak_recovery",
            user_message="This streak's recovery window has closed.",
        )

    original_count = streak.lost_count if streak.lost_count is not None else streak.best_count
    recovery = StreakRecovery(
        user_id=streak.user_id,
        original_streak_id=streak.id,
        streak_type=streak.streak_type,
        broken_at=now,
        recovery_started=now,
        original_count=original_count,
        required_actions=policy.recovery_required_actions,
    )
    logger.info(
        f"User {streak.user_id} started recovery of {streak.streak_type.value} streak "
        f"(original count {original_count})"
    )
    return recovery, True


def expire_recovery(recovery: StreakRecovery, policy: EngagementPolicy) -> StreakRecovery:
    """Close an overdue recovery as FAILED at its deadline"""
    logger.info(f"Recovery {recovery.id} for user {recovery.user_id} expired")
    return evolve(
        recovery,
        status=RecoveryStatus.FAILED,
        is_successful=False,
        recovery_completed=recovery_deadline(recovery, policy),
        version=recovery.version + 1,
    )


def _closed_result(recovery: StreakRecovery) -> RecoveryActionResult:
    return RecoveryActionResult(
        recovery=recovery,
        action_processed=None,
        is_complete=recovery.status == RecoveryStatus.SUCCEEDED,
        actions_remaining=recovery.actions_remaining if recovery.is_open else 0,
    )


def apply_recovery_action(
    recovery: StreakRecovery,
    broken_streak: Optional[Streak],
    action: UserAction,
    completed_at: datetime,
    now: datetime,
    today: date,
    policy: EngagementPolicy
) -> RecoveryActionResult:
    """
    Record one action against a recovery

    Closed recoveries are returned as they are. An open recovery past its
    deadline is failed first.

    Raises:
        ValidationError: action does not qualify for the recovery's streak type
    """
    if not recovery.is_open:
        return _closed_result(recovery)

    if is_expired(recovery, now, policy):
        return _closed_result(expire_recovery(recovery, policy))

    if action not in qualifying_actions(recovery.streak_type):
        raise ValidationError(
            message=f"{action.value} does not count towards a {recovery.streak_type.value} recovery",
            field="action",
            value=action.value,
            user_id=recovery.user_id,
            operation="process_recovery_action",
        )

    completed_at = ensure_utc(completed_at)
    for previous in recovery.recovery_actions:
        if previous.action_type == action and ensure_utc(previous.completed_at) == completed_at:
            logger.debug(f"Ignoring duplicate {action.value} for recovery {recovery.id}")
            return RecoveryActionResult(
                recovery=recovery,
                action_processed=None,
                actions_remaining=recovery.actions_remaining,
            )

    recovery_action = RecoveryAction(
        action_type=action,
        completed_at=completed_at,
        points_awarded=policy.recovery_action_points,
        description_key=f"recovery.action.{action.value.lower()}",
    )
    actions = recovery.recovery_actions + [recovery_action]

    if len(actions) < recovery.required_actions:
        updated = evolve(recovery, recovery_actions=actions, version=recovery.version + 1)
        return RecoveryActionResult(
            recovery=updated,
            action_processed=recovery_action,
            points_awarded=recovery_action.points_awarded,
            actions_remaining=updated.actions_remaining,
        )

    updated = evolve(
        recovery,
        recovery_actions=actions,
        status=RecoveryStatus.SUCCEEDED,
        is_successful=True,
        recovery_completed=now,
        version=recovery.version + 1,
    )

    previous_best = broken_streak.best_count if broken_streak is not None else 0
    previous_attempts = broken_streak.recovery_attempts if broken_streak is not None else 0
    new_streak = start_streak(
        recovery.user_id,
        recovery.streak_type,
        today,
        best_count=max(recovery.original_count, previous_best),
        recovery_attempts=previous_attempts + 1,
    )
    logger.info(
        f"User {recovery.user_id} recovered {recovery.streak_type.value} streak "
        f"(best {new_streak.best_count}, attempts {new_streak.recovery_attempts})"
    )

    return RecoveryActionResult(
        recovery=updated,
        action_processed=recovery_action,
        points_awarded=recovery_action.points_awarded,
        is_complete=True,
        actions_remaining=0,
        new_streak=new_streak,
        celebration=build_recovery_celebration(updated, new_streak, now),
    )
