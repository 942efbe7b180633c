"""
Milestone and Celebration Engine

Builds CelebrationEvents for streak milestones, goal progress, level-ups,
achievements, micro-wins and completed recoveries. Only keys and data are
produced; rendering and copy belong to the client.

Streak intensity:
- fewer than 7 days: LOW (1.5s)
- 7 to 29 days: MEDIUM (2s)
- 30 days or more: HIGH (3s)
"""

from typing import Optional, Tuple
from datetime import datetime
import logging

from engagement.models import (
    Achievement,
    CelebrationEvent,
    CelebrationIntensity,
    CelebrationType,
    EngagementPolicy,
    Streak,
    StreakRecovery,
    evolve,
)

logger = logging.getLogger(__name__)

DURATION_MS = {
    CelebrationIntensity.LOW: 1500,
    CelebrationIntensity.MEDIUM: 2000,
    CelebrationIntensity.HIGH: 3000,
}

GOAL_MILESTONES = (0.10, 0.25, 0.50, 0.75, 1.00)


def streak_intensity(count: int) -> CelebrationIntensity:
    if count >= 30:
        return CelebrationIntensity.HIGH
    if count >= 7:
        return CelebrationIntensity.MEDIUM
    return CelebrationIntensity.LOW


def milestone_bonus(count: int, policy: EngagementPolicy) -> int:
    """Bonus points for reaching count (0 unless count is a milestone)"""
    return policy.milestone_bonuses.get(count, 0)


def pending_milestone(streak: Streak, policy: EngagementPolicy) -> Optional[int]:
    """Milestone the streak sits on that this incarnation has not celebrated yet"""
    count = streak.current_count
    if count in policy.milestone_bonuses and count > streak.last_milestone:
        return count
    return None


def build_streak_celebration(
    streak: Streak,
    policy: EngagementPolicy,
    now: datetime,
    award_bonus: bool = True
) -> CelebrationEvent:
    count = streak.current_count
    intensity = streak_intensity(count)
    is_milestone = count in policy.milestone_bonuses

    return CelebrationEvent(
        user_id=streak.user_id,
        type=CelebrationType.STREAK_MILESTONE,
        title_key=f"celebration.streak.{streak.streak_type.value.lower()}.title",
        message_key=(
            f"celebration.streak.milestone_{count}" if is_milestone
            else "celebration.streak.progress"
        ),
        intensity=intensity,
        duration_ms=DURATION_MS[intensity],
        bonus_points=milestone_bonus(count, policy) if award_bonus else 0,
        is_new_record=count >= streak.best_count,
        streak_id=streak.id,
        milestone=count if is_milestone else None,
        data={"streak_type": streak.streak_type.value, "streak_count": count},
        created_at=now,
    )


def fire_streak_milestone(
    streak: Streak,
    policy: EngagementPolicy,
    now: datetime
) -> Tuple[Optional[CelebrationEvent], Streak]:
    """
    Celebrate the streak's current milestone once per incarnation

    The row version is left alone; callers bump it as part of the mutation
    that reached the milestone.

    Returns:
        (celebration or None, streak with last_milestone advanced)
    """
    milestone = pending_milestone(streak, policy)
    if milestone is None:
        return None, streak

    celebration = build_streak_celebration(streak, policy, now)
    logger.info(
        f"User {streak.user_id} reached {milestone}-period {streak.streak_type.value} milestone "
        f"(+{celebration.bonus_points} points)"
    )
    return celebration, evolve(streak, last_milestone=milestone)


def crossed_goal_milestones(previous_fraction: float, current_fraction: float) -> list[float]:
    """Goal milestones in (previous_fraction, current_fraction]"""
    return [m for m in GOAL_MILESTONES if previous_fraction < m <= current_fraction]


def build_goal_celebration(
    user_id: str,
    goal_id: str,
    milestone: float,
    now: datetime
) -> CelebrationEvent:
    percent = round(milestone * 100)
    if milestone >= 0.75:
        intensity = CelebrationIntensity.HIGH
    elif milestone >= 0.50:
        intensity = CelebrationIntensity.MEDIUM
    else:
        intensity = CelebrationIntensity.LOW

    return CelebrationEvent(
        user_id=user_id,
        type=CelebrationType.GOAL_MILESTONE,
        title_key="celebration.goal.title",
        message_key=f"celebration.goal.percent_{percent}",
        intensity=intensity,
        duration_ms=DURATION_MS[intensity],
        bonus_points=percent,
        is_new_record=milestone >= 1.0,
        milestone=percent,
        data={"goal_id": goal_id, "percent": percent},
        created_at=now,
    )


def build_level_up_celebration(
    user_id: str,
    previous_level: int,
    new_level: int,
    now: datetime
) -> CelebrationEvent:
    intensity = CelebrationIntensity.HIGH if new_level % 5 == 0 else CelebrationIntensity.MEDIUM
    return CelebrationEvent(
        user_id=user_id,
        type=CelebrationType.LEVEL_UP,
        title_key="celebration.level_up.title",
        message_key=f"celebration.level_up.level_{new_level}",
        intensity=intensity,
        duration_ms=DURATION_MS[intensity],
        data={"previous_level": previous_level, "new_level": new_level},
        created_at=now,
    )


def build_achievement_celebration(achievement: Achievement, now: datetime) -> CelebrationEvent:
    if achievement.points_awarded >= 300:
        intensity = CelebrationIntensity.HIGH
    elif achievement.points_awarded >= 100:
        intensity = CelebrationIntensity.MEDIUM
    else:
        intensity = CelebrationIntensity.LOW

    return CelebrationEvent(
        user_id=achievement.user_id,
        type=CelebrationType.ACHIEVEMENT_UNLOCKED,
        title_key="celebration.achievement.title",
        message_key=f"achievement.{achievement.achievement_type.value.lower()}",
        intensity=intensity,
        duration_ms=DURATION_MS[intensity],
        bonus_points=achievement.points_awarded,
        data={
            "achievement_type": achievement.achievement_type.value,
            "badge_icon": achievement.badge_icon,
            "title": achievement.title,
        },
        created_at=now,
    )


def build_micro_win_celebration(user_id: str, title_key: str, points: int, now: datetime) -> CelebrationEvent:
    return CelebrationEvent(
        user_id=user_id,
        type=CelebrationType.MICRO_WIN,
        title_key="celebration.micro_win.title",
        message_key=title_key,
        intensity=CelebrationIntensity.LOW,
        duration_ms=DURATION_MS[CelebrationIntensity.LOW],
        bonus_points=points,
        created_at=now,
    )


def build_recovery_celebration(recovery: StreakRecovery, new_streak: Streak, now: datetime) -> CelebrationEvent:
    return CelebrationEvent(
        user_id=recovery.user_id,
        type=CelebrationType.RECOVERY_COMPLETE,
        title_key="celebration.recovery.title",
        message_key=f"celebration.recovery.{recovery.streak_type.value.lower()}",
        intensity=CelebrationIntensity.MEDIUM,
        duration_ms=DURATION_MS[CelebrationIntensity.MEDIUM],
        streak_id=new_streak.id,
        data={
            "recovery_id": recovery.id,
            "original_count": recovery.original_count,
            "best_count": new_streak.best_count,
        },
        created_at=now,
    )
