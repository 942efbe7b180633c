"""
Points and Level Ledger

Awards points for user actions and derives levels from the running total.

Points table (default):
- Check balance: 5
- Categorize transaction: 10
- Update goal / review insights: 15 / 10
- Complete micro task: 20
- Set budget: 25
- Savings contribution: 30
- Link account: 50

Levels follow engagement.utils.levels: level = floor(sqrt(points / 100)) + 1.
Totals never decrease; negative grants are clamped to 0.
"""

from typing import Optional
from datetime import datetime
import logging

from engagement.exceptions import ValidationError
from engagement.gamification.celebrations import build_level_up_celebration
from engagement.models import (
    GamificationProfile,
    LevelUpResult,
    PointsHistoryEntry,
    PointsSource,
    UserAction,
    EngagementPolicy,
    evolve,
)
from engagement.utils.levels import features_unlocked_between, level_from_points

logger = logging.getLogger(__name__)


def parse_action(action, user_id: Optional[str] = None, operation: str = "award_points") -> UserAction:
    """Coerce a raw action name into a UserAction"""
    if isinstance(action, UserAction):
        return action
    try:
        return UserAction(action)
    except ValueError:
        raise ValidationError(
            message=f"Unknown action '{action}'",
            field="action",
            value=action,
            user_id=user_id,
            operation=operation
        )


def resolve_points(action: UserAction, policy: EngagementPolicy, points: Optional[int] = None) -> int:
    """Points for an action: explicit value if given, else the table value; never negative"""
    if points is None:
        points = policy.points_for(action)
    if points < 0:
        logger.debug(f"Clamping negative grant {points} for {action.value} to 0")
        return 0
    return points


def new_profile(user_id: str, now: datetime) -> GamificationProfile:
    """Profile for a user who has never earned points (not yet persisted)"""
    return GamificationProfile(user_id=user_id, last_activity=now, version=0)


def apply_points(profile: GamificationProfile, points: int, now: datetime) -> GamificationProfile:
    """Return the profile with points added and the row version bumped"""
    return evolve(
        profile,
        total_points=profile.total_points + max(points, 0),
        last_activity=now,
        version=profile.version + 1,
    )


def build_history_entry(
    user_id: str,
    points: int,
    action: Optional[UserAction],
    earned_at: datetime,
    source: PointsSource = PointsSource.ACTION,
    description: Optional[str] = None
) -> PointsHistoryEntry:
    return PointsHistoryEntry(
        user_id=user_id,
        points=max(points, 0),
        action=action,
        description=description,
        earned_at=earned_at,
        source=source,
    )


def check_level_up(
    user_id: str,
    previous_total: int,
    new_total: int,
    now: datetime
) -> Optional[LevelUpResult]:
    """
    Compare levels before and after a grant

    Returns:
        LevelUpResult with unlocked feature keys and a LEVEL_UP celebration,
        or None if the level did not change
    """
    previous_level = level_from_points(previous_total)
    new_level = level_from_points(new_total)

    if new_level <= previous_level:
        return None

    logger.info(f"User {user_id} leveled up: {previous_level} -> {new_level}")

    return LevelUpResult(
        previous_level=previous_level,
        new_level=new_level,
        total_points=new_total,
        unlocked_features=features_unlocked_between(previous_level, new_level),
        celebration=build_level_up_celebration(user_id, previous_level, new_level, now),
    )
