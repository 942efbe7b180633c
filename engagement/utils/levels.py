"""
Level curve

level = floor(sqrt(total_points / 100)) + 1

Level n starts at (n - 1)^2 * 100 points:
- Level 1: 0
- Level 2: 100
- Level 3: 400
- Level 5: 1600
- Level 10: 8100
"""

import math
from typing import Dict

POINTS_PER_LEVEL_BASE = 100

# Feature keys unlocked when a level is first reached
LEVEL_FEATURE_UNLOCKS: Dict[int, list[str]] = {
    2: ["advanced_goal_tracking"],
    3: ["spending_insights"],
    5: ["custom_categories"],
    10: ["premium_analytics"],
}


def level_from_points(total_points: int) -> int:
    """Level reached with total_points (negative totals are level 1)"""
    if total_points <= 0:
        return 1
    return math.isqrt(total_points // POINTS_PER_LEVEL_BASE) + 1


def points_required_for_level(level: int) -> int:
    """Cumulative points at which level starts"""
    if level <= 1:
        return 0
    return (level - 1) ** 2 * POINTS_PER_LEVEL_BASE


def points_required_for_next_level(current_level: int) -> int:
    return points_required_for_level(current_level + 1)


def level_progress(total_points: int) -> Dict[str, int]:
    """
    Calculate level progress from total points

    Returns:
        {
            'current_level': int,
            'points_in_current_level': int,
            'points_to_next_level': int,
            'total_points_for_next_level': int
        }
    """
    total_points = max(total_points, 0)
    level = level_from_points(total_points)
    level_floor = points_required_for_level(level)
    next_floor = points_required_for_next_level(level)

    return {
        "current_level": level,
        "points_in_current_level": total_points - level_floor,
        "points_to_next_level": next_floor - total_points,
        "total_points_for_next_level": next_floor,
    }


def features_unlocked_between(old_level: int, new_level: int) -> list[str]:
    """Feature keys for every level in (old_level, new_level]"""
    features = []
    for level in range(old_level + 1, new_level + 1):
        features.extend(LEVEL_FEATURE_UNLOCKS.get(level, []))
    return features
