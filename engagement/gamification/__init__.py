"""
Gamification core for the engagement service

Pure, synchronous components:
- Points and level ledger
- Streak state tracking
- Risk assessment
- Recovery coordination
- Milestones and celebrations
- Achievements and micro-wins
"""

from engagement.gamification.points_system import apply_points, check_level_up, resolve_points
from engagement.gamification.streak_system import (
    compute_streak_statistics,
    mark_streak_broken,
    qualifying_actions,
    record_activity,
    restart_streak,
    streak_types_for_action,
)
from engagement.gamification.risk_assessment import analyze_streak, analyze_streaks
from engagement.gamification.recovery_system import apply_recovery_action, initiate_recovery
from engagement.gamification.celebrations import build_streak_celebration, fire_streak_milestone
from engagement.gamification.achievement_system import build_achievement, find_unlocked_achievements
from engagement.gamification.micro_wins import detect_action_micro_wins, generate_personalized_micro_wins

__all__ = [
    "apply_points",
    "check_level_up",
    "resolve_points",
    "compute_streak_statistics",
    "mark_streak_broken",
    "qualifying_actions",
    "record_activity",
    "restart_streak",
    "streak_types_for_action",
    "analyze_streak",
    "analyze_streaks",
    "apply_recovery_action",
    "initiate_recovery",
    "build_streak_celebration",
    "fire_streak_milestone",
    "build_achievement",
    "find_unlocked_achievements",
    "detect_action_micro_wins",
    "generate_personalized_micro_wins",
]
