"""
Micro-Win Generator

Suggests small, achievable tasks and detects micro-wins in completed actions.

Suggestion order:
1. Maintenance: one per at-risk streak (most urgent first)
2. Recovery: one per open recovery
3. Habit building: up to two actions rarely used recently
4. Exploration: review insights
"""

from typing import Any, Dict, Iterable, List, Optional
import logging

from engagement.exceptions import ValidationError
from engagement.gamification.streak_system import qualifying_actions
from engagement.models import (
    DetectedMicroWin,
    MicroWinDifficulty,
    MicroWinOpportunity,
    PointsHistoryEntry,
    PointsSource,
    RiskAnalysis,
    StreakRecovery,
    StreakRiskLevel,
    UserAction,
)

logger = logging.getLogger(__name__)

MICRO_WIN_POINTS = {
    MicroWinDifficulty.EASY: 5,
    MicroWinDifficulty.MEDIUM: 10,
    MicroWinDifficulty.HARD: 20,
}

HABIT_HISTORY_WINDOW = 20
HABIT_USAGE_THRESHOLD = 3
HABIT_SUGGESTIONS = 2

BULK_CATEGORIZE_MIN_TRANSACTIONS = 5
SIGNIFICANT_SAVINGS_MIN_AMOUNT = 50

# One-time actions are never suggested as habits
HABIT_EXCLUDED = {UserAction.LINK_ACCOUNT}

GROUP_PRIORITY = {
    "maintenance": 400,
    "recovery": 300,
    "habit": 200,
    "exploration": 100,
}


def _maintenance_win(analysis: RiskAnalysis) -> MicroWinOpportunity:
    streak = analysis.streak
    return MicroWinOpportunity(
        title_key=f"micro_win.maintain.{streak.streak_type.value.lower()}",
        description_key="micro_win.maintain.description",
        action=analysis.recommended_actions[0],
        difficulty=MicroWinDifficulty.EASY,
        points=MICRO_WIN_POINTS[MicroWinDifficulty.EASY],
        is_personalized=True,
        streak_type=streak.streak_type,
        context_data={
            "streak_id": streak.id,
            "streak_count": streak.current_count,
            "risk_level": analysis.risk_level.value,
        },
        priority=GROUP_PRIORITY["maintenance"] + round(analysis.urgency_score),
    )


def _recovery_win(recovery: StreakRecovery) -> Optional[MicroWinOpportunity]:
    actions = qualifying_actions(recovery.streak_type)
    if not actions:
        return None
    return MicroWinOpportunity(
        title_key=f"micro_win.recover.{recovery.streak_type.value.lower()}",
        description_key="micro_win.recover.description",
        action=actions[0],
        difficulty=MicroWinDifficulty.HARD,
        points=MICRO_WIN_POINTS[MicroWinDifficulty.HARD],
        is_personalized=True,
        streak_type=recovery.streak_type,
        context_data={
            "recovery_id": recovery.id,
            "original_count": recovery.original_count,
            "actions_remaining": recovery.actions_remaining,
        },
        priority=GROUP_PRIORITY["recovery"],
    )


def _habit_wins(history: Iterable[PointsHistoryEntry]) -> List[MicroWinOpportunity]:
    recent = [e for e in history if e.source == PointsSource.ACTION]
    recent.sort(key=lambda e: e.earned_at, reverse=True)
    recent = recent[:HABIT_HISTORY_WINDOW]

    usage: Dict[UserAction, int] = {}
    for entry in recent:
        usage[entry.action] = usage.get(entry.action, 0) + 1

    candidates = [
        action for action in UserAction
        if action not in HABIT_EXCLUDED and usage.get(action, 0) < HABIT_USAGE_THRESHOLD
    ]

    return [
        MicroWinOpportunity(
            title_key=f"micro_win.habit.{action.value.lower()}",
            description_key="micro_win.habit.description",
            action=action,
            difficulty=MicroWinDifficulty.MEDIUM,
            points=MICRO_WIN_POINTS[MicroWinDifficulty.MEDIUM],
            is_personalized=True,
            context_data={"recent_uses": usage.get(action, 0)},
            priority=GROUP_PRIORITY["habit"],
        )
        for action in candidates[:HABIT_SUGGESTIONS]
    ]


def _exploration_win() -> MicroWinOpportunity:
    return MicroWinOpportunity(
        title_key="micro_win.explore.review_insights",
        description_key="micro_win.explore.description",
        action=UserAction.REVIEW_INSIGHTS,
        difficulty=MicroWinDifficulty.EASY,
        points=MICRO_WIN_POINTS[MicroWinDifficulty.EASY],
        is_personalized=False,
        priority=GROUP_PRIORITY["exploration"],
    )


def generate_personalized_micro_wins(
    analyses: Iterable[RiskAnalysis],
    open_recoveries: Iterable[StreakRecovery],
    history: Iterable[PointsHistoryEntry],
    limit: int = 5,
    user_id: Optional[str] = None
) -> List[MicroWinOpportunity]:
    """
    Ranked micro-win suggestions, truncated to limit

    Raises:
        ValidationError: limit is not positive
    """
    if limit <= 0:
        raise ValidationError(
            message="Limit must be positive",
            field="limit",
            value=limit,
            user_id=user_id,
            operation="generate_personalized_micro_wins"
        )

    opportunities: List[MicroWinOpportunity] = []

    at_risk = [
        a for a in analyses
        if a.risk_level != StreakRiskLevel.SAFE and a.recommended_actions
    ]
    at_risk.sort(key=lambda a: a.urgency_score, reverse=True)
    opportunities.extend(_maintenance_win(a) for a in at_risk)

    for recovery in open_recoveries:
        win = _recovery_win(recovery)
        if win is not None:
            opportunities.append(win)

    opportunities.extend(_habit_wins(history))
    opportunities.append(_exploration_win())

    return opportunities[:limit]


def detect_action_micro_wins(
    action: UserAction,
    context_data: Optional[Dict[str, Any]] = None
) -> List[DetectedMicroWin]:
    """
    Micro-wins earned by a completed action

    context_data keys:
        transaction_count: transactions categorized in one go
        amount: savings contribution amount
    """
    context_data = context_data or {}
    wins = [
        DetectedMicroWin(
            title_key=f"micro_win.completed.{action.value.lower()}",
            description_key="micro_win.completed.description",
            difficulty=MicroWinDifficulty.EASY,
            points=MICRO_WIN_POINTS[MicroWinDifficulty.EASY],
        )
    ]

    if (
        action == UserAction.CATEGORIZE_TRANSACTION
        and context_data.get("transaction_count", 0) >= BULK_CATEGORIZE_MIN_TRANSACTIONS
    ):
        wins.append(DetectedMicroWin(
            title_key="micro_win.bulk_organizer",
            description_key="micro_win.bulk_organizer.description",
            difficulty=MicroWinDifficulty.MEDIUM,
            points=MICRO_WIN_POINTS[MicroWinDifficulty.MEDIUM],
        ))

    if (
        action == UserAction.MAKE_SAVINGS_CONTRIBUTION
        and context_data.get("amount", 0) >= SIGNIFICANT_SAVINGS_MIN_AMOUNT
    ):
        wins.append(DetectedMicroWin(
            title_key="micro_win.significant_saver",
            description_key="micro_win.significant_saver.description",
            difficulty=MicroWinDifficulty.HARD,
            points=MICRO_WIN_POINTS[MicroWinDifficulty.HARD],
        ))

    return wins
