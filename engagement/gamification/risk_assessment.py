"""
Streak Risk Assessor

Classifies how close each active streak is to lapsing, scores urgency and
decides whether a reminder is allowed.

Tiers by periods elapsed since the last activity:
- 0: SAFE
- 1: LOW_RISK
- 2: MEDIUM_RISK
- 3+: HIGH_RISK
- more than policy.risk_lapse_periods: lapsed (not reported; the service
  marks it BROKEN)

Urgency = tier base (0/10/20/30) + 10 * count / (count + 10), so a longer
streak is more urgent within a tier and never outranks a higher tier.
"""

from typing import Iterable, List, Optional, Tuple
from datetime import date, datetime
import logging

from engagement.gamification.streak_system import elapsed_periods, qualifying_actions
from engagement.models import (
    EngagementPolicy,
    ReminderType,
    RiskAnalysis,
    Streak,
    StreakRiskLevel,
)
from engagement.utils.clock import days_between, ensure_utc

logger = logging.getLogger(__name__)

TIER_BASE = {
    StreakRiskLevel.SAFE: 0.0,
    StreakRiskLevel.LOW_RISK: 10.0,
    StreakRiskLevel.MEDIUM_RISK: 20.0,
    StreakRiskLevel.HIGH_RISK: 30.0,
}

REMINDERS: dict[StreakRiskLevel, Tuple[ReminderType, str]] = {
    StreakRiskLevel.LOW_RISK: (ReminderType.GENTLE_NUDGE, "streak_reminder.low_risk"),
    StreakRiskLevel.MEDIUM_RISK: (ReminderType.MOTIVATION_BOOST, "streak_reminder.medium_risk"),
    StreakRiskLevel.HIGH_RISK: (ReminderType.STREAK_RISK_ALERT, "streak_reminder.high_risk"),
}


def classify_risk(periods_elapsed: int) -> StreakRiskLevel:
    if periods_elapsed <= 0:
        return StreakRiskLevel.SAFE
    if periods_elapsed == 1:
        return StreakRiskLevel.LOW_RISK
    if periods_elapsed == 2:
        return StreakRiskLevel.MEDIUM_RISK
    return StreakRiskLevel.HIGH_RISK


def urgency_score(risk_level: StreakRiskLevel, count: int) -> float:
    count = max(count, 0)
    return TIER_BASE.get(risk_level, 0.0) + 10.0 * count / (count + 10)


def is_lapsed(streak: Streak, today: date, policy: EngagementPolicy) -> bool:
    return elapsed_periods(streak, today, policy) > policy.risk_lapse_periods


def reminder_allowed(streak: Streak, now: datetime, policy: EngagementPolicy) -> bool:
    """False while the last reminder is inside the cooldown window"""
    if streak.last_reminder_sent is None:
        return True
    return ensure_utc(now) - ensure_utc(streak.last_reminder_sent) >= policy.reminder_cooldown


def analyze_streak(
    streak: Streak,
    today: date,
    now: datetime,
    policy: EngagementPolicy
) -> Optional[RiskAnalysis]:
    """Risk analysis for one streak, or None if it is inactive or lapsed"""
    if not streak.is_active or is_lapsed(streak, today, policy):
        return None

    risk_level = classify_risk(elapsed_periods(streak, today, policy))
    reminder_type, message_key = REMINDERS.get(risk_level, (None, None))

    return RiskAnalysis(
        streak=streak,
        risk_level=risk_level,
        days_since_last_activity=max(days_between(streak.last_activity_date, today), 0),
        urgency_score=urgency_score(risk_level, streak.current_count),
        recommended_actions=qualifying_actions(streak.streak_type),
        reminder_message_key=message_key,
        reminder_type=reminder_type,
        should_remind=(
            risk_level != StreakRiskLevel.SAFE and reminder_allowed(streak, now, policy)
        ),
    )


def analyze_streaks(
    streaks: Iterable[Streak],
    today: date,
    now: datetime,
    policy: EngagementPolicy
) -> List[RiskAnalysis]:
    """Analyses for every active, non-lapsed streak, most urgent first"""
    analyses = []
    for streak in streaks:
        analysis = analyze_streak(streak, today, now, policy)
        if analysis is not None:
            analyses.append(analysis)

    analyses.sort(key=lambda a: a.urgency_score, reverse=True)
    return analyses


def lapsed_streaks(streaks: Iterable[Streak], today: date, policy: EngagementPolicy) -> List[Streak]:
    return [s for s in streaks if s.is_active and is_lapsed(s, today, policy)]
