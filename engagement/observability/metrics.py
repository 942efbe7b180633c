"""
Prometheus metrics for the engagement core.

Metrics are grouped by component:
- Points & levels: points granted by source, level-ups
- Streaks: streak lifecycle events, risk assessments
- Recovery: recovery lifecycle events
- Achievements & celebrations
- Errors: failures surfaced by the service

Exposing them (an HTTP /metrics endpoint, a push gateway) is left to the
embedding process.
"""

import logging
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

from engagement.config import ENABLE_METRICS

logger = logging.getLogger(__name__)

# =============================================================================
# Points & Level Metrics
# =============================================================================

points_awarded_total = Counter(
    "engagement_points_awarded_total",
    "Total points granted",
    ["source"],  # source: ACTION/MILESTONE/ACHIEVEMENT/RECOVERY/MICRO_WIN/GOAL_PROGRESS
)

level_ups_total = Counter(
    "engagement_level_ups_total",
    "Total level-ups",
)

# =============================================================================
# Streak Metrics
# =============================================================================

streak_events_total = Counter(
    "engagement_streak_events_total",
    "Streak lifecycle events",
    ["streak_type", "event"],  # event: started/extended/broken/restarted
)

risk_assessments_total = Counter(
    "engagement_risk_assessments_total",
    "Streak risk classifications",
    ["risk_level"],
)

# =============================================================================
# Recovery Metrics
# =============================================================================

recovery_events_total = Counter(
    "engagement_recovery_events_total",
    "Recovery lifecycle events",
    ["event"],  # event: initiated/action/succeeded/failed
)

# =============================================================================
# Achievement & Celebration Metrics
# =============================================================================

achievements_unlocked_total = Counter(
    "engagement_achievements_unlocked_total",
    "Achievements unlocked",
    ["achievement_type"],
)

celebrations_total = Counter(
    "engagement_celebrations_total",
    "Celebration events emitted",
    ["celebration_type", "intensity"],
)

# =============================================================================
# Service Metrics
# =============================================================================

commit_duration_seconds = Histogram(
    "engagement_commit_duration_seconds",
    "Time spent writing one change set to the repository",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

errors_total = Counter(
    "engagement_errors_total",
    "Failures returned by the engagement service",
    ["kind", "operation"],  # kind: validation/conflict/collaborator
)


def record_points(source: str, points: int) -> None:
    if ENABLE_METRICS and points > 0:
        points_awarded_total.labels(source=source).inc(points)


def record_level_up() -> None:
    if ENABLE_METRICS:
        level_ups_total.inc()


def record_streak_event(streak_type: str, event: str) -> None:
    if ENABLE_METRICS:
        streak_events_total.labels(streak_type=streak_type, event=event).inc()


def record_risk(risk_level: str) -> None:
    if ENABLE_METRICS:
        risk_assessments_total.labels(risk_level=risk_level).inc()


def record_recovery_event(event: str) -> None:
    if ENABLE_METRICS:
        recovery_events_total.labels(event=event).inc()


def record_achievement(achievement_type: str) -> None:
    if ENABLE_METRICS:
        achievements_unlocked_total.labels(achievement_type=achievement_type).inc()


def record_celebration(celebration_type: str, intensity: str) -> None:
    if ENABLE_METRICS:
        celebrations_total.labels(celebration_type=celebration_type, intensity=intensity).inc()


def record_error(kind: str, operation: str) -> None:
    if ENABLE_METRICS:
        errors_total.labels(kind=kind, operation=operation).inc()


@contextmanager
def track_commit():
    """Time a change set commit"""
    if not ENABLE_METRICS:
        yield
        return

    start_time = time.time()
    try:
        yield
    finally:
        commit_duration_seconds.observe(time.time() - start_time)
