"""Global test fixtures and utilities for engagement tests"""
import pytest
from datetime import datetime, date, timezone

from engagement.db.memory import InMemoryEngagementRepository
from engagement.models import EngagementPolicy, Streak, StreakRiskLevel, StreakType
from engagement.services.engagement_service import EngagementService
from engagement.utils.clock import FixedClock


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def start_moment():
    """Monday 2024-03-04 09:00 UTC"""
    return datetime(2024, 3, 4, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_moment):
    """Deterministic clock starting at start_moment"""
    return FixedClock(start_moment)


@pytest.fixture
def today(clock):
    return clock.today()


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


# ============================================================================
# Engagement Fixtures
# ============================================================================

@pytest.fixture
def policy():
    """Default engagement policy"""
    return EngagementPolicy()


@pytest.fixture
def repository():
    """Fresh in-memory repository"""
    return InMemoryEngagementRepository()


@pytest.fixture
def service(repository, clock, policy):
    """EngagementService over the in-memory repository and fixed clock"""
    return EngagementService(repository, clock=clock, policy=policy)


@pytest.fixture
def make_streak(test_user_id, today):
    """Factory for streak records"""
    def _make(
        streak_type: StreakType = StreakType.DAILY_CHECK_IN,
        current_count: int = 1,
        best_count: int = None,
        last_activity_date: date = None,
        **overrides
    ) -> Streak:
        last = last_activity_date or today
        fields = dict(
            user_id=test_user_id,
            streak_type=streak_type,
            current_count=current_count,
            best_count=best_count if best_count is not None else current_count,
            last_activity_date=last,
            started_on=last,
        )
        fields.update(overrides)
        return Streak(**fields)
    return _make


@pytest.fixture
def make_broken_streak(make_streak):
    """Factory for a streak broken at lost_count"""
    def _make(lost_count: int = 10, streak_type: StreakType = StreakType.DAILY_CHECK_IN, **overrides):
        fields = dict(
            current_count=1,
            best_count=lost_count,
            lost_count=lost_count,
            is_active=False,
            risk_level=StreakRiskLevel.BROKEN,
        )
        fields.update(overrides)
        return make_streak(streak_type=streak_type, **fields)
    return _make
