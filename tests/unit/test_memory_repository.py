"""Unit tests for the in-memory repository and change set"""
import pytest
from datetime import timedelta

from engagement.db import ChangeSet
from engagement.exceptions import ConcurrencyConflictError
from engagement.gamification.achievement_system import build_achievement
from engagement.gamification.points_system import build_history_entry, new_profile
from engagement.models import (
    AchievementType,
    PointsSource,
    ReminderType,
    StreakReminder,
    StreakType,
    UserAction,
    evolve,
)


@pytest.mark.asyncio
async def test_streak_insert_then_compare_and_swap(repository, make_streak):
    """Test streak writes check the version"""
    streak = make_streak(current_count=3)
    await repository.update_streak(streak)

    bumped = evolve(streak, current_count=4, best_count=4, version=2)
    await repository.update_streak(bumped)

    stale = evolve(streak, current_count=5, best_count=5, version=2)
    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await repository.update_streak(stale)

    assert exc_info.value.actual_version == 2
    stored = await repository.get_streak_by_id(streak.user_id, streak.id)
    assert stored.current_count == 4


@pytest.mark.asyncio
async def test_get_streak_returns_latest_incarnation(repository, make_streak, make_broken_streak):
    """Test get_streak returns the newest row for a type"""
    broken = make_broken_streak(lost_count=8)
    restarted = make_streak(current_count=1, best_count=8)
    await repository.update_streak(broken)
    await repository.update_streak(restarted)

    latest = await repository.get_streak(restarted.user_id, StreakType.DAILY_CHECK_IN)
    assert latest.id == restarted.id

    assert [s.id for s in await repository.get_active_streaks(restarted.user_id)] == [restarted.id]
    assert len(await repository.get_all_user_streaks(restarted.user_id)) == 2


@pytest.mark.asyncio
async def test_streaks_are_scoped_to_user(repository, make_streak):
    """Test streaks are not visible to other users"""
    streak = make_streak()
    await repository.update_streak(streak)

    assert await repository.get_streak_by_id("someone-else", streak.id) is None
    assert await repository.get_active_streaks("someone-else") == []


@pytest.mark.asyncio
async def test_returned_records_are_copies(repository, make_streak):
    """Test callers cannot mutate stored records"""
    streak = make_streak(current_count=2)
    await repository.update_streak(streak)

    loaded = await repository.get_streak_by_id(streak.user_id, streak.id)
    loaded.current_count = 99

    again = await repository.get_streak_by_id(streak.user_id, streak.id)
    assert again.current_count == 2


@pytest.mark.asyncio
async def test_profile_create_conflicts_when_present(repository, test_user_id, clock):
    """Test creating an existing profile conflicts"""
    profile = evolve(new_profile(test_user_id, clock.now()), version=1)
    await repository.create_gamification_profile(profile)

    with pytest.raises(ConcurrencyConflictError):
        await repository.create_gamification_profile(profile)


@pytest.mark.asyncio
async def test_profile_update_checks_version(repository, test_user_id, clock):
    """Test profile updates check the version"""
    profile = evolve(new_profile(test_user_id, clock.now()), total_points=10, version=1)
    await repository.update_gamification_profile(profile)

    with pytest.raises(ConcurrencyConflictError):
        await repository.update_gamification_profile(evolve(profile, total_points=20, version=3))

    await repository.update_gamification_profile(evolve(profile, total_points=20, version=2))
    stored = await repository.get_gamification_profile(test_user_id)
    assert stored.total_points == 20
    assert stored.level == 1


@pytest.mark.asyncio
async def test_add_achievement_keeps_first(repository, test_user_id, clock):
    """Test adding an achievement twice keeps the first"""
    first = build_achievement(test_user_id, AchievementType.STREAK_MASTER_7, clock.now())
    second = build_achievement(test_user_id, AchievementType.STREAK_MASTER_7, clock.now() + timedelta(days=1))

    await repository.add_achievement(first)
    stored = await repository.add_achievement(second)

    assert stored.id == first.id
    assert stored.unlocked_at == first.unlocked_at
    assert len(await repository.get_achievements(test_user_id)) == 1


@pytest.mark.asyncio
async def test_points_history_newest_first(repository, test_user_id, clock):
    """Test points history is newest first"""
    now = clock.now()
    older = build_history_entry(test_user_id, 5, UserAction.CHECK_BALANCE, now - timedelta(hours=1))
    newer = build_history_entry(test_user_id, 10, UserAction.CATEGORIZE_TRANSACTION, now)
    same_time = build_history_entry(test_user_id, 25, None, now, PointsSource.MILESTONE)

    for entry in (older, newer, same_time):
        await repository.add_points_history(entry)

    history = await repository.get_points_history(test_user_id, limit=50)
    assert [e.id for e in history] == [same_time.id, newer.id, older.id]

    assert len(await repository.get_points_history(test_user_id, limit=2)) == 2


@pytest.mark.asyncio
async def test_count_actions_by_source(repository, test_user_id, clock):
    """Test action counts filter by source"""
    now = clock.now()
    await repository.add_points_history(build_history_entry(test_user_id, 5, UserAction.CHECK_BALANCE, now))
    await repository.add_points_history(build_history_entry(test_user_id, 5, UserAction.CHECK_BALANCE, now))
    await repository.add_points_history(
        build_history_entry(test_user_id, 5, UserAction.CHECK_BALANCE, now, PointsSource.MICRO_WIN)
    )

    assert await repository.count_actions(test_user_id, UserAction.CHECK_BALANCE) == 2
    assert await repository.count_actions(
        test_user_id, UserAction.CHECK_BALANCE, PointsSource.MICRO_WIN
    ) == 1
    assert await repository.count_actions(test_user_id, UserAction.LINK_ACCOUNT) == 0


@pytest.mark.asyncio
async def test_reminders_sorted_and_acknowledged(repository, test_user_id, clock):
    """Test active reminders are sorted and can be marked read"""
    now = clock.now()
    later = StreakReminder(
        user_id=test_user_id,
        streak_type=StreakType.DAILY_CHECK_IN,
        reminder_type=ReminderType.GENTLE_NUDGE,
        message_key="streak_reminder.low_risk",
        scheduled_for=now + timedelta(hours=8),
    )
    sooner = StreakReminder(
        user_id=test_user_id,
        streak_type=StreakType.UNDER_BUDGET,
        reminder_type=ReminderType.STREAK_RISK_ALERT,
        message_key="streak_reminder.high_risk",
        scheduled_for=now + timedelta(hours=1),
    )
    await repository.create_streak_reminder(later)
    await repository.create_streak_reminder(sooner)

    active = await repository.get_active_reminders(test_user_id)
    assert [r.id for r in active] == [sooner.id, later.id]

    read = await repository.mark_reminder_as_read(test_user_id, sooner.id)
    assert read.is_read
    assert [r.id for r in await repository.get_active_reminders(test_user_id)] == [later.id]

    assert await repository.mark_reminder_as_read("someone-else", later.id) is None


@pytest.mark.asyncio
async def test_delete_user_data(repository, make_streak, test_user_id, clock):
    """Test deleting a user's records"""
    await repository.update_streak(make_streak())
    await repository.add_points_history(build_history_entry(test_user_id, 5, UserAction.CHECK_BALANCE, clock.now()))
    await repository.add_achievement(build_achievement(test_user_id, AchievementType.STREAK_MASTER_7, clock.now()))

    await repository.delete_user_data(test_user_id)

    assert await repository.get_all_user_streaks(test_user_id) == []
    assert await repository.get_points_history(test_user_id) == []
    assert await repository.get_achievements(test_user_id) == []


# ============================================
# ChangeSet
# ============================================

@pytest.mark.asyncio
async def test_empty_changeset_writes_nothing(repository, test_user_id):
    """Test an empty change set writes nothing"""
    changes = ChangeSet(test_user_id)
    assert changes.is_empty
    await changes.commit(repository)
    assert await repository.get_gamification_profile(test_user_id) is None


@pytest.mark.asyncio
async def test_changeset_commits_everything(repository, make_streak, test_user_id, clock):
    """Test a change set commits every staged record"""
    changes = ChangeSet(test_user_id)
    streak = make_streak()
    profile = evolve(new_profile(test_user_id, clock.now()), total_points=5, version=1)

    changes.put_streak(streak)
    changes.put_profile(profile)
    changes.add_history(build_history_entry(test_user_id, 5, UserAction.CHECK_BALANCE, clock.now()))
    await changes.commit(repository)

    assert (await repository.get_gamification_profile(test_user_id)).total_points == 5
    assert (await repository.get_streak(test_user_id, StreakType.DAILY_CHECK_IN)).id == streak.id
    assert len(await repository.get_points_history(test_user_id)) == 1
