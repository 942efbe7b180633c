"""
EngagementService - Engagement Orchestration

Loads state from the repository, runs the pure gamification components,
persists everything an operation produced through one ChangeSet and
returns Success/Failure results.

Same-user calls must be serialized by the caller; concurrent writers are
detected by the repository's version check and surface as conflict
failures.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from datetime import date, datetime

from pydantic import ValidationError as ModelValidationError

from engagement.config import load_policy
from engagement.db.changeset import ChangeSet
from engagement.db.repository import EngagementRepository
from engagement.exceptions import (
    EngagementError,
    NotificationDeliveryError,
    RecordNotFoundError,
    ValidationError,
    wrap_collaborator_exception,
)
from engagement.gamification.achievement_system import build_achievement, find_unlocked_achievements
from engagement.gamification.celebrations import (
    build_achievement_celebration,
    build_goal_celebration,
    build_micro_win_celebration,
    build_streak_celebration,
    crossed_goal_milestones,
    fire_streak_milestone,
)
from engagement.gamification.micro_wins import (
    detect_action_micro_wins,
    generate_personalized_micro_wins as build_micro_wins,
)
from engagement.gamification.points_system import (
    apply_points,
    build_history_entry,
    check_level_up as compare_levels,
    new_profile,
    parse_action,
    resolve_points,
)
from engagement.gamification.recovery_system import (
    apply_recovery_action,
    expire_recovery,
    initiate_recovery,
    is_eligible,
    is_expired,
)
from engagement.gamification.reminders import (
    build_recovery_reminders,
    build_risk_reminders,
    stamp_reminder_sent,
)
from engagement.gamification.risk_assessment import analyze_streaks, lapsed_streaks
from engagement.gamification.streak_system import (
    compute_streak_statistics,
    mark_streak_broken,
    record_activity as track_activity,
    restart_streak,
    streak_types_for_action,
)
from engagement.models import (
    Achievement,
    AchievementType,
    ActionOutcome,
    CelebrationEvent,
    EngagementPolicy,
    GamificationProfile,
    LevelUpResult,
    MicroWinOpportunity,
    MicroWinResult,
    PointsHistoryEntry,
    PointsResult,
    PointsSource,
    RecoveryActionResult,
    RecoveryStatus,
    RiskAnalysis,
    Streak,
    StreakRecovery,
    StreakReminder,
    StreakStatistics,
    StreakType,
    StreakUpdateResult,
    UserAction,
    evolve,
)
from engagement.notifications.scheduler import LoggingNotificationScheduler, NotificationScheduler
from engagement.observability import metrics
from engagement.results import Failure, Result, Success
from engagement.utils.clock import Clock, ensure_utc, resolve_clock

logger = logging.getLogger(__name__)

# Enough history to find the 20 most recent action entries among bonus grants
HABIT_HISTORY_FETCH = 200


class _PointsLedger:
    """Running total of every grant made by one operation"""

    def __init__(self, profile: GamificationProfile, now: datetime):
        self.profile = profile
        self.now = now
        self.start_total = profile.total_points
        self.total = profile.total_points
        self.entries: List[PointsHistoryEntry] = []

    def grant(
        self,
        points: int,
        action: Optional[UserAction],
        source: PointsSource,
        description: Optional[str] = None,
        always_record: bool = False
    ) -> int:
        points = max(points, 0)
        if points == 0 and not always_record:
            return 0
        self.total += points
        self.entries.append(build_history_entry(
            self.profile.user_id, points, action, self.now, source, description
        ))
        metrics.record_points(source.value, points)
        return points

    @property
    def granted(self) -> int:
        return self.total - self.start_total

    def pending_action_counts(self) -> Dict[UserAction, int]:
        counts: Dict[UserAction, int] = {}
        for entry in self.entries:
            if entry.source == PointsSource.ACTION and entry.action is not None:
                counts[entry.action] = counts.get(entry.action, 0) + 1
        return counts

    def stage(self, changes: ChangeSet) -> Optional[LevelUpResult]:
        """Stage the profile and history; returns the level-up if any"""
        if not self.entries:
            return None
        changes.put_profile(apply_points(self.profile, self.granted, self.now))
        for entry in self.entries:
            changes.add_history(entry)
        level_up = compare_levels(self.profile.user_id, self.start_total, self.total, self.now)
        if level_up is not None:
            metrics.record_level_up()
        return level_up


class EngagementService:
    """
    Service for engagement features.

    Responsibilities:
    - Points, levels and achievements
    - Streak tracking, risk assessment and reminders
    - Streak recovery
    - Milestone celebrations and micro-wins
    """

    def __init__(
        self,
        repository: EngagementRepository,
        clock: Optional[Clock] = None,
        policy: Optional[EngagementPolicy] = None,
        notification_scheduler: Optional[NotificationScheduler] = None
    ):
        """
        Initialize EngagementService.

        Args:
            repository: Storage collaborator
            clock: Time source (defaults to the system clock in the policy's timezone)
            policy: Engagement rules (defaults to engagement.config.load_policy())
            notification_scheduler: Reminder/celebration delivery collaborator
        """
        self.repository = repository
        self.policy = policy if policy is not None else load_policy()
        self.clock = resolve_clock(clock, self.policy.timezone)
        self.notifications = notification_scheduler or LoggingNotificationScheduler()
        logger.debug("EngagementService initialized")

    # ==========================================
    # Helpers
    # ==========================================

    def _failure(self, error: Exception, operation: str, user_id: Optional[str]) -> Failure:
        if isinstance(error, ModelValidationError):
            error = ValidationError(
                message=str(error),
                user_id=user_id,
                operation=operation,
                cause=error
            )
        elif not isinstance(error, EngagementError):
            error = wrap_collaborator_exception(error, operation=operation, user_id=user_id)
        metrics.record_error(error.kind, operation)
        return Failure(error)

    async def _load_profile(self, user_id: str, now: datetime) -> GamificationProfile:
        profile = await self.repository.get_gamification_profile(user_id)
        return profile if profile is not None else new_profile(user_id, now)

    async def _action_counts(self, user_id: str, ledger: _PointsLedger) -> Dict[UserAction, int]:
        pending = ledger.pending_action_counts()
        counts = {}
        for action in UserAction:
            stored = await self.repository.count_actions(user_id, action)
            counts[action] = stored + pending.get(action, 0)
        return counts

    async def _has_open_recovery(self, user_id: str, streak_type: StreakType) -> bool:
        now = self.clock.now()
        return any(
            r.streak_type == streak_type and not is_expired(r, now, self.policy)
            for r in await self.repository.get_active_recoveries(user_id)
        )

    @staticmethod
    def _merge_streaks(stored: Iterable[Streak], changes: ChangeSet) -> List[Streak]:
        """Active streaks as they will be after the change set commits"""
        merged = {s.id: s for s in stored}
        merged.update(changes.streaks)
        return [s for s in merged.values() if s.is_active]

    async def _unlock_earned_achievements(
        self,
        user_id: str,
        ledger: _PointsLedger,
        changes: ChangeSet,
        action: Optional[UserAction],
        active_streaks: List[Streak],
        goal_completed: bool = False
    ) -> List[Achievement]:
        """Unlock everything that now qualifies, repeating while bonuses unlock more"""
        unlocked = {a.achievement_type for a in await self.repository.get_achievements(user_id)}
        action_counts = await self._action_counts(user_id, ledger)
        new_achievements: List[Achievement] = []

        while True:
            qualifying = find_unlocked_achievements(
                unlocked,
                total_points=ledger.total,
                streaks=active_streaks,
                action_counts=action_counts,
                goal_completed=goal_completed,
            )
            if not qualifying:
                break
            for achievement_type in qualifying:
                achievement = build_achievement(user_id, achievement_type, ledger.now)
                unlocked.add(achievement_type)
                new_achievements.append(achievement)
                changes.add_achievement(achievement)
                ledger.grant(
                    achievement.points_awarded,
                    action,
                    PointsSource.ACHIEVEMENT,
                    f"Achievement unlocked: {achievement.title}"
                )
                metrics.record_achievement(achievement_type.value)
                logger.info(f"User {user_id} unlocked achievement {achievement_type.value}")

        return new_achievements

    async def _publish(self, user_id: str, celebrations: Iterable[CelebrationEvent]) -> None:
        for event in celebrations:
            metrics.record_celebration(event.type.value, event.intensity.value)
            try:
                await self.notifications.publish_celebration(user_id, event)
            except Exception as e:
                error = NotificationDeliveryError(
                    message=f"Failed to publish {event.type.value} celebration: {e}",
                    user_id=user_id,
                    operation="publish_celebration",
                    cause=e
                )
                metrics.record_error(error.kind, error.operation)

    async def _schedule(self, reminders: Iterable[StreakReminder], analyses: Dict[str, RiskAnalysis]) -> None:
        for reminder in reminders:
            try:
                await self.notifications.schedule_reminder(reminder, analyses.get(reminder.streak_id))
            except Exception as e:
                error = NotificationDeliveryError(
                    message=f"Failed to schedule reminder {reminder.id}: {e}",
                    user_id=reminder.user_id,
                    operation="schedule_reminder",
                    cause=e
                )
                metrics.record_error(error.kind, error.operation)

    def _start_recovery_for(
        self,
        broken: Streak,
        changes: ChangeSet,
        now: datetime
    ) -> Optional[StreakRecovery]:
        if not is_eligible(broken, self.policy):
            return None
        recovery, _ = initiate_recovery(broken, [], now, self.policy)
        changes.add_recovery(recovery)
        for reminder in build_recovery_reminders(recovery):
            changes.add_reminder(reminder)
        metrics.record_recovery_event("initiated")
        return recovery

    @staticmethod
    def _record_streak_metrics(update: StreakUpdateResult) -> None:
        streak_type = update.streak.streak_type.value
        if update.was_started:
            metrics.record_streak_event(streak_type, "started")
        if update.was_extended:
            metrics.record_streak_event(streak_type, "extended")
        if update.was_broken:
            metrics.record_streak_event(streak_type, "broken")
        if update.was_restarted:
            metrics.record_streak_event(streak_type, "restarted")

    @staticmethod
    def _record_recovery_metrics(result: RecoveryActionResult) -> None:
        if result.action_processed is not None:
            metrics.record_recovery_event("action")
        if result.is_complete and result.new_streak is not None:
            metrics.record_recovery_event("succeeded")
        if result.recovery.status == RecoveryStatus.FAILED:
            metrics.record_recovery_event("failed")

    # ==========================================
    # Action processing
    # ==========================================

    async def process_user_action(
        self,
        user_id: str,
        action,
        occurred_at: Optional[datetime] = None,
        description: Optional[str] = None
    ) -> Result[ActionOutcome]:
        """
        Process everything one user action causes.

        Flow: base points -> streaks (or open recoveries) -> milestones ->
        lapsed streaks -> risk -> achievements -> level.

        Args:
            user_id: User ID
            action: UserAction or its name
            occurred_at: When the action happened (defaults to now)
            description: Optional history description

        Returns:
            Success(ActionOutcome) or Failure
        """
        operation = "process_user_action"
        try:
            action = parse_action(action, user_id, operation)
            now = self.clock.now()
            occurred_at = ensure_utc(occurred_at) if occurred_at else now
            activity_date = self.clock.local_date(occurred_at)
            today = self.clock.today()

            changes = ChangeSet(user_id)
            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)
            base_points = ledger.grant(
                resolve_points(action, self.policy),
                action,
                PointsSource.ACTION,
                description,
                always_record=True
            )

            open_recoveries = {
                r.streak_type: r for r in await self.repository.get_active_recoveries(user_id)
            }
            streak_updates: List[StreakUpdateResult] = []
            recovery_results: List[RecoveryActionResult] = []
            recoveries_started: List[StreakRecovery] = []
            celebrations: List[CelebrationEvent] = []

            for streak_type in streak_types_for_action(action):
                recovery = open_recoveries.get(streak_type)
                if recovery is not None:
                    result = await self._feed_recovery(
                        recovery, action, occurred_at, now, activity_date, ledger, changes
                    )
                    recovery_results.append(result)
                    if result.celebration is not None:
                        celebrations.append(result.celebration)
                    if result.recovery.status != RecoveryStatus.FAILED:
                        continue

                existing = await self.repository.get_streak(user_id, streak_type)
                update = track_activity(existing, user_id, streak_type, activity_date, self.policy, now)
                if not update.changed:
                    streak_updates.append(update)
                    continue

                changes.put_streak(update.streak)
                streak_updates.append(update)
                self._record_streak_metrics(update)

                if update.celebration is not None:
                    celebrations.append(update.celebration)
                    ledger.grant(
                        update.celebration.bonus_points,
                        action,
                        PointsSource.MILESTONE,
                        f"{update.celebration.milestone}-period {streak_type.value} milestone"
                    )

                if update.was_broken:
                    recovery = self._start_recovery_for(update.streak, changes, now)
                    if recovery is not None:
                        recoveries_started.append(recovery)
                        result = await self._feed_recovery(
                            recovery, action, occurred_at, now, activity_date, ledger, changes,
                            broken=update.streak
                        )
                        recovery_results.append(result)
                        if result.celebration is not None:
                            celebrations.append(result.celebration)
                    else:
                        restart = restart_streak(update.streak, activity_date)
                        changes.put_streak(restart.streak)
                        streak_updates.append(restart)
                        self._record_streak_metrics(restart)

            stored_active = await self.repository.get_active_streaks(user_id)
            for lapsed in lapsed_streaks(self._merge_streaks(stored_active, changes), today, self.policy):
                broken = mark_streak_broken(lapsed)
                changes.put_streak(broken)
                metrics.record_streak_event(broken.streak_type.value, "broken")

            active_streaks = self._merge_streaks(stored_active, changes)
            risk_analyses = analyze_streaks(active_streaks, today, now, self.policy)
            for analysis in risk_analyses:
                metrics.record_risk(analysis.risk_level.value)

            new_achievements = await self._unlock_earned_achievements(
                user_id, ledger, changes, action, active_streaks
            )
            celebrations.extend(build_achievement_celebration(a, now) for a in new_achievements)

            level_up = ledger.stage(changes)
            if level_up is not None and level_up.celebration is not None:
                celebrations.append(level_up.celebration)

            await changes.commit(self.repository)

            points = PointsResult(
                user_id=user_id,
                action=action,
                points_awarded=base_points,
                bonus_points=ledger.granted - base_points,
                total_points=ledger.total,
                previous_level=level_up.previous_level if level_up else profile.level,
                new_level=level_up.new_level if level_up else profile.level,
                leveled_up=level_up is not None,
                new_achievements=new_achievements,
                celebrations=[level_up.celebration] if level_up and level_up.celebration else [],
            )

            await self._publish(user_id, celebrations)
            await self._schedule(changes.reminders, {})

            logger.info(
                f"Processed {action.value} for user {user_id}: +{ledger.granted} points, "
                f"{len(streak_updates)} streak updates, {len(new_achievements)} achievements"
            )

            return Success(ActionOutcome(
                user_id=user_id,
                action=action,
                occurred_at=occurred_at,
                points=points,
                streak_updates=streak_updates,
                recovery_results=recovery_results,
                recoveries_started=recoveries_started,
                risk_analyses=risk_analyses,
                new_achievements=new_achievements,
                celebrations=celebrations,
            ))

        except Exception as e:
            return self._failure(e, operation, user_id)

    async def _feed_recovery(
        self,
        recovery: StreakRecovery,
        action: UserAction,
        completed_at: datetime,
        now: datetime,
        activity_date: date,
        ledger: _PointsLedger,
        changes: ChangeSet,
        broken: Optional[Streak] = None
    ) -> RecoveryActionResult:
        if broken is None:
            broken = await self.repository.get_streak_by_id(recovery.user_id, recovery.original_streak_id)

        result = apply_recovery_action(
            recovery, broken, action, completed_at, now, activity_date, self.policy
        )
        if result.recovery.version != recovery.version or recovery.id in changes.new_recoveries:
            changes.put_recovery(result.recovery)
        if result.action_processed is not None:
            ledger.grant(
                result.points_awarded,
                action,
                PointsSource.RECOVERY,
                f"Recovery action for {recovery.streak_type.value}"
            )
        if result.new_streak is not None:
            changes.put_streak(result.new_streak)
        self._record_recovery_metrics(result)
        return result

    # ==========================================
    # Points & levels
    # ==========================================

    async def award_points(
        self,
        user_id: str,
        action,
        points: Optional[int] = None,
        description: Optional[str] = None
    ) -> Result[PointsResult]:
        """
        Award points for an action without touching streaks.

        Args:
            user_id: User ID
            action: UserAction or its name
            points: Explicit amount (defaults to the points table; negative is clamped to 0)
            description: Optional history description

        Returns:
            Success(PointsResult) or Failure
        """
        operation = "award_points"
        try:
            action = parse_action(action, user_id, operation)
            now = self.clock.now()
            changes = ChangeSet(user_id)
            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)

            base_points = ledger.grant(
                resolve_points(action, self.policy, points),
                action,
                PointsSource.ACTION,
                description,
                always_record=True
            )

            active_streaks = await self.repository.get_active_streaks(user_id)
            new_achievements = await self._unlock_earned_achievements(
                user_id, ledger, changes, action, active_streaks
            )
            level_up = ledger.stage(changes)

            await changes.commit(self.repository)

            celebrations = [build_achievement_celebration(a, now) for a in new_achievements]
            if level_up is not None and level_up.celebration is not None:
                celebrations.append(level_up.celebration)
            await self._publish(user_id, celebrations)

            logger.info(f"Awarded {ledger.granted} points to user {user_id} for {action.value}")

            return Success(PointsResult(
                user_id=user_id,
                action=action,
                points_awarded=base_points,
                bonus_points=ledger.granted - base_points,
                total_points=ledger.total,
                previous_level=level_up.previous_level if level_up else profile.level,
                new_level=level_up.new_level if level_up else profile.level,
                leveled_up=level_up is not None,
                new_achievements=new_achievements,
                celebrations=celebrations,
            ))

        except Exception as e:
            return self._failure(e, operation, user_id)

    async def get_gamification_profile(self, user_id: str) -> Result[GamificationProfile]:
        """Profile with active streaks and achievements (a fresh profile for new users)"""
        operation = "get_gamification_profile"
        try:
            profile = await self._load_profile(user_id, self.clock.now())
            streaks = await self.repository.get_active_streaks(user_id)
            achievements = await self.repository.get_achievements(user_id)
            return Success(evolve(profile, current_streaks=streaks, achievements=achievements))
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def check_level_up(self, user_id: str) -> Result[Optional[LevelUpResult]]:
        """
        Level-up caused by the user's most recent points operation, if any.

        The most recent operation is every history entry sharing the latest
        timestamp.
        """
        operation = "check_level_up"
        try:
            profile = await self.repository.get_gamification_profile(user_id)
            if profile is None:
                return Success(None)

            history = await self.repository.get_points_history(user_id, limit=HABIT_HISTORY_FETCH)
            if not history:
                return Success(None)

            latest = history[0].earned_at
            last_operation = sum(e.points for e in history if e.earned_at == latest)
            return Success(compare_levels(
                user_id,
                profile.total_points - last_operation,
                profile.total_points,
                self.clock.now()
            ))
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def get_points_history(self, user_id: str, limit: int = 50) -> Result[List[PointsHistoryEntry]]:
        operation = "get_points_history"
        try:
            if limit <= 0:
                raise ValidationError(
                    message="Limit must be positive",
                    field="limit",
                    value=limit,
                    user_id=user_id,
                    operation=operation
                )
            return Success(await self.repository.get_points_history(user_id, limit=limit))
        except Exception as e:
            return self._failure(e, operation, user_id)

    # ==========================================
    # Streaks
    # ==========================================

    async def record_activity(
        self,
        user_id: str,
        streak_type,
        activity_date: Optional[date] = None
    ) -> Result[StreakUpdateResult]:
        """
        Record one activity against one streak type.

        Milestone bonuses reached by the extension are granted. Recoveries
        are not advanced; a broken streak with an open recovery is left for
        the recovery to restore. Use process_user_action for the full flow.
        """
        operation = "record_activity"
        try:
            try:
                streak_type = StreakType(streak_type)
            except ValueError:
                raise ValidationError(
                    message=f"Unknown streak type '{streak_type}'",
                    field="streak_type",
                    value=streak_type,
                    user_id=user_id,
                    operation=operation
                )

            now = self.clock.now()
            activity_date = activity_date or self.clock.today()
            changes = ChangeSet(user_id)

            existing = await self.repository.get_streak(user_id, streak_type)
            recovering = (
                existing is not None and not existing.is_active
                and await self._has_open_recovery(user_id, streak_type)
            )
            if recovering:
                # The recovery seeds the next incarnation
                logger.info(
                    f"User {user_id} {streak_type.value} streak is recovering, activity not restarting it"
                )
                return Success(StreakUpdateResult(streak=existing, previous_count=existing.current_count))

            update = track_activity(existing, user_id, streak_type, activity_date, self.policy, now)

            if update.changed:
                changes.put_streak(update.streak)
                self._record_streak_metrics(update)

            if update.celebration is not None and update.celebration.bonus_points > 0:
                profile = await self._load_profile(user_id, now)
                ledger = _PointsLedger(profile, now)
                ledger.grant(
                    update.celebration.bonus_points,
                    None,
                    PointsSource.MILESTONE,
                    f"{update.celebration.milestone}-period {streak_type.value} milestone"
                )
                ledger.stage(changes)

            await changes.commit(self.repository)

            if update.celebration is not None:
                await self._publish(user_id, [update.celebration])

            return Success(update)

        except Exception as e:
            return self._failure(e, operation, user_id)

    async def get_streak_statistics(self, user_id: str) -> Result[StreakStatistics]:
        operation = "get_streak_statistics"
        try:
            active = await self.repository.get_active_streaks(user_id)
            all_streaks = await self.repository.get_all_user_streaks(user_id)
            recoveries = await self.repository.get_all_recoveries(user_id)
            return Success(compute_streak_statistics(
                active, all_streaks, recoveries, self.clock.today(), self.policy
            ))
        except Exception as e:
            return self._failure(e, operation, user_id)

    # ==========================================
    # Risk & reminders
    # ==========================================

    async def _current_risks(self, user_id: str, changes: ChangeSet) -> List[RiskAnalysis]:
        """Analyses for active streaks; lapsed streaks are staged as broken"""
        today = self.clock.today()
        active = await self.repository.get_active_streaks(user_id)
        for lapsed in lapsed_streaks(active, today, self.policy):
            changes.put_streak(mark_streak_broken(lapsed))
            metrics.record_streak_event(lapsed.streak_type.value, "broken")
        analyses = analyze_streaks(self._merge_streaks(active, changes), today, self.clock.now(), self.policy)
        for analysis in analyses:
            metrics.record_risk(analysis.risk_level.value)
        return analyses

    async def analyze_streak_risks(self, user_id: str) -> Result[List[RiskAnalysis]]:
        """
        Risk analysis for every active streak, most urgent first.

        Streaks idle beyond the lapse horizon are marked BROKEN and left out.
        """
        operation = "analyze_streak_risks"
        try:
            changes = ChangeSet(user_id)
            analyses = await self._current_risks(user_id, changes)
            await changes.commit(self.repository)
            return Success(analyses)
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def schedule_risk_reminders(self, user_id: str) -> Result[List[StreakReminder]]:
        """Create and schedule reminders for at-risk streaks outside their cooldown"""
        operation = "schedule_risk_reminders"
        try:
            now = self.clock.now()
            changes = ChangeSet(user_id)
            analyses = await self._current_risks(user_id, changes)
            reminders = build_risk_reminders(analyses, now)

            by_streak = {a.streak.id: a for a in analyses}
            for reminder in reminders:
                analysis = by_streak[reminder.streak_id]
                stamped = stamp_reminder_sent(analysis.streak, now)
                changes.put_streak(evolve(stamped, risk_level=analysis.risk_level))
                changes.add_reminder(reminder)

            await changes.commit(self.repository)
            await self._schedule(reminders, by_streak)

            logger.info(f"Scheduled {len(reminders)} streak reminders for user {user_id}")
            return Success(reminders)
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def get_active_reminders(self, user_id: str) -> Result[List[StreakReminder]]:
        operation = "get_active_reminders"
        try:
            return Success(await self.repository.get_active_reminders(user_id))
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def acknowledge_reminder(self, user_id: str, reminder_id: str) -> Result[StreakReminder]:
        operation = "acknowledge_reminder"
        try:
            reminder = await self.repository.mark_reminder_as_read(user_id, reminder_id)
            if reminder is None:
                raise RecordNotFoundError(
                    message=f"Reminder {reminder_id} not found for user {user_id}",
                    record_type="reminder",
                    record_id=reminder_id,
                    user_id=user_id,
                    operation=operation
                )
            return Success(reminder)
        except Exception as e:
            return self._failure(e, operation, user_id)

    # ==========================================
    # Recovery
    # ==========================================

    async def initiate_streak_recovery(self, user_id: str, streak_id: str) -> Result[StreakRecovery]:
        """
        Open a recovery for a broken streak.

        Returns the existing open recovery unchanged if there is one.
        Conflict failures carry the current state.
        """
        operation = "initiate_streak_recovery"
        try:
            now = self.clock.now()
            streak = await self.repository.get_streak_by_id(user_id, streak_id)
            if streak is None:
                raise RecordNotFoundError(
                    message=f"Streak {streak_id} not found for user {user_id}",
                    record_type="streak",
                    record_id=streak_id,
                    user_id=user_id,
                    operation=operation
                )

            existing = [
                r for r in await self.repository.get_all_recoveries(user_id)
                if r.original_streak_id == streak.id
            ]

            expired = [expire_recovery(r, self.policy) for r in existing if is_expired(r, now, self.policy)]
            if expired:
                changes = ChangeSet(user_id)
                for recovery in expired:
                    changes.put_recovery(recovery)
                    metrics.record_recovery_event("failed")
                await changes.commit(self.repository)
                expired_ids = {r.id for r in expired}
                existing = [r for r in existing if r.id not in expired_ids] + expired

            recovery, created = initiate_recovery(streak, existing, now, self.policy)
            if not created:
                return Success(recovery)

            changes = ChangeSet(user_id)
            changes.add_recovery(recovery)
            reminders = build_recovery_reminders(recovery)
            for reminder in reminders:
                changes.add_reminder(reminder)
            await changes.commit(self.repository)

            metrics.record_recovery_event("initiated")
            await self._schedule(reminders, {})
            return Success(recovery)

        except Exception as e:
            return self._failure(e, operation, user_id)

    async def process_recovery_action(
        self,
        user_id: str,
        recovery_id: str,
        action,
        completed_at: Optional[datetime] = None
    ) -> Result[RecoveryActionResult]:
        """
        Record a qualifying action against a recovery.

        Closed recoveries come back unchanged with action_processed=None.
        The required-th action completes the recovery and seeds a new streak.
        """
        operation = "process_recovery_action"
        try:
            action = parse_action(action, user_id, operation)
            now = self.clock.now()
            completed_at = ensure_utc(completed_at) if completed_at else now

            recovery = await self.repository.get_streak_recovery(user_id, recovery_id)
            if recovery is None:
                raise RecordNotFoundError(
                    message=f"Recovery {recovery_id} not found for user {user_id}",
                    record_type="recovery",
                    record_id=recovery_id,
                    user_id=user_id,
                    operation=operation
                )

            changes = ChangeSet(user_id)
            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)
            result = await self._feed_recovery(
                recovery, action, completed_at, now, self.clock.local_date(completed_at), ledger, changes
            )
            ledger.stage(changes)

            await changes.commit(self.repository)

            if result.celebration is not None:
                await self._publish(user_id, [result.celebration])

            return Success(result)

        except Exception as e:
            return self._failure(e, operation, user_id)

    async def expire_recoveries(self, user_id: str) -> Result[List[StreakRecovery]]:
        """Fail every open recovery past its window"""
        operation = "expire_recoveries"
        try:
            now = self.clock.now()
            changes = ChangeSet(user_id)
            expired = []
            for recovery in await self.repository.get_active_recoveries(user_id):
                if is_expired(recovery, now, self.policy):
                    failed = expire_recovery(recovery, self.policy)
                    changes.put_recovery(failed)
                    expired.append(failed)
                    metrics.record_recovery_event("failed")
            await changes.commit(self.repository)
            return Success(expired)
        except Exception as e:
            return self._failure(e, operation, user_id)

    # ==========================================
    # Celebrations
    # ==========================================

    async def celebrate_streak_milestone(self, user_id: str, streak: Streak) -> Result[CelebrationEvent]:
        """
        Celebration for a streak's current count.

        The bonus is granted only the first time a milestone is celebrated in
        an incarnation; repeats and non-milestone counts carry no bonus.
        """
        operation = "celebrate_streak_milestone"
        try:
            now = self.clock.now()
            stored = await self.repository.get_streak_by_id(user_id, streak.id)
            if stored is None:
                raise RecordNotFoundError(
                    message=f"Streak {streak.id} not found for user {user_id}",
                    record_type="streak",
                    record_id=streak.id,
                    user_id=user_id,
                    operation=operation
                )

            celebration, updated = fire_streak_milestone(stored, self.policy, now)
            if celebration is None:
                return Success(build_streak_celebration(stored, self.policy, now, award_bonus=False))

            changes = ChangeSet(user_id)
            changes.put_streak(evolve(updated, version=stored.version + 1))
            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)
            ledger.grant(
                celebration.bonus_points,
                None,
                PointsSource.MILESTONE,
                f"{celebration.milestone}-period {stored.streak_type.value} milestone"
            )
            ledger.stage(changes)
            await changes.commit(self.repository)

            await self._publish(user_id, [celebration])
            return Success(celebration)

        except Exception as e:
            return self._failure(e, operation, user_id)

    async def record_goal_progress(
        self,
        user_id: str,
        goal_id: str,
        previous_fraction: float,
        current_fraction: float
    ) -> Result[List[CelebrationEvent]]:
        """
        Celebrate goal milestones (10/25/50/75/100%) crossed by a progress update.

        Each crossed milestone grants round(fraction * 100) points; reaching
        100% unlocks GOAL_ACHIEVER.
        """
        operation = "record_goal_progress"
        try:
            for field, value in (("previous_fraction", previous_fraction), ("current_fraction", current_fraction)):
                if value < 0:
                    raise ValidationError(
                        message=f"{field} must be >= 0",
                        field=field,
                        value=value,
                        user_id=user_id,
                        operation=operation
                    )

            now = self.clock.now()
            crossed = crossed_goal_milestones(previous_fraction, min(current_fraction, 1.0))
            if not crossed:
                return Success([])

            changes = ChangeSet(user_id)
            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)
            celebrations = []
            for milestone in crossed:
                celebration = build_goal_celebration(user_id, goal_id, milestone, now)
                celebrations.append(celebration)
                ledger.grant(
                    celebration.bonus_points,
                    UserAction.UPDATE_GOAL,
                    PointsSource.GOAL_PROGRESS,
                    f"Goal {goal_id} reached {celebration.milestone}%"
                )

            active_streaks = await self.repository.get_active_streaks(user_id)
            new_achievements = await self._unlock_earned_achievements(
                user_id, ledger, changes, UserAction.UPDATE_GOAL, active_streaks,
                goal_completed=crossed[-1] >= 1.0
            )
            celebrations.extend(build_achievement_celebration(a, now) for a in new_achievements)
            level_up = ledger.stage(changes)
            if level_up is not None and level_up.celebration is not None:
                celebrations.append(level_up.celebration)

            await changes.commit(self.repository)
            await self._publish(user_id, celebrations)
            return Success(celebrations)

        except Exception as e:
            return self._failure(e, operation, user_id)

    # ==========================================
    # Micro-wins & achievements
    # ==========================================

    async def generate_personalized_micro_wins(
        self,
        user_id: str,
        limit: int = 5
    ) -> Result[List[MicroWinOpportunity]]:
        operation = "generate_personalized_micro_wins"
        try:
            if limit <= 0:
                raise ValidationError(
                    message="Limit must be positive",
                    field="limit",
                    value=limit,
                    user_id=user_id,
                    operation=operation
                )

            now = self.clock.now()
            today = self.clock.today()
            active = await self.repository.get_active_streaks(user_id)
            analyses = analyze_streaks(active, today, now, self.policy)
            recoveries = [
                r for r in await self.repository.get_active_recoveries(user_id)
                if not is_expired(r, now, self.policy)
            ]
            history = await self.repository.get_points_history(user_id, limit=HABIT_HISTORY_FETCH)

            return Success(build_micro_wins(analyses, recoveries, history, limit, user_id))
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def detect_and_award_micro_wins(
        self,
        user_id: str,
        action,
        context_data: Optional[Dict[str, Any]] = None
    ) -> Result[MicroWinResult]:
        """Award micro-win points earned by a completed action (streaks are not touched)"""
        operation = "detect_and_award_micro_wins"
        try:
            action = parse_action(action, user_id, operation)
            now = self.clock.now()
            wins = detect_action_micro_wins(action, context_data)

            changes = ChangeSet(user_id)
            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)
            celebrations = []
            for win in wins:
                ledger.grant(win.points, action, PointsSource.MICRO_WIN, win.title_key)
                celebrations.append(build_micro_win_celebration(user_id, win.title_key, win.points, now))

            level_up = ledger.stage(changes)
            if level_up is not None and level_up.celebration is not None:
                celebrations.append(level_up.celebration)
            await changes.commit(self.repository)
            await self._publish(user_id, celebrations)

            return Success(MicroWinResult(
                micro_wins=wins,
                total_points=ledger.granted,
                points_result=PointsResult(
                    user_id=user_id,
                    action=action,
                    points_awarded=0,
                    bonus_points=ledger.granted,
                    total_points=ledger.total,
                    previous_level=level_up.previous_level if level_up else profile.level,
                    new_level=level_up.new_level if level_up else profile.level,
                    leveled_up=level_up is not None,
                ),
                celebrations=celebrations,
            ))
        except Exception as e:
            return self._failure(e, operation, user_id)

    async def unlock_achievement(self, user_id: str, achievement_type) -> Result[Achievement]:
        """
        Unlock an achievement (idempotent).

        A repeat call returns the stored record and grants nothing.
        """
        operation = "unlock_achievement"
        try:
            try:
                achievement_type = AchievementType(achievement_type)
            except ValueError:
                raise ValidationError(
                    message=f"Unknown achievement '{achievement_type}'",
                    field="achievement_type",
                    value=achievement_type,
                    user_id=user_id,
                    operation=operation
                )

            existing = await self.repository.get_achievement(user_id, achievement_type)
            if existing is not None:
                return Success(existing)

            now = self.clock.now()
            achievement = build_achievement(user_id, achievement_type, now)
            changes = ChangeSet(user_id)
            changes.add_achievement(achievement)

            profile = await self._load_profile(user_id, now)
            ledger = _PointsLedger(profile, now)
            ledger.grant(
                achievement.points_awarded,
                None,
                PointsSource.ACHIEVEMENT,
                f"Achievement unlocked: {achievement.title}"
            )
            level_up = ledger.stage(changes)
            await changes.commit(self.repository)

            metrics.record_achievement(achievement_type.value)
            celebrations = [build_achievement_celebration(achievement, now)]
            if level_up is not None and level_up.celebration is not None:
                celebrations.append(level_up.celebration)
            await self._publish(user_id, celebrations)

            return Success(achievement)
        except Exception as e:
            return self._failure(e, operation, user_id)

    # ==========================================
    # User data
    # ==========================================

    async def delete_user_data(self, user_id: str) -> Result[None]:
        operation = "delete_user_data"
        try:
            await self.repository.delete_user_data(user_id)
            logger.info(f"Deleted engagement data for user {user_id}")
            return Success(None)
        except Exception as e:
            return self._failure(e, operation, user_id)
