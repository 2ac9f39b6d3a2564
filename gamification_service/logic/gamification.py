"""
Gamification facade

Orchestrates one action end to end (load, apply, challenge rewards, badges,
versioned write) and exposes read-only projections for the UI.
"""
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union
import logging

from gamification_service.config import Settings, get_settings
from gamification_service.dynamo import StatsRepository
from gamification_service.exceptions import StatsConflictError
from gamification_service.logic import badge_evaluator, challenge_tracker, levels, ranks
from gamification_service.logic.stat_accumulator import (
    apply,
    initialize_user_stats,
    local_datetime,
    validate_action,
)
from gamification_service.schemas import (
    ActionResult,
    ActionType,
    BadgeCategory,
    BadgeCollection,
    BadgeView,
    Challenge,
    ChallengeOverview,
    GamificationAction,
    LeaderboardEntry,
    LevelStatus,
    ProfileSummary,
    RankStatus,
    UserStats,
)

logger = logging.getLogger(__name__)


class GamificationFacade:
    """Entry point used by the HTTP routers and the event listeners."""

    def __init__(self, repository: Optional[StatsRepository] = None, settings: Optional[Settings] = None):
        self.repository = repository or StatsRepository()
        self.settings = settings or get_settings()

    # ============= WRITE PATH =============

    def perform_action(
        self,
        user_id: str,
        action: GamificationAction,
        idempotency_key: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ActionResult:
        """
        Apply an action for a user and persist the result.

        Args:
            user_id: Staff member
            action: Operational event
            idempotency_key: Caller id of the event; a key already processed is a no-op
            now: Fallback timestamp for actions without one

        Returns:
            ActionResult; updatedStats is what was committed

        Raises:
            InvalidActionError: Malformed action (nothing loaded or written)
            StatsConflictError: Still conflicting after MAX_WRITE_RETRIES retries
            PersistenceError: Store unavailable (nothing committed)
        """
        validate_action(action)

        if not self.settings.GAMIFICATION_ENABLED:
            logger.info(f"Gamification disabled, ignoring {action.type.value} for user {user_id}")
            return ActionResult(updatedStats=self.get_stats(user_id))

        moment = now or datetime.now(timezone.utc)
        attempts = self.settings.MAX_WRITE_RETRIES + 1
        attempt = 0

        while True:
            attempt += 1
            current = self.repository.get(user_id)
            expected_version = current.version if current else 0
            old_stats = current or initialize_user_stats(user_id, moment)

            if idempotency_key and idempotency_key in old_stats.processedActionKeys:
                logger.info(f"Action {idempotency_key} already processed for user {user_id}, skipping")
                return ActionResult(updatedStats=old_stats, replayed=True)

            result = self._compute(old_stats, action, idempotency_key, moment)

            try:
                stored = self.repository.put(result.updatedStats, expected_version)
            except StatsConflictError:
                if attempt == attempts:
                    logger.error(f"Giving up on user {user_id} after {attempts} conflicting writes")
                    raise
                logger.warning(f"Write conflict for user {user_id} (attempt {attempt}/{attempts}), retrying")
                continue

            logger.info(
                f"User {user_id} performed {action.type.value}: +{result.xpGained} XP, "
                f"+{result.challengeXp} challenge XP, {len(result.newBadges)} new badges"
            )
            return result.model_copy(update={'updatedStats': stored})

    def _compute(
        self,
        old_stats: UserStats,
        action: GamificationAction,
        idempotency_key: Optional[str],
        moment: datetime
    ) -> ActionResult:
        """Pure part of perform_action: new snapshot plus what changed"""
        apply_kwargs = dict(
            now=moment,
            xp_rate=self.settings.XP_RATE_MULTIPLIER,
            high_quality_threshold=self.settings.HIGH_QUALITY_THRESHOLD,
            tz_name=self.settings.BUSINESS_TIMEZONE,
        )

        new_stats = apply(old_stats, action, **apply_kwargs)
        xp_gained = new_stats.totalXP - old_stats.totalXP

        # Challenges are judged on (old, new) only; rewards below never feed back into this list
        day = local_datetime(action.timestamp or moment, self.settings.BUSINESS_TIMEZONE).date()
        already_done = set(old_stats.completedChallenges)
        completed = [
            challenge
            for challenge in challenge_tracker.completed_challenges(
                challenge_tracker.generate_weekly_challenges(day), old_stats, new_stats
            )
            if challenge_tracker.completion_key(day, challenge.id) not in already_done
        ]

        challenge_xp = 0
        for challenge in completed:
            before = new_stats.totalXP
            reward = GamificationAction(
                type=ActionType.COMPLETE_WEEKLY_GOAL,
                xpReward=challenge.xpReward,
                timestamp=action.timestamp,
            )
            new_stats = apply(new_stats, reward, **apply_kwargs)
            new_stats.completedChallenges.append(challenge_tracker.completion_key(day, challenge.id))
            challenge_xp += new_stats.totalXP - before
            logger.info(f"User {old_stats.userId} completed challenge {challenge.id} (+{challenge.xpReward} XP)")

        new_badges = badge_evaluator.diff_new_badges(old_stats, new_stats, old_stats.badges)
        new_stats.badges.extend(badge.id for badge in new_badges)

        if idempotency_key:
            keys = new_stats.processedActionKeys + [idempotency_key]
            new_stats.processedActionKeys = keys[-self.settings.IDEMPOTENCY_WINDOW:]

        level_up = levels.calculate_level(new_stats.totalXP) > levels.calculate_level(old_stats.totalXP)
        if level_up:
            logger.info(f"User {old_stats.userId} reached level {levels.calculate_level(new_stats.totalXP)}")

        return ActionResult(
            updatedStats=new_stats,
            xpGained=xp_gained,
            challengeXp=challenge_xp,
            newBadges=new_badges,
            completedChallenges=completed,
            levelUp=level_up,
        )

    # ============= READ API =============

    def get_stats(self, user_id: str) -> UserStats:
        """Stored stats, or a zeroed record (not persisted) for unknown users"""
        return self.repository.get(user_id) or initialize_user_stats(user_id)

    def get_level(self, user_id: str) -> LevelStatus:
        return levels.level_for(self.get_stats(user_id).totalXP)

    def get_rank(self, user_id: str) -> RankStatus:
        return ranks.rank_for(ranks.points_for(self.get_stats(user_id)))

    def get_badges(self, user_id: str) -> BadgeCollection:
        stats = self.get_stats(user_id)
        return self._badge_collection(stats, badge_evaluator.visible_badges(stats))

    def get_badge_gallery(self, user_id: str) -> BadgeCollection:
        stats = self.get_stats(user_id)
        return self._badge_collection(stats, badge_evaluator.badge_gallery(stats))

    def get_badges_by_category(
        self,
        user_id: str,
        category: Optional[Union[BadgeCategory, str]] = None
    ) -> Union[List[BadgeView], Dict[str, List[BadgeView]]]:
        """
        Visible badges of one category, or all of them grouped when category is None.

        Raises:
            ValueError: unknown category
        """
        stats = self.get_stats(user_id)
        if category is None:
            return badge_evaluator.group_by_category(badge_evaluator.visible_badges(stats))
        return badge_evaluator.badges_for_category(stats, category)

    def get_challenges(self, user_id: str, today: Optional[date] = None) -> ChallengeOverview:
        """This week's catalog with the user's progress"""
        if today is None:
            today = local_datetime(datetime.now(timezone.utc), self.settings.BUSINESS_TIMEZONE).date()
        stats = self.get_stats(user_id)
        challenges: List[Challenge] = challenge_tracker.generate_weekly_challenges(today)

        return ChallengeOverview(
            weekKey=challenge_tracker.week_key(today),
            challenges=challenge_tracker.challenge_views(challenges, stats, today),
            progress=challenge_tracker.progress_for(challenges, stats),
        )

    def get_profile_summary(self, user_id: str) -> ProfileSummary:
        stats = self.get_stats(user_id)
        return ProfileSummary(
            userId=stats.userId,
            totalXP=stats.totalXP,
            level=levels.level_for(stats.totalXP),
            rank=ranks.rank_for(ranks.points_for(stats)),
            badgesEarned=len(stats.badges),
            badgesAvailable=badge_evaluator.total_available(),
            currentStreak=stats.currentStreak,
            longestStreak=stats.longestStreak,
        )

    def get_leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """Users by points, highest first (ties by userId)"""
        limit = limit or self.settings.LEADERBOARD_LIMIT
        all_stats = sorted(self.repository.scan(), key=lambda s: (-ranks.points_for(s), s.userId))

        return [
            LeaderboardEntry(
                userId=stats.userId,
                points=ranks.points_for(stats),
                rank=ranks.rank_for(ranks.points_for(stats)).rank,
                level=levels.calculate_level(stats.totalXP),
                badgeCount=len(stats.badges),
            )
            for stats in all_stats[:limit]
        ]

    @staticmethod
    def _badge_collection(stats: UserStats, views: List[BadgeView]) -> BadgeCollection:
        available = badge_evaluator.total_available()
        earned_visible = sum(1 for view in views if view.earned and not view.hidden)
        return BadgeCollection(
            badges=views,
            totalEarned=len(stats.badges),
            totalAvailable=available,
            progressPercentage=round(earned_visible / available * 100, 1) if available else 0.0,
        )


_facade: Optional[GamificationFacade] = None


def get_facade() -> GamificationFacade:
    """Shared facade, created on first use"""
    global _facade
    if _facade is None:
        _facade = GamificationFacade()
    return _facade
