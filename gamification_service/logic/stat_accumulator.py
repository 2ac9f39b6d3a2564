"""
Stat accumulation for gamification-service

Applies one operational action to a UserStats snapshot:
- counter increments
- base XP per action kind (scaled by the global XP rate)
- running averages (quality score, resolution time)
- daily streak
- per-module contribution counts
"""
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo
import logging
import math

from gamification_service.config import get_settings
from gamification_service.exceptions import InvalidActionError
from gamification_service.schemas import ActionType, GamificationAction, Severity, UserStats

logger = logging.getLogger(__name__)


# XP awarded per action
ACTION_POINTS = {
    # Incidents
    'CREATE_INCIDENT': 10,
    'RESOLVE_INCIDENT': 25,
    'RESOLVE_CRITICAL_INCIDENT': 40,

    # Maintenance
    'CREATE_MAINTENANCE': 10,
    'COMPLETE_MAINTENANCE': 20,
    'EXPEDITE_MAINTENANCE': 15,  # Bonus when completed before schedule

    # Quality
    'COMPLETE_QUALITY_CHECK': 30,
    'HIGH_QUALITY_SCORE': 20,  # Bonus above HIGH_QUALITY_THRESHOLD

    # Lost & found
    'REGISTER_LOST_ITEM': 5,
    'RETURN_LOST_ITEM': 15,

    # Procedures
    'CREATE_PROCEDURE': 25,
    'READ_PROCEDURE': 5,
    'VALIDATE_PROCEDURE': 10,

    # General
    'FIRST_LOGIN_OF_DAY': 5,
    'CONSECUTIVE_DAY_LOGIN': 2,
    'WEEKLY_GOAL_COMPLETION': 50,
    'HELP_COLLEAGUE': 15,
    'RECEIVE_THANKS': 10,
}

CRITICAL_REPORT_MULTIPLIER = 1.5

# Application module credited by each action (mod8 suppliers / mod9 settings only via action.moduleId)
ACTION_MODULES = {
    ActionType.LOGIN: 'mod1',
    ActionType.CREATE_INCIDENT: 'mod2',
    ActionType.RESOLVE_INCIDENT: 'mod2',
    ActionType.CREATE_MAINTENANCE: 'mod3',
    ActionType.COMPLETE_MAINTENANCE: 'mod3',
    ActionType.SUBMIT_QUALITY_SCORE: 'mod4',
    ActionType.REGISTER_LOST_ITEM: 'mod5',
    ActionType.RETURN_LOST_ITEM: 'mod5',
    ActionType.CREATE_PROCEDURE: 'mod6',
    ActionType.READ_PROCEDURE: 'mod6',
    ActionType.VALIDATE_PROCEDURE: 'mod6',
    ActionType.HELP_COLLEAGUE: 'mod7',
    ActionType.RECEIVE_THANKS: 'mod7',
}

EARLY_LOGIN_HOUR = 7
LATE_LOGIN_HOUR = 22


class _Context:
    """Per-call values shared by the action handlers"""

    def __init__(self, local_time: datetime, high_quality_threshold: float):
        self.local_time = local_time
        self.high_quality_threshold = high_quality_threshold


# ============= HANDLERS =============
# Each handler mutates the (already copied) stats and returns base XP.

def _create_incident(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.incidentsCreated += 1
    xp = ACTION_POINTS['CREATE_INCIDENT']
    if action.severity == Severity.CRITICAL:
        xp *= CRITICAL_REPORT_MULTIPLIER
    return xp


def _resolve_incident(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.incidentsResolved += 1
    if action.severity == Severity.CRITICAL:
        stats.criticalIncidentsResolved += 1
        xp = ACTION_POINTS['RESOLVE_CRITICAL_INCIDENT']
    else:
        xp = ACTION_POINTS['RESOLVE_INCIDENT']

    if action.resolutionTime is not None:
        n = stats.resolutionTimeSamples
        stats.avgResolutionTime = (stats.avgResolutionTime * n + action.resolutionTime) / (n + 1)
        stats.resolutionTimeSamples = n + 1
    return xp


def _create_maintenance(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.maintenanceCreated += 1
    return ACTION_POINTS['CREATE_MAINTENANCE']


def _complete_maintenance(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.maintenanceCompleted += 1
    xp = ACTION_POINTS['COMPLETE_MAINTENANCE']
    if action.beforeSchedule:
        stats.quickMaintenanceCompleted += 1
        xp += ACTION_POINTS['EXPEDITE_MAINTENANCE']
    return xp


def _submit_quality_score(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    score = action.score
    n = stats.qualitySubmissionCount
    stats.avgQualityScore = min(100.0, max(0.0, (stats.avgQualityScore * n + score) / (n + 1)))
    stats.qualitySubmissionCount = n + 1

    xp = ACTION_POINTS['COMPLETE_QUALITY_CHECK']
    if score > ctx.high_quality_threshold:
        stats.highQualityChecks += 1
        xp += ACTION_POINTS['HIGH_QUALITY_SCORE']
    return xp


def _register_lost_item(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.lostItemsRegistered += 1
    return ACTION_POINTS['REGISTER_LOST_ITEM']


def _return_lost_item(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.lostItemsReturned += 1
    return ACTION_POINTS['RETURN_LOST_ITEM']


def _create_procedure(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.proceduresCreated += 1
    return ACTION_POINTS['CREATE_PROCEDURE']


def _read_procedure(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.proceduresRead += 1
    return ACTION_POINTS['READ_PROCEDURE']


def _validate_procedure(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.proceduresValidated += 1
    return ACTION_POINTS['VALIDATE_PROCEDURE']


def _login(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    hour = ctx.local_time.hour
    if hour < EARLY_LOGIN_HOUR:
        stats.earlyLogins += 1
    elif hour >= LATE_LOGIN_HOUR:
        stats.lateLogins += 1

    # A login day counts once; late deliveries for a counted day earn nothing
    login_day = ctx.local_time.date()
    gap = day_gap(stats.lastLoginDate, login_day)
    if gap is not None and gap <= 0:
        return 0

    stats.totalLogins += 1
    stats.lastLoginDate = login_day.isoformat()
    xp = ACTION_POINTS['FIRST_LOGIN_OF_DAY']
    if gap == 1:
        stats.consecutiveLogins += 1
        xp += ACTION_POINTS['CONSECUTIVE_DAY_LOGIN']
    else:
        stats.consecutiveLogins = 1
    return xp


def _help_colleague(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.helpProvided += 1
    return ACTION_POINTS['HELP_COLLEAGUE']


def _receive_thanks(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.thanksReceived += 1
    return ACTION_POINTS['RECEIVE_THANKS']


def _complete_weekly_goal(stats: UserStats, action: GamificationAction, ctx: _Context) -> float:
    stats.weeklyGoalsCompleted += 1
    if action.xpReward is not None:
        return action.xpReward
    return ACTION_POINTS['WEEKLY_GOAL_COMPLETION']


ACTION_HANDLERS: Dict[ActionType, Callable[[UserStats, GamificationAction, _Context], float]] = {
    ActionType.CREATE_INCIDENT: _create_incident,
    ActionType.RESOLVE_INCIDENT: _resolve_incident,
    ActionType.CREATE_MAINTENANCE: _create_maintenance,
    ActionType.COMPLETE_MAINTENANCE: _complete_maintenance,
    ActionType.SUBMIT_QUALITY_SCORE: _submit_quality_score,
    ActionType.REGISTER_LOST_ITEM: _register_lost_item,
    ActionType.RETURN_LOST_ITEM: _return_lost_item,
    ActionType.CREATE_PROCEDURE: _create_procedure,
    ActionType.READ_PROCEDURE: _read_procedure,
    ActionType.VALIDATE_PROCEDURE: _validate_procedure,
    ActionType.LOGIN: _login,
    ActionType.HELP_COLLEAGUE: _help_colleague,
    ActionType.RECEIVE_THANKS: _receive_thanks,
    ActionType.COMPLETE_WEEKLY_GOAL: _complete_weekly_goal,
}


# ============= STREAK =============

def local_datetime(moment: datetime, tz_name: str) -> datetime:
    """
    Convert a timestamp to the business timezone

    Naive datetimes are treated as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))


def day_gap(last_activity_date: Optional[str], activity_day: date) -> Optional[int]:
    """Days between the last recorded activity and this one (None if never active)"""
    if not last_activity_date:
        return None
    return (activity_day - date.fromisoformat(last_activity_date)).days


def update_streak(stats: UserStats, activity_day: date, gap: Optional[int]) -> None:
    """
    Streak rules:
    - first activity ever: 1
    - same day: unchanged
    - next day: +1
    - missed one or more days: reset to 1
    - event older than the last activity: unchanged
    """
    if gap is None:
        stats.currentStreak = 1
    elif gap <= 0:
        return
    elif gap == 1:
        stats.currentStreak += 1
    else:
        logger.info(f"User {stats.userId} broke streak of {stats.currentStreak} days")
        stats.currentStreak = 1

    stats.lastActivityDate = activity_day.isoformat()
    stats.longestStreak = max(stats.longestStreak, stats.currentStreak)


# ============= ENTRY POINT =============

def validate_action(action: GamificationAction) -> None:
    """
    Fail fast on actions that bypassed model validation

    Raises:
        InvalidActionError: unknown kind or malformed score
    """
    if action.type not in ACTION_HANDLERS:
        raise InvalidActionError(f"Unknown action type: {action.type}")

    if action.type == ActionType.SUBMIT_QUALITY_SCORE:
        score = action.score
        if not isinstance(score, (int, float)) or not math.isfinite(score) or not 0 <= score <= 100:
            raise InvalidActionError(f"Quality score must be between 0 and 100, got: {score}")


def apply(
    stats: UserStats,
    action: GamificationAction,
    now: Optional[datetime] = None,
    xp_rate: Optional[float] = None,
    high_quality_threshold: Optional[float] = None,
    tz_name: Optional[str] = None
) -> UserStats:
    """
    Apply one action to a stats snapshot

    Args:
        stats: Current snapshot (left untouched)
        action: Action to apply
        now: Fallback timestamp when the action carries none (defaults to now)
        xp_rate: XP multiplier (defaults to settings.XP_RATE_MULTIPLIER)
        high_quality_threshold: Score above which a check is "high quality"
        tz_name: Timezone used to decide calendar days

    Returns:
        A new UserStats with counters, XP and streak updated

    Raises:
        InvalidActionError: If the action is unknown or malformed
    """
    validate_action(action)

    settings = get_settings()
    if xp_rate is None:
        xp_rate = settings.XP_RATE_MULTIPLIER
    if high_quality_threshold is None:
        high_quality_threshold = settings.HIGH_QUALITY_THRESHOLD
    if tz_name is None:
        tz_name = settings.BUSINESS_TIMEZONE

    moment = action.timestamp or now or datetime.now(timezone.utc)
    local_time = local_datetime(moment, tz_name)
    activity_day = local_time.date()
    gap = day_gap(stats.lastActivityDate, activity_day)

    new_stats = stats.model_copy(deep=True)
    ctx = _Context(local_time=local_time, high_quality_threshold=high_quality_threshold)

    base_xp = ACTION_HANDLERS[action.type](new_stats, action, ctx)
    xp_gained = max(0, math.floor(base_xp * xp_rate))
    new_stats.totalXP += xp_gained

    update_streak(new_stats, activity_day, gap)

    module_id = action.moduleId or ACTION_MODULES.get(action.type)
    if module_id:
        new_stats.contributionsPerModule[module_id] = new_stats.contributionsPerModule.get(module_id, 0) + 1

    new_stats.lastUpdated = moment.isoformat()

    logger.debug(
        f"Applied {action.type.value} to user {stats.userId}: +{xp_gained} XP "
        f"(total {new_stats.totalXP}, streak {new_stats.currentStreak})"
    )

    return new_stats


def initialize_user_stats(user_id: str, now: Optional[datetime] = None) -> UserStats:
    """Zeroed record for a first-time user"""
    created = (now or datetime.now(timezone.utc)).isoformat()
    return UserStats(userId=user_id, createdAt=created, lastUpdated=created)
