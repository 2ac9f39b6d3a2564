"""
Weekly challenges

Challenges run Sunday to Saturday. A challenge is complete once the stat it
targets reaches `target`; progress is derived from stats and never stored.
"""
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Sequence
import logging

from gamification_service.schemas import Challenge, ChallengeView, UserStats

logger = logging.getLogger(__name__)


def week_start(today: date) -> date:
    """Sunday of the week containing `today`"""
    # date.weekday(): Monday=0 ... Sunday=6
    return today - timedelta(days=(today.weekday() + 1) % 7)


def week_key(today: date) -> str:
    return week_start(today).isoformat()


def completion_key(today: date, challenge_id: str) -> str:
    """Key stored in UserStats.completedChallenges"""
    return f"{week_key(today)}:{challenge_id}"


def generate_weekly_challenges(today: date) -> List[Challenge]:
    """Challenge catalog for the week containing `today`"""
    start = week_start(today)
    end = start + timedelta(days=6)

    return [
        Challenge(
            id='weekly_incidents',
            title='Résolution Efficace',
            description='Résoudre 5 incidents cette semaine',
            icon='🚨',
            target=5,
            xpReward=100,
            metric='incidentsResolved',
            moduleId='mod2',
            startDate=start,
            endDate=end,
        ),
        Challenge(
            id='weekly_maintenance',
            title='Technicien de la Semaine',
            description='Compléter 3 maintenances cette semaine',
            icon='🔧',
            target=3,
            xpReward=80,
            metric='maintenanceCompleted',
            moduleId='mod3',
            startDate=start,
            endDate=end,
        ),
        Challenge(
            id='weekly_quality',
            title='Excellence Qualité',
            description='Effectuer 2 contrôles qualité avec un score > 90%',
            icon='📋',
            target=2,
            xpReward=120,
            metric='highQualityChecks',
            moduleId='mod4',
            startDate=start,
            endDate=end,
        ),
        Challenge(
            id='weekly_login',
            title='Présence Assidue',
            description='Se connecter 5 jours de suite',
            icon='📆',
            target=5,
            xpReward=50,
            metric='consecutiveLogins',
            startDate=start,
            endDate=end,
        ),
        Challenge(
            id='weekly_procedures',
            title='Lecteur Informé',
            description='Lire et valider 3 procédures cette semaine',
            icon='📚',
            target=3,
            xpReward=75,
            metric='proceduresValidated',
            moduleId='mod6',
            startDate=start,
            endDate=end,
        ),
    ]


def _current_count(challenge: Challenge, stats: UserStats) -> float:
    return getattr(stats, challenge.metric)


def challenge_progress(challenge: Challenge, stats: UserStats) -> int:
    """
    Percentage toward the target, 0-100, ties rounded half up.

    Returns 0 if the stat cannot be read.
    """
    try:
        ratio = Decimal(str(_current_count(challenge, stats))) / Decimal(challenge.target) * 100
    except Exception:
        logger.error(f"Error computing progress of challenge {challenge.id} for user {stats.userId}", exc_info=True)
        return 0

    progress = int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    return min(100, max(0, progress))


def progress_for(challenges: Sequence[Challenge], stats: UserStats) -> Dict[str, int]:
    return {challenge.id: challenge_progress(challenge, stats) for challenge in challenges}


def is_completed(challenge: Challenge, stats: UserStats) -> bool:
    try:
        return _current_count(challenge, stats) >= challenge.target
    except Exception:
        logger.error(f"Error evaluating challenge {challenge.id} for user {stats.userId}", exc_info=True)
        return False


def completed_challenges(
    challenges: Sequence[Challenge],
    old_stats: UserStats,
    new_stats: UserStats
) -> List[Challenge]:
    """
    Challenges whose condition holds for new_stats but not for old_stats.

    Only the two given snapshots are evaluated; applying the rewards is up to
    the caller.
    """
    return [
        challenge for challenge in challenges
        if is_completed(challenge, new_stats) and not is_completed(challenge, old_stats)
    ]


def challenge_views(
    challenges: Sequence[Challenge],
    stats: UserStats,
    today: date
) -> List[ChallengeView]:
    """Catalog entries with progress and the completed flag for this week"""
    done = set(stats.completedChallenges)
    views = []
    for challenge in challenges:
        data = challenge.model_dump()
        data.pop('metric')
        views.append(ChallengeView(
            **data,
            progress=challenge_progress(challenge, stats),
            completed=completion_key(today, challenge.id) in done,
        ))
    return views
