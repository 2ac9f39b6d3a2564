"""
Gamification API endpoints

Handlers are plain `def` so FastAPI runs the blocking boto3 calls in its
threadpool.
"""
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from gamification_service.exceptions import InvalidActionError, PersistenceError, StatsConflictError
from gamification_service.logic import levels, ranks
from gamification_service.logic.gamification import GamificationFacade, get_facade
from gamification_service.schemas import (
    ActionResponse,
    BadgeCollection,
    BadgeView,
    ChallengeOverview,
    ChallengeView,
    GamificationAction,
    LeaderboardResponse,
    LevelStatus,
    PerformActionRequest,
    ProfileSummary,
    RankStatus,
    UserStats,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gamification", tags=["Gamification"])


def _http_error(e: Exception) -> HTTPException:
    """Map engine errors to status codes"""
    if isinstance(e, StatsConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, InvalidActionError):
        return HTTPException(status_code=422, detail=str(e))
    logger.error(f"Unexpected gamification error: {str(e)}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


@router.get("/stats", response_model=UserStats)
def get_stats(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    """Raw cumulative stats of the current user."""
    try:
        return facade.get_stats(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/level", response_model=LevelStatus)
def get_level(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    try:
        return facade.get_level(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/rank", response_model=RankStatus)
def get_rank(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    try:
        return facade.get_rank(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/badges", response_model=BadgeCollection)
def get_badges(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    """Non-hidden badges plus hidden ones already earned."""
    try:
        return facade.get_badges(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/badges/gallery", response_model=BadgeCollection)
def get_badge_gallery(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    """Whole catalog; secret badges are masked until earned."""
    try:
        return facade.get_badge_gallery(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/badges/category/{category}", response_model=List[BadgeView])
def get_badges_by_category(
    category: str,
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    try:
        return facade.get_badges_by_category(x_user_id, category)
    except InvalidActionError as e:
        raise _http_error(e)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown badge category: {category}")
    except Exception as e:
        raise _http_error(e)


@router.get("/challenges", response_model=ChallengeOverview)
def get_challenges(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    """This week's challenges with progress."""
    try:
        return facade.get_challenges(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/profile", response_model=ProfileSummary)
def get_profile(
    x_user_id: str = Header(..., alias="X-User-ID"),
    facade: GamificationFacade = Depends(get_facade)
):
    try:
        return facade.get_profile_summary(x_user_id)
    except Exception as e:
        raise _http_error(e)


@router.get("/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Max entries (default LEADERBOARD_LIMIT)"),
    facade: GamificationFacade = Depends(get_facade)
):
    try:
        return LeaderboardResponse(entries=facade.get_leaderboard(limit))
    except Exception as e:
        raise _http_error(e)


@router.post("/actions", response_model=ActionResponse)
def perform_action(
    request: PerformActionRequest,
    x_user_id: str = Header(..., alias="X-User-ID"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    facade: GamificationFacade = Depends(get_facade)
):
    """
    Record an operational action for the current user.

    The idempotency key (body `idempotencyKey` or `Idempotency-Key` header)
    makes retries safe: a key already processed returns the stored stats
    with `replayed: true`.
    """
    action = GamificationAction(**request.model_dump(exclude={'idempotencyKey'}))

    try:
        result = facade.perform_action(
            x_user_id,
            action,
            idempotency_key=request.idempotencyKey or idempotency_key,
        )
    except Exception as e:
        raise _http_error(e)

    stats = result.updatedStats
    return ActionResponse(
        stats=stats,
        xpGained=result.xpGained,
        challengeXp=result.challengeXp,
        newBadges=[BadgeView.from_badge(badge, earned=True) for badge in result.newBadges],
        completedChallenges=[
            ChallengeView(**challenge.model_dump(exclude={'metric'}), progress=100, completed=True)
            for challenge in result.completedChallenges
        ],
        levelUp=result.levelUp,
        replayed=result.replayed,
        level=levels.level_for(stats.totalXP),
        rank=ranks.rank_for(ranks.points_for(stats)),
    )
