"""
Rank tiers

Ranks are keyed on points. Points are the user's cumulative XP, so rank and
level move together but on different scales.
"""
from bisect import bisect_right
from typing import Sequence, Tuple

from gamification_service.schemas import Rank, RankStatus, UserStats

MAX_RANK = "Max"


def build_rank_table(ranks: Sequence[Rank]) -> Tuple[Rank, ...]:
    """Validate and freeze a rank catalog"""
    if not ranks:
        raise ValueError("Rank table cannot be empty")
    if ranks[0].minPoints != 0:
        raise ValueError(f"First rank must start at 0 points, got: {ranks[0].minPoints}")
    for previous, current in zip(ranks, ranks[1:]):
        if current.minPoints <= previous.minPoints:
            raise ValueError(
                f"Rank thresholds must be strictly increasing: {current.name} after {previous.name}"
            )
    return tuple(ranks)


RANKS = build_rank_table([
    Rank(name="Bronze", minPoints=0),
    Rank(name="Argent", minPoints=1000),
    Rank(name="Or", minPoints=3000),
    Rank(name="Platine", minPoints=8000),
    Rank(name="Diamant", minPoints=15000),
    Rank(name="Champion", minPoints=30000),
])


def points_for(stats: UserStats) -> int:
    return stats.totalXP


def rank_for(points: int, ranks: Sequence[Rank] = RANKS) -> RankStatus:
    """
    Map points to a rank tier
    
    Returns:
        RankStatus; nextRank is "Max" and pointsNeeded 0 at the top rank
    """
    points = max(0, points)
    thresholds = [rank.minPoints for rank in ranks]
    index = max(0, bisect_right(thresholds, points) - 1)
    current = ranks[index]
    
    if index == len(ranks) - 1:
        return RankStatus(rank=current.name, points=points, nextRank=MAX_RANK, pointsNeeded=0)
    
    following = ranks[index + 1]
    return RankStatus(
        rank=current.name,
        points=points,
        nextRank=following.name,
        pointsNeeded=max(0, following.minPoints - points),
    )
