"""
Experience levels

Static XP thresholds, strictly increasing, first level at 0 XP.
"""
from bisect import bisect_right
from typing import Sequence, Tuple

from gamification_service.schemas import LevelInfo, LevelStatus


def build_level_table(levels: Sequence[LevelInfo]) -> Tuple[LevelInfo, ...]:
    """
    Validate and freeze a level catalog.
    
    Raises:
        ValueError: empty table, first minXP not 0, or thresholds not strictly increasing
    """
    if not levels:
        raise ValueError("Level table cannot be empty")
    
    if levels[0].minXP != 0:
        raise ValueError(f"First level must start at 0 XP, got: {levels[0].minXP}")
    
    for previous, current in zip(levels, levels[1:]):
        if current.minXP <= previous.minXP:
            raise ValueError(
                f"Level thresholds must be strictly increasing: "
                f"level {current.level} ({current.minXP}) <= level {previous.level} ({previous.minXP})"
            )
    
    return tuple(levels)


LEVELS = build_level_table([
    LevelInfo(level=1, minXP=0, name="Débutant", badgeGlyph="🔰", colorToken="text-slate-600"),
    LevelInfo(level=2, minXP=100, name="Apprenti", badgeGlyph="🔹", colorToken="text-blue-600"),
    LevelInfo(level=3, minXP=300, name="Professionnel", badgeGlyph="🔷", colorToken="text-green-600"),
    LevelInfo(level=4, minXP=700, name="Expert", badgeGlyph="💠", colorToken="text-purple-600"),
    LevelInfo(level=5, minXP=1500, name="Maître", badgeGlyph="🌟", colorToken="text-orange-600"),
    LevelInfo(level=6, minXP=3000, name="Grand Maître", badgeGlyph="🏆", colorToken="text-red-600"),
    LevelInfo(level=7, minXP=6000, name="Légende", badgeGlyph="👑", colorToken="text-brand-600"),
])


def level_for(total_xp: int, levels: Sequence[LevelInfo] = LEVELS) -> LevelStatus:
    """
    Map cumulative XP to a level and the progress toward the next one
    
    Args:
        total_xp: Cumulative XP (negative values count as 0)
        levels: Ordered level table
        
    Returns:
        LevelStatus with level, progress (0-100, 0 at the top level) and levelInfo
    """
    xp = max(0, total_xp)
    thresholds = [entry.minXP for entry in levels]
    index = max(0, bisect_right(thresholds, xp) - 1)
    current = levels[index]
    
    if index == len(levels) - 1:
        return LevelStatus(
            level=current.level,
            progress=0,
            levelInfo=current,
            xpIntoLevel=xp - current.minXP,
            xpForNextLevel=None,
        )
    
    following = levels[index + 1]
    span = following.minXP - current.minXP
    progress = round((xp - current.minXP) / span * 100)
    
    return LevelStatus(
        level=current.level,
        progress=min(100, max(0, progress)),
        levelInfo=current,
        xpIntoLevel=xp - current.minXP,
        xpForNextLevel=following.minXP - xp,
    )


def calculate_level(total_xp: int, levels: Sequence[LevelInfo] = LEVELS) -> int:
    """Level number only"""
    return level_for(total_xp, levels).level
