"""Tests for level and rank calculators"""
import pytest

from gamification_service.logic.levels import LEVELS, build_level_table, calculate_level, level_for
from gamification_service.logic.ranks import MAX_RANK, RANKS, build_rank_table, points_for, rank_for
from gamification_service.schemas import LevelInfo, Rank

from tests.factories import make_stats


class TestLevelFor:

    def test_zero_xp_is_level_one(self):
        status = level_for(0)

        assert status.level == 1
        assert status.progress == 0
        assert status.levelInfo.name == "Débutant"
        assert status.xpForNextLevel == 100

    def test_progress_within_level(self):
        status = level_for(150)

        assert status.level == 2
        assert status.progress == 25
        assert status.xpIntoLevel == 50
        assert status.xpForNextLevel == 150

    @pytest.mark.parametrize("xp,level", [(99, 1), (100, 2), (299, 2), (300, 3), (5999, 6)])
    def test_thresholds(self, xp, level):
        assert calculate_level(xp) == level

    def test_top_level_has_zero_progress(self):
        for xp in (6000, 25000):
            status = level_for(xp)
            assert status.level == 7
            assert status.progress == 0
            assert status.xpForNextLevel is None

    def test_negative_xp_counts_as_zero(self):
        assert level_for(-40).level == 1
        assert level_for(-40).progress == 0

    def test_progress_bounded_and_level_monotonic(self):
        previous = 0
        for xp in range(0, 7000, 7):
            status = level_for(xp)
            assert 0 <= status.progress <= 100
            assert status.level >= previous
            previous = status.level


class TestBuildLevelTable:

    def test_default_table_is_valid(self):
        assert build_level_table(list(LEVELS)) == LEVELS

    def test_empty_table(self):
        with pytest.raises(ValueError):
            build_level_table([])

    def test_first_level_must_start_at_zero(self):
        with pytest.raises(ValueError):
            build_level_table([LevelInfo(level=1, minXP=10, name="x", badgeGlyph="x", colorToken="x")])

    def test_thresholds_must_increase(self):
        levels = [
            LevelInfo(level=1, minXP=0, name="a", badgeGlyph="a", colorToken="a"),
            LevelInfo(level=2, minXP=0, name="b", badgeGlyph="b", colorToken="b"),
        ]
        with pytest.raises(ValueError):
            build_level_table(levels)


class TestRankFor:

    def test_zero_points_is_lowest_rank(self):
        status = rank_for(0)

        assert status.rank == "Bronze"
        assert status.nextRank == "Argent"
        assert status.pointsNeeded == RANKS[1].minPoints

    def test_points_needed(self):
        status = rank_for(1200)

        assert status.rank == "Argent"
        assert status.nextRank == "Or"
        assert status.pointsNeeded == 1800

    def test_top_rank(self):
        status = rank_for(45000)

        assert status.rank == "Champion"
        assert status.nextRank == MAX_RANK
        assert status.pointsNeeded == 0

    def test_points_are_total_xp(self):
        assert points_for(make_stats(totalXP=420)) == 420

    def test_rank_table_must_start_at_zero(self):
        with pytest.raises(ValueError):
            build_rank_table([Rank(name="Bronze", minPoints=5)])
