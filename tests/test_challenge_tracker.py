"""Tests for weekly challenges"""
import logging
from datetime import date

import pytest

from gamification_service.logic.challenge_tracker import (
    challenge_progress,
    challenge_views,
    completed_challenges,
    completion_key,
    generate_weekly_challenges,
    is_completed,
    progress_for,
    week_key,
    week_start,
)
from gamification_service.schemas import Challenge

from tests.factories import make_stats


def lost_item_challenge(target=10):
    return Challenge(
        id='return_items', title='Retours', description='Restituer des objets', icon='🎁',
        target=target, xpReward=40, metric='lostItemsReturned', moduleId='mod5',
    )


class TestWeek:

    @pytest.mark.parametrize("day", ["2025-03-09", "2025-03-12", "2025-03-15"])
    def test_week_starts_on_sunday(self, day):
        assert week_start(date.fromisoformat(day)) == date(2025, 3, 9)
        assert week_key(date.fromisoformat(day)) == "2025-03-09"

    def test_next_sunday_opens_new_week(self):
        assert week_key(date(2025, 3, 16)) == "2025-03-16"

    def test_completion_key(self):
        assert completion_key(date(2025, 3, 12), 'weekly_login') == "2025-03-09:weekly_login"


class TestGenerateWeeklyChallenges:

    def test_catalog(self):
        challenges = generate_weekly_challenges(date(2025, 3, 12))

        assert [c.id for c in challenges] == [
            'weekly_incidents', 'weekly_maintenance', 'weekly_quality', 'weekly_login', 'weekly_procedures'
        ]
        assert {c.id: c.xpReward for c in challenges} == {
            'weekly_incidents': 100, 'weekly_maintenance': 80, 'weekly_quality': 120,
            'weekly_login': 50, 'weekly_procedures': 75,
        }
        assert all(c.startDate == date(2025, 3, 9) and c.endDate == date(2025, 3, 15) for c in challenges)


class TestProgress:

    def test_progress_grows_with_returns(self):
        challenge = lost_item_challenge()

        assert challenge_progress(challenge, make_stats(lostItemsReturned=3)) == 30
        assert challenge_progress(challenge, make_stats(lostItemsReturned=5)) == 50

    def test_ties_round_half_up(self):
        challenge = lost_item_challenge(target=8)

        assert challenge_progress(challenge, make_stats(lostItemsReturned=1)) == 13
        assert challenge_progress(challenge, make_stats(lostItemsReturned=3)) == 38

    def test_progress_is_capped(self):
        assert challenge_progress(lost_item_challenge(), make_stats(lostItemsReturned=25)) == 100

    def test_progress_for_maps_every_challenge(self):
        challenges = generate_weekly_challenges(date(2025, 3, 12))
        progress = progress_for(challenges, make_stats(maintenanceCompleted=1, currentStreak=5, consecutiveLogins=3))

        assert progress == {
            'weekly_incidents': 0,
            'weekly_maintenance': 33,
            'weekly_quality': 0,
            'weekly_login': 60,
            'weekly_procedures': 0,
        }

    def test_broken_challenge_is_isolated(self, caplog):
        broken = Challenge.model_construct(id='broken', target=3, metric='doesNotExist')

        with caplog.at_level(logging.ERROR):
            assert challenge_progress(broken, make_stats()) == 0
            assert is_completed(broken, make_stats()) is False

        assert "broken" in caplog.text


class TestCompletedChallenges:

    def test_newly_completed(self):
        challenges = generate_weekly_challenges(date(2025, 3, 12))

        result = completed_challenges(challenges, make_stats(incidentsResolved=4), make_stats(incidentsResolved=5))

        assert [c.id for c in result] == ['weekly_incidents']

    def test_already_satisfied_is_not_new(self):
        challenges = generate_weekly_challenges(date(2025, 3, 12))

        assert completed_challenges(challenges, make_stats(incidentsResolved=5), make_stats(incidentsResolved=6)) == []

    def test_views_flag_completed_this_week(self):
        today = date(2025, 3, 12)
        challenges = generate_weekly_challenges(today)
        stats = make_stats(completedChallenges=["2025-03-09:weekly_quality", "2025-03-02:weekly_login"])

        views = {view.id: view for view in challenge_views(challenges, stats, today)}

        assert views['weekly_quality'].completed is True
        assert views['weekly_login'].completed is False
