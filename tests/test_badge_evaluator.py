"""
Tests for badge evaluation

Covers catalog integrity, descriptor evaluation, unlock diffing, predicate
error isolation and the read helpers.
"""
import logging

import pytest
from pydantic import ValidationError

from gamification_service.logic.badge_evaluator import (
    ALL_MODULES,
    BADGES,
    badge_gallery,
    badges_for_category,
    diff_new_badges,
    evaluate_condition,
    get_badge,
    group_by_category,
    is_unlocked,
    total_available,
    unlocked_badges,
    visible_badges,
)
from gamification_service.schemas import Badge, BadgeCategory, BadgeCondition

from tests.factories import make_stats


class TestCatalog:

    def test_catalog_ids_are_unique(self):
        ids = [badge.id for badge in BADGES]
        assert len(ids) == len(set(ids)) == 43

    def test_hidden_badges_do_not_count_as_available(self):
        hidden = [badge.id for badge in BADGES if badge.hidden]

        assert sorted(hidden) == ['early_bird', 'jack_of_all_trades', 'night_owl', 'perfect_week']
        assert total_available() == 39

    def test_get_badge(self):
        assert get_badge('problem_solver').category == BadgeCategory.INCIDENTS
        assert get_badge('does_not_exist') is None

    def test_condition_threshold_must_be_positive(self):
        with pytest.raises(ValidationError):
            BadgeCondition(metric='incidentsResolved', operator='>=', value=0)

    def test_condition_metric_must_exist(self):
        with pytest.raises(ValidationError):
            BadgeCondition(metric='coffeesDrunk', operator='>=', value=1)

    def test_badge_needs_a_rule(self):
        with pytest.raises(ValidationError):
            Badge(id='x', name='x', description='x', icon='x', category='general', tier=1)


class TestEvaluateCondition:
    """Descriptor comparison, same contract for models and dicts"""

    def test_operators(self):
        stats = make_stats(incidentsResolved=5)

        assert evaluate_condition({'metric': 'incidentsResolved', 'operator': '>=', 'value': 5}, stats)
        assert not evaluate_condition({'metric': 'incidentsResolved', 'operator': '>', 'value': 5}, stats)
        assert evaluate_condition({'metric': 'incidentsResolved', 'operator': '==', 'value': 5}, stats)
        assert evaluate_condition({'metric': 'incidentsResolved', 'operator': '<=', 'value': 5}, stats)
        assert not evaluate_condition({'metric': 'incidentsResolved', 'operator': '<', 'value': 5}, stats)

    def test_plain_dict_stats(self):
        assert evaluate_condition({'metric': 'totalLogins', 'value': 3}, {'totalLogins': 4})

    def test_missing_metric_counts_as_zero(self):
        assert not evaluate_condition({'metric': 'unknown', 'operator': '>=', 'value': 1}, {})

    def test_unknown_operator_is_false_and_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = evaluate_condition({'metric': 'totalLogins', 'operator': '~=', 'value': 1}, {'totalLogins': 9})

        assert result is False
        assert "Unknown operator" in caplog.text


class TestUnlocking:

    def test_first_resolution_unlocks_problem_solver(self):
        assert 'problem_solver' in unlocked_badges(make_stats(incidentsResolved=1))
        assert 'problem_solver' not in unlocked_badges(make_stats())

    def test_all_conditions_must_hold(self):
        assert 'perfectionist' not in unlocked_badges(make_stats(highQualityChecks=1, avgQualityScore=94))
        assert 'perfectionist' in unlocked_badges(make_stats(highQualityChecks=1, avgQualityScore=96))

    def test_speed_solver_needs_measured_resolutions(self):
        unmeasured = make_stats(incidentsResolved=5)
        measured = make_stats(incidentsResolved=5, resolutionTimeSamples=5, avgResolutionTime=3.5)
        slow = make_stats(incidentsResolved=5, resolutionTimeSamples=5, avgResolutionTime=6)

        assert 'speed_solver' not in unlocked_badges(unmeasured)
        assert 'speed_solver' in unlocked_badges(measured)
        assert 'speed_solver' not in unlocked_badges(slow)

    def test_hidden_badges_are_evaluated(self):
        unlocked = unlocked_badges(make_stats(lateLogins=10, earlyLogins=10, currentStreak=7))

        assert {'night_owl', 'early_bird', 'perfect_week'} <= unlocked

    def test_jack_of_all_trades_needs_every_module(self):
        everywhere = {module: 1 for module in ALL_MODULES}
        almost = {module: 1 for module in ALL_MODULES[:-1]}

        assert 'jack_of_all_trades' in unlocked_badges(make_stats(contributionsPerModule=everywhere))
        assert 'jack_of_all_trades' not in unlocked_badges(make_stats(contributionsPerModule=almost))


class TestDiffNewBadges:

    def test_returns_only_new_badges_in_catalog_order(self):
        old = make_stats(incidentsResolved=0)
        new = make_stats(incidentsResolved=1, incidentsCreated=1)

        result = diff_new_badges(old, new, set())

        assert [badge.id for badge in result] == ['incident_reporter', 'problem_solver']

    def test_idempotent_with_updated_set(self):
        old = make_stats()
        new = make_stats(totalLogins=1, incidentsResolved=1)

        first = diff_new_badges(old, new, set())
        second = diff_new_badges(old, new, {badge.id for badge in first})

        assert first
        assert second == []

    def test_already_unlocked_are_skipped(self):
        new = make_stats(totalLogins=1)

        assert diff_new_badges(make_stats(), new, {'first_steps'}) == []

    def test_failing_predicate_does_not_block_other_badges(self, caplog):
        def broken(stats):
            raise RuntimeError("boom")

        catalog = (
            Badge(id='broken', name='Broken', description='', icon='x', category='special', tier=1,
                  predicate=broken),
            Badge(id='works', name='Works', description='', icon='x', category='general', tier=1,
                  conditions=(BadgeCondition(metric='totalLogins', value=1),)),
        )

        with caplog.at_level(logging.ERROR):
            result = diff_new_badges(make_stats(), make_stats(totalLogins=1), set(), catalog=catalog)

        assert [badge.id for badge in result] == ['works']
        assert "Error evaluating badge broken" in caplog.text

    def test_is_unlocked_swallows_predicate_errors(self):
        badge = Badge(id='b', name='b', description='', icon='x', category='special', tier=1,
                      predicate=lambda stats: 1 / 0)

        assert is_unlocked(badge, make_stats()) is False


class TestReadHelpers:

    def test_visible_badges_hide_unearned_secrets(self):
        ids = {view.id for view in visible_badges(make_stats())}

        assert 'night_owl' not in ids
        assert len(ids) == 39

    def test_visible_badges_show_earned_secret(self):
        views = {view.id: view for view in visible_badges(make_stats(badges=['night_owl', 'first_steps']))}

        assert views['night_owl'].earned is True
        assert views['first_steps'].earned is True
        assert views['team_player'].earned is False

    def test_gallery_masks_unearned_secret_badges(self):
        gallery = {view.id: view for view in badge_gallery(make_stats(badges=['early_bird']))}

        assert len(gallery) == 43
        assert gallery['night_owl'].name == '???'
        assert gallery['early_bird'].name == 'Lève-tôt'

    def test_group_by_category_has_every_category(self):
        grouped = group_by_category([])

        assert set(grouped) == {category.value for category in BadgeCategory}
        assert all(badges == [] for badges in grouped.values())

    def test_badges_for_category(self):
        views = badges_for_category(make_stats(), 'lostFound')

        assert {view.id for view in views} == {
            'lost_finder', 'lost_finder_silver', 'lost_finder_gold', 'item_returner', 'item_returner_gold'
        }

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            badges_for_category(make_stats(), 'cooking')
