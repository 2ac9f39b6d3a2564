"""
Tests for the DynamoDB stats repository (moto)

Covers round trip, optimistic locking, scans and error wrapping.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from gamification_service.dynamo import StatsRepository, dynamodb_dict, python_dict
from gamification_service.exceptions import PersistenceError, StatsConflictError
from gamification_service.logic import badge_evaluator, levels, ranks

from tests.factories import make_stats


class TestHelpers:

    def test_floats_become_decimals_and_back(self):
        item = dynamodb_dict({'avgQualityScore': 87.5, 'contributionsPerModule': {'mod1': 2}, 'badges': ['a']})

        assert item['avgQualityScore'] == Decimal('87.5')
        assert python_dict(item) == {'avgQualityScore': 87.5, 'contributionsPerModule': {'mod1': 2}, 'badges': ['a']}

    def test_integral_decimals_become_ints(self):
        assert python_dict({'totalXP': Decimal('120')}) == {'totalXP': 120}


class TestStatsRepository:

    def test_get_missing_user(self, repository):
        assert repository.get('nobody') is None

    def test_round_trip_preserves_derived_views(self, repository):
        stats = make_stats(
            'staff-rt', totalXP=820, incidentsResolved=6, avgQualityScore=92.5, qualitySubmissionCount=3,
            highQualityChecks=2, contributionsPerModule={'mod2': 6, 'mod4': 3}, badges=['problem_solver'],
            lastActivityDate='2025-03-12',
        )

        stored = repository.put(stats, expected_version=0)
        loaded = repository.get('staff-rt')

        assert loaded == stored
        assert loaded.version == 1
        assert levels.level_for(loaded.totalXP) == levels.level_for(stats.totalXP)
        assert ranks.rank_for(ranks.points_for(loaded)) == ranks.rank_for(ranks.points_for(stats))
        assert badge_evaluator.unlocked_badges(loaded) == badge_evaluator.unlocked_badges(stats)

    def test_put_with_current_version_increments(self, repository):
        first = repository.put(make_stats('staff-v'), expected_version=0)
        second = repository.put(first.model_copy(update={'totalXP': 10}), expected_version=first.version)

        assert second.version == 2
        assert repository.get('staff-v').totalXP == 10

    def test_stale_version_conflicts(self, repository):
        repository.put(make_stats('staff-c'), expected_version=0)
        repository.put(make_stats('staff-c', totalXP=5), expected_version=1)

        with pytest.raises(StatsConflictError) as exc_info:
            repository.put(make_stats('staff-c', totalXP=99), expected_version=1)

        assert exc_info.value.retryable is True
        assert repository.get('staff-c').totalXP == 5

    def test_concurrent_create_conflicts(self, repository):
        repository.put(make_stats('staff-new'), expected_version=0)

        with pytest.raises(StatsConflictError):
            repository.put(make_stats('staff-new', totalXP=3), expected_version=0)

    def test_scan(self, repository):
        for index in range(3):
            repository.put(make_stats(f'staff-{index}', totalXP=index * 10), expected_version=0)

        assert {stats.userId for stats in repository.scan()} == {'staff-0', 'staff-1', 'staff-2'}
        assert len(repository.scan(limit=2)) == 2


class TestErrorWrapping:
    """boto3 failures surface as PersistenceError"""

    def _repository_with(self, table):
        client = MagicMock()
        client.stats_table = table
        return StatsRepository(client)

    def test_get_failure(self):
        table = MagicMock()
        table.get_item.side_effect = EndpointConnectionError(endpoint_url='http://localhost:4566')

        with pytest.raises(PersistenceError):
            self._repository_with(table).get('staff-1')

    def test_put_failure_is_not_a_conflict(self):
        table = MagicMock()
        table.put_item.side_effect = ClientError(
            {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}}, 'PutItem'
        )

        with pytest.raises(PersistenceError) as exc_info:
            self._repository_with(table).put(make_stats(), expected_version=0)

        assert not isinstance(exc_info.value, StatsConflictError)

    def test_corrupt_item(self):
        table = MagicMock()
        table.get_item.return_value = {'Item': {'userId': 'staff-1', 'totalXP': Decimal('-5')}}

        with pytest.raises(PersistenceError):
            self._repository_with(table).get('staff-1')
