"""Shared fixtures: mocked AWS, a stats table and a facade wired to it"""
import boto3
import pytest
from moto import mock_aws

from gamification_service.config import Settings
from gamification_service.dynamo import DynamoDBClient, StatsRepository
from gamification_service.logic.gamification import GamificationFacade

TABLE_NAME = "test-gamification-stats"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto"""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def test_settings():
    """Settings independent from the environment; days are computed in UTC"""
    return Settings(
        DYNAMODB_ENDPOINT=None,
        DYNAMODB_STATS_TABLE=TABLE_NAME,
        AWS_REGION="us-east-1",
        BUSINESS_TIMEZONE="UTC",
        GAMIFICATION_ENABLED=True,
        XP_RATE_MULTIPLIER=1.0,
        MAX_WRITE_RETRIES=3,
        IDEMPOTENCY_WINDOW=50,
        LEADERBOARD_LIMIT=20,
    )


@pytest.fixture
def stats_table(aws_credentials):
    """Create mock DynamoDB stats table"""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[{"AttributeName": "userId", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "userId", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield table


@pytest.fixture
def repository(stats_table, test_settings):
    return StatsRepository(DynamoDBClient(test_settings))


@pytest.fixture
def facade(repository, test_settings):
    return GamificationFacade(repository=repository, settings=test_settings)
