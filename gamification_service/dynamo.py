"""
DynamoDB operations for gamification-service

One item per user in the stats table (hash key `userId`). Writes are
optimistic: every item carries `version` and a put only succeeds if the
stored version is still the one that was read.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from gamification_service.config import Settings, get_settings
from gamification_service.exceptions import PersistenceError, StatsConflictError
from gamification_service.schemas import UserStats

logger = logging.getLogger(__name__)


class DynamoDBClient:
    """DynamoDB client with lazy initialization"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._dynamodb = None
        self._stats_table = None

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource"""
        if self._dynamodb is None:
            kwargs = {
                'region_name': self.settings.AWS_REGION,
                'config': Config(
                    connect_timeout=self.settings.PERSISTENCE_TIMEOUT_SECONDS,
                    read_timeout=self.settings.PERSISTENCE_TIMEOUT_SECONDS,
                    retries={'max_attempts': self.settings.PERSISTENCE_MAX_ATTEMPTS, 'mode': 'standard'},
                ),
            }

            # Only use endpoint_url for LocalStack
            if self.settings.DYNAMODB_ENDPOINT:
                kwargs['endpoint_url'] = self.settings.DYNAMODB_ENDPOINT

            # Explicit credentials only in LocalStack mode, otherwise boto3 uses the IAM role
            if self.settings.DYNAMODB_ENDPOINT and self.settings.AWS_ACCESS_KEY_ID:
                kwargs['aws_access_key_id'] = self.settings.AWS_ACCESS_KEY_ID
                kwargs['aws_secret_access_key'] = self.settings.AWS_SECRET_ACCESS_KEY
                logger.info("Using explicit AWS credentials (LocalStack mode)")
            else:
                logger.info("Using default AWS credential chain")

            self._dynamodb = boto3.resource('dynamodb', **kwargs)
        return self._dynamodb

    @property
    def stats_table(self):
        if self._stats_table is None:
            self._stats_table = self.dynamodb.Table(self.settings.DYNAMODB_STATS_TABLE)
        return self._stats_table


# Global instance
db_client = DynamoDBClient()


# ============= HELPERS =============

def dynamodb_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert Python dict to DynamoDB compatible dict (handles Decimal)"""
    return {k: dynamodb_value(v) for k, v in data.items()}


def dynamodb_value(value: Any) -> Any:
    """Convert Python value to DynamoDB compatible value"""
    if isinstance(value, float):
        return Decimal(str(value))
    elif isinstance(value, dict):
        return {k: dynamodb_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [dynamodb_value(item) for item in value]
    return value


def python_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert DynamoDB dict to Python dict (handles Decimal)"""
    return {k: python_value(v) for k, v in data.items()}


def python_value(value: Any) -> Any:
    """Convert DynamoDB value to Python value"""
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    elif isinstance(value, dict):
        return {k: python_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [python_value(item) for item in value]
    return value


def _to_stats(item: Dict[str, Any]) -> UserStats:
    try:
        return UserStats.model_validate(python_dict(item))
    except ValidationError as e:
        logger.error(f"Corrupt stats item for user {item.get('userId')}: {e}")
        raise PersistenceError(f"Stored stats for user {item.get('userId')} are invalid") from e


# ============= REPOSITORY =============

class StatsRepository:
    """
    Read/write UserStats items.

    Every boto3 failure is wrapped in PersistenceError; a lost conditional
    write raises StatsConflictError.
    """

    def __init__(self, client: Optional[DynamoDBClient] = None):
        self.client = client or db_client

    @property
    def table(self):
        return self.client.stats_table

    def get(self, user_id: str) -> Optional[UserStats]:
        """Stats of a user, or None if never stored"""
        try:
            response = self.table.get_item(Key={'userId': user_id}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting stats for user {user_id}: {str(e)}")
            raise PersistenceError(f"Could not read stats for user {user_id}") from e

        if 'Item' not in response:
            return None
        return _to_stats(response['Item'])

    def put(self, stats: UserStats, expected_version: int) -> UserStats:
        """
        Store stats if the stored version still equals expected_version.

        Args:
            stats: Snapshot to store
            expected_version: Version read before computing the snapshot (0 for a new user)

        Returns:
            The stored snapshot, with version = expected_version + 1

        Raises:
            StatsConflictError: The item was modified since it was read
            PersistenceError: Any other store failure (nothing was written)
        """
        stored = stats.model_copy(update={'version': expected_version + 1})

        try:
            self.table.put_item(
                Item=dynamodb_dict(stored.model_dump()),
                ConditionExpression='attribute_not_exists(userId) OR version = :expected_version',
                ExpressionAttributeValues={':expected_version': expected_version},
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                logger.warning(
                    f"Version mismatch for user {stats.userId}: expected {expected_version}, item was modified"
                )
                raise StatsConflictError(stats.userId, expected_version) from e
            logger.error(f"Error saving stats for user {stats.userId}: {str(e)}")
            raise PersistenceError(f"Could not save stats for user {stats.userId}") from e
        except BotoCoreError as e:
            logger.error(f"Error saving stats for user {stats.userId}: {str(e)}")
            raise PersistenceError(f"Could not save stats for user {stats.userId}") from e

        logger.debug(f"Saved stats for user {stats.userId} (version {stored.version})")
        return stored

    def scan(self, limit: Optional[int] = None) -> List[UserStats]:
        """
        All stored stats, following pagination.

        Args:
            limit: Stop after this many items (None reads the whole table)
        """
        items: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {}

        try:
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get('Items', []))

                if limit is not None and len(items) >= limit:
                    items = items[:limit]
                    break
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error scanning stats table: {str(e)}")
            raise PersistenceError("Could not scan stats table") from e

        return [_to_stats(item) for item in items]
