#!/usr/bin/env python3
"""
Create the gamification stats table in LocalStack for local development

Uses DYNAMODB_ENDPOINT / DYNAMODB_STATS_TABLE from the service settings
(defaults to http://localhost:4566 when no endpoint is configured).
"""
import boto3
from botocore.exceptions import ClientError

from gamification_service.config import get_settings

LOCALSTACK_ENDPOINT = 'http://localhost:4566'


def stats_table_definition(table_name: str) -> dict:
    return {
        'TableName': table_name,
        'KeySchema': [
            {'AttributeName': 'userId', 'KeyType': 'HASH'}
        ],
        'AttributeDefinitions': [
            {'AttributeName': 'userId', 'AttributeType': 'S'}
        ],
        'BillingMode': 'PAY_PER_REQUEST'
    }


def create_tables():
    """Create the stats table if it does not exist yet"""
    settings = get_settings()

    dynamodb = boto3.client(
        'dynamodb',
        endpoint_url=settings.DYNAMODB_ENDPOINT or LOCALSTACK_ENDPOINT,
        region_name=settings.AWS_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or 'test',
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or 'test'
    )

    table_config = stats_table_definition(settings.DYNAMODB_STATS_TABLE)
    table_name = table_config['TableName']
    try:
        dynamodb.describe_table(TableName=table_name)
        print(f"✓ Table {table_name} already exists")
    except ClientError as e:
        if e.response['Error']['Code'] == 'ResourceNotFoundException':
            dynamodb.create_table(**table_config)
            dynamodb.get_waiter('table_exists').wait(TableName=table_name)
            print(f"✓ Created table {table_name}")
        else:
            print(f"✗ Error with table {table_name}: {e}")
            raise


if __name__ == '__main__':
    print("Creating DynamoDB tables in LocalStack...")
    create_tables()
    print("Done!")
