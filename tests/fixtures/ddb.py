from datetime import datetime, timezone

import boto3
from mypy_boto3_dynamodb.service_resource import Table  # type: ignore

from nutricoach.services.aws import get_profiles_table_name, get_region_name

# Wednesday; the ISO week started on Monday 2024-01-01
FIXED_NOW = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)


def fixed_clock(now: datetime = FIXED_NOW):
    """Clock callable always returning the same instant."""
    return lambda: now


class MutableClock:
    """Clock whose instant the test moves forward explicitly."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def create_profiles_table() -> Table:
    """Create a mock DynamoDB table for user profiles (PK/SK single-table layout)."""
    dynamodb_resource = boto3.resource("dynamodb", region_name=get_region_name())
    table = dynamodb_resource.create_table(
        TableName=get_profiles_table_name(),
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    # Wait for table to be created
    table.wait_until_exists()

    return table
