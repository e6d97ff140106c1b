"""Shared boto3 handles, created lazily and reused across warm invocations."""

import os
from functools import cache
from typing import Any, Optional

import boto3
from boto3.resources.base import ServiceResource


def get_region_name() -> Optional[str]:
    """AWS_REGION when set; None lets boto3 resolve the region itself."""
    return os.getenv("AWS_REGION")


def get_profiles_table_name() -> str:
    """Name of the DynamoDB table holding user profiles."""
    return os.environ.get("PROFILES_TABLE_NAME", "nc-profiles")


@cache
def get_dynamodb_resource() -> ServiceResource:
    region = get_region_name()
    if region:
        return boto3.resource("dynamodb", region_name=region)
    return boto3.resource("dynamodb")


@cache
def get_ddb_table(table_name: str) -> Any:
    return get_dynamodb_resource().Table(table_name)


def reset_aws_handles() -> None:
    """Drop cached boto3 objects (region or credentials changed, test isolation)."""
    get_ddb_table.cache_clear()
    get_dynamodb_resource.cache_clear()
