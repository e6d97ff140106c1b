"""
Profile Store backed by DynamoDB.

One item per user (PK=USER#<id>, SK=PROFILE). Every save is a conditional
write on the item's version so concurrent read-modify-write cycles cannot
overwrite each other.
"""

import os
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from nutricoach.models.profile import (
    ProfileAlreadyExistsError, ProfileConflictError, ProfileNotFoundError,
    ProfileStoreError, UserProfile,
)
from nutricoach.services.aws import get_ddb_table, get_profiles_table_name

logger = Logger()

T = TypeVar("T")


class ProfileStore:
    """Load and save user profiles with optimistic concurrency"""

    def __init__(self, table_name: Optional[str] = None, max_attempts: Optional[int] = None):
        """
        Initialize the profile store

        Args:
            table_name: DynamoDB table name, PROFILES_TABLE_NAME by default
            max_attempts: Retry budget for update(), PROFILE_SAVE_MAX_ATTEMPTS by default
        """
        self.table_name = table_name or get_profiles_table_name()
        if max_attempts is None:
            max_attempts = int(os.environ.get("PROFILE_SAVE_MAX_ATTEMPTS", "5"))
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self._table = None

    @property
    def table(self):
        """Lazy load DynamoDB table."""
        if self._table is None:
            self._table = get_ddb_table(self.table_name)
        return self._table

    @staticmethod
    def _key(user_id: str) -> dict:
        return {"PK": f"USER#{user_id}", "SK": "PROFILE"}

    def load(self, user_id: str) -> UserProfile:
        """
        Load a user profile

        Raises:
            ProfileNotFoundError: If the user has no profile
            ProfileStoreError: On any DynamoDB failure
        """
        try:
            response = self.table.get_item(Key=self._key(user_id), ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Error loading profile for user {user_id}: {e.response['Error']['Message']}")
            raise ProfileStoreError(f"DynamoDB error: {e.response['Error']['Code']}") from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error loading profile for user {user_id}: {e}")
            raise ProfileStoreError(f"AWS connection error: {e}") from e

        if "Item" not in response:
            raise ProfileNotFoundError(user_id)
        return UserProfile.from_dynamodb_item(response["Item"])

    def exists(self, user_id: str) -> bool:
        try:
            self.load(user_id)
        except ProfileNotFoundError:
            return False
        return True

    def create(self, profile: UserProfile) -> UserProfile:
        """
        Store a new profile

        Raises:
            ProfileAlreadyExistsError: If the user already has a profile
        """
        profile.version = 1
        self._put(
            profile,
            condition="attribute_not_exists(PK)",
            on_conflict=lambda: ProfileAlreadyExistsError(profile.user_id),
        )
        logger.info(f"Created profile for user {profile.user_id}")
        return profile

    def save(self, profile: UserProfile) -> UserProfile:
        """
        Write a loaded profile back if nobody else saved it in between

        The version is bumped on success.

        Raises:
            ProfileConflictError: If the stored version no longer matches
        """
        expected_version = profile.version
        candidate = profile.model_copy(
            update={"version": expected_version + 1, "updated_at": datetime.now(timezone.utc)}
        )
        self._put(
            candidate,
            condition="#version = :expected",
            names={"#version": "version"},
            values={":expected": expected_version},
            on_conflict=lambda: ProfileConflictError(profile.user_id, expected_version),
        )
        profile.version = candidate.version
        profile.updated_at = candidate.updated_at
        return profile

    def update(self, user_id: str, mutate: Callable[[UserProfile], T]) -> T:
        """
        Load, mutate and save a profile, retrying when a concurrent save wins

        `mutate` is re-run on a freshly loaded profile for every attempt. No
        write happens when it leaves the profile unchanged.

        Returns:
            Whatever `mutate` returned on the attempt that went through
        """
        for attempt in range(1, self.max_attempts + 1):
            profile = self.load(user_id)
            before = profile.model_copy(deep=True)
            result = mutate(profile)
            if profile == before:
                return result
            try:
                self.save(profile)
                return result
            except ProfileConflictError:
                logger.warning(
                    f"Concurrent update on profile {user_id}, retrying",
                    extra={"attempt": attempt, "max_attempts": self.max_attempts},
                )
        raise ProfileConflictError(user_id, profile.version)

    def _put(self, profile: UserProfile, condition: str, on_conflict, names=None, values=None) -> None:
        kwargs = {
            "Item": profile.to_dynamodb_item(),
            "ConditionExpression": condition,
        }
        if names:
            kwargs["ExpressionAttributeNames"] = names
        if values:
            kwargs["ExpressionAttributeValues"] = values

        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]

            if error_code == "ConditionalCheckFailedException":
                raise on_conflict() from e
            logger.error(f"Error saving profile for user {profile.user_id}: {error_message}")
            if error_code == "ResourceNotFoundException":
                raise ProfileStoreError(f"Table {self.table_name} does not exist") from e
            raise ProfileStoreError(f"DynamoDB error: {error_code} - {error_message}") from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error saving profile for user {profile.user_id}: {e}")
            raise ProfileStoreError(f"AWS connection error: {e}") from e
