import os

import pytest

# Dummy credentials so boto3 never reaches a real account
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["PROFILES_TABLE_NAME"] = "test-profiles-table"
os.environ["USAGE_TIMEZONE"] = "UTC"
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "nutricoach-quota-tests")

from nutricoach.services.aws import reset_aws_handles  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_aws_handles():
    """Every test builds its boto3 resource inside its own moto mock."""
    reset_aws_handles()
    yield
    reset_aws_handles()
