from typing import Dict, Any
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from nutricoach.models.profile import ProfileStoreError
from nutricoach.services.subscription_service import SubscriptionService

# Initialize the logger
logger = Logger()


def extract_user_info(event: Dict[str, Any]) -> Dict[str, Any]:
    """Extract user information from Cognito post-confirmation event."""
    try:
        attributes = event["request"]["userAttributes"]
        user_id = attributes["sub"]
        email = attributes["email"]
    except KeyError as e:
        logger.error(f"Missing required user attribute: {e}")
        raise ValueError(f"Invalid Cognito event structure: missing {e}")

    logger.info(f"Processing post-confirmation for user: {user_id}, email: {email}")
    return {
        "user_id": user_id,
        "email": email,
        "name": attributes.get("name"),
    }


@logger.inject_lambda_context
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Cognito Post-Confirmation Lambda handler.

    Creates the user profile with a 7-day Pro trial. A profile that already
    exists is left untouched.

    Input: Cognito Post-Confirmation trigger event
    Output: Same event (required by Cognito)
    """
    logger.info("Post-confirmation Lambda triggered", extra={
        "event_source": event.get("triggerSource", "unknown"),
        "user_pool_id": event.get("userPoolId", "unknown")
    })

    try:
        user_info = extract_user_info(event)
        profile = SubscriptionService().get_or_register_profile(
            user_info["user_id"], user_info["email"], user_info["name"]
        )
        logger.info(
            f"Profile ready for user {profile.user_id}",
            extra={"trial_end_date": str(profile.subscription.trial_end_date)},
        )
    except (ValueError, ProfileStoreError):
        # Raising here would block the registration in Cognito; the profile
        # is created on the first GET /subscription instead.
        logger.exception("Post-confirmation failed, allowing registration to proceed")

    return event
