"""
Caller identity from API Gateway events authorized by Cognito.
"""
from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger

logger = Logger()


def _claims(event: Dict[str, Any]) -> Dict[str, Any]:
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}
    return authorizer.get("claims") or {}


def extract_user_id_from_event(event: Dict[str, Any]) -> Optional[str]:
    """
    Extract user_id (the Cognito `sub` claim) from an API Gateway event.

    API Gateway validates the JWT and copies its claims into
    requestContext.authorizer.claims.

    Args:
        event: API Gateway event dictionary

    Returns:
        User ID, or None if the request carries no claims
    """
    user_id = _claims(event).get("sub")
    if not user_id:
        logger.warning("No user_id found in JWT claims")
        return None
    return user_id


def extract_user_email_from_event(event: Dict[str, Any]) -> Optional[str]:
    return _claims(event).get("email")
