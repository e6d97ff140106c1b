"""
Quota guard for Lambda handlers fronting AI-backed actions.

The quota is checked and charged before the wrapped handler runs. A failure
inside the handler (AI backend error included) does not give the use back.
"""

import json
from functools import wraps
from typing import Any, Callable, Dict, Optional

from aws_lambda_powertools import Logger

from nutricoach.models.profile import ProfileNotFoundError
from nutricoach.models.quota import DenialReason, QuotaDecision
from nutricoach.services.quota_service import QuotaEnforcer
from nutricoach.utils.auth import extract_user_id_from_event

logger = Logger()

CORS_HEADERS = {
    'Content-Type': 'application/json',
    'Access-Control-Allow-Origin': '*',
}


class QuotaExceededException(Exception):
    """Exception raised when a quota check is denied"""

    def __init__(self, decision: QuotaDecision):
        self.decision = decision
        self.message = f"Quota denied for {decision.feature_key}: {decision.reason.value}"
        super().__init__(self.message)


def denial_status_code(decision: QuotaDecision) -> int:
    if decision.reason == DenialReason.NOT_AVAILABLE:
        return 403
    return 429  # Too Many Requests


def denial_body(decision: QuotaDecision) -> Dict[str, Any]:
    return {
        'error': 'Quota exceeded' if decision.reason == DenialReason.LIMIT_EXCEEDED else 'Feature not available',
        'reason': decision.reason.value,
        'feature_key': decision.feature_key,
        'feature_display_text': decision.feature_display_text,
        'upgrade_url': '/subscription/pricing',
    }


def enforce_quota(enforcer: QuotaEnforcer, user_id: str, feature_key: str, amount: int = 1) -> QuotaDecision:
    """Run a check and raise QuotaExceededException on denial"""
    decision = enforcer.check(user_id, feature_key, amount)
    if not decision.allowed:
        raise QuotaExceededException(decision)
    return decision


def quota_check(
    feature_key: str,
    amount: int = 1,
    enforcer_factory: Optional[Callable[[], QuotaEnforcer]] = None,
):
    """
    Decorator to check and charge a feature quota before executing a Lambda handler

    Args:
        feature_key: Feature consumed by the handler, e.g. "mealAnalysesImage"
        amount: Uses consumed per invocation
        enforcer_factory: Builds the QuotaEnforcer, default reads the environment

    Usage:
        @quota_check('mealAnalysesImage')
        def analyze_meal_image_handler(event, context):
            # Only runs once the use has been recorded
            pass
    """
    def decorator(handler_func: Callable) -> Callable:
        @wraps(handler_func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            user_id = extract_user_id_from_event(event)
            if not user_id:
                logger.warning(f"Rejected {handler_func.__name__}: no authenticated user for {feature_key}")
                return {
                    'statusCode': 401,
                    'headers': CORS_HEADERS,
                    'body': json.dumps({'error': 'Authentication required'}),
                }

            enforcer = enforcer_factory() if enforcer_factory else QuotaEnforcer()
            try:
                enforce_quota(enforcer, user_id, feature_key, amount)
            except QuotaExceededException as exc:
                return {
                    'statusCode': denial_status_code(exc.decision),
                    'headers': CORS_HEADERS,
                    'body': json.dumps(denial_body(exc.decision)),
                }
            except ProfileNotFoundError:
                logger.warning(f"Rejected {handler_func.__name__}: no profile for user {user_id}")
                return {
                    'statusCode': 404,
                    'headers': CORS_HEADERS,
                    'body': json.dumps({'error': 'Profile not found'}),
                }

            return handler_func(event, context)

        return wrapper
    return decorator
