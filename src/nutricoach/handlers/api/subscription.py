import json
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, UnauthorizedError
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, ValidationError
from typing import Any, Dict

from nutricoach.models.plan import BillingCycle, SubscriptionTier
from nutricoach.models.profile import ProfileConflictError, ProfileNotFoundError, SubscriptionError
from nutricoach.services.plan_catalog import get_pricing as catalog_pricing
from nutricoach.services.subscription_service import SubscriptionService
from nutricoach.utils.auth import extract_user_email_from_event, extract_user_id_from_event

# Initialize the logger
logger = Logger()

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

# Initialize the APIGatewayRestResolver
app = APIGatewayRestResolver(cors=cors_config)


class SubscribeRequest(BaseModel):
    plan: SubscriptionTier
    billing_cycle: BillingCycle = BillingCycle.MONTHLY


class ChangePlanRequest(BaseModel):
    plan: SubscriptionTier


def _error_response(status_code: int, message: str) -> Response:
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps({"error": message}),
    )


@app.exception_handler(ProfileNotFoundError)
def handle_profile_not_found(exc: ProfileNotFoundError) -> Response:
    logger.warning(f"Profile not found for user {exc.user_id}")
    return _error_response(404, "Profile not found")


@app.exception_handler(ProfileConflictError)
def handle_profile_conflict(exc: ProfileConflictError) -> Response:
    logger.error(str(exc))
    return _error_response(409, "Profile is being updated, please retry")


def _require_user_id() -> str:
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        logger.error("No user_id found in JWT token")
        raise UnauthorizedError("Authentication required")
    return user_id


def _json_body() -> Dict[str, Any]:
    raw = app.current_event.body
    if not raw:
        return {}
    try:
        body = app.current_event.json_body
    except (TypeError, ValueError) as exc:
        raise BadRequestError(f"Invalid JSON body: {exc}")
    if not isinstance(body, dict):
        raise BadRequestError("JSON body must be an object")
    return body


@app.get("/subscription")
def get_subscription() -> Dict[str, Any]:
    """
    Get user's subscription, trial state and per-feature usage

    Users confirmed before the post-confirmation trigger existed get their
    profile (and trial) on first read.
    """
    user_id = _require_user_id()
    service = SubscriptionService()
    service.get_or_register_profile(user_id, extract_user_email_from_event(app.current_event.raw_event))
    return service.get_subscription_summary(user_id)


@app.post("/subscription")
def subscribe() -> Dict[str, Any]:
    """
    Start a paid subscription
    Expected body: {"plan": "basic|pro|premium", "billing_cycle": "monthly|annual"}
    """
    user_id = _require_user_id()
    try:
        request = SubscribeRequest(**_json_body())
    except ValidationError as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")

    service = SubscriptionService()
    service.subscribe(user_id, request.plan, request.billing_cycle)
    return {
        'success': True,
        'message': f'Subscribed to {request.plan.value} ({request.billing_cycle.value})',
        'subscription': service.get_subscription_summary(user_id),
    }


@app.put("/subscription/plan")
def change_plan() -> Dict[str, Any]:
    """
    Move an active subscription to another tier
    Expected body: {"plan": "basic|pro|premium"}
    """
    user_id = _require_user_id()
    try:
        request = ChangePlanRequest(**_json_body())
    except ValidationError as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")

    service = SubscriptionService()
    try:
        direction = service.change_plan(user_id, request.plan)
    except SubscriptionError as exc:
        raise BadRequestError(str(exc))

    return {
        'success': True,
        'change': direction,
        'subscription': service.get_subscription_summary(user_id),
    }


@app.delete("/subscription")
def cancel_subscription() -> Dict[str, Any]:
    user_id = _require_user_id()
    service = SubscriptionService()
    service.cancel_subscription(user_id)
    return {
        'success': True,
        'message': 'Subscription canceled',
        'subscription': service.get_subscription_summary(user_id),
    }


@app.get("/subscription/pricing")
def get_pricing() -> Dict[str, Any]:
    """
    Get pricing tiers, feature comparison and à la carte packs
    """
    return catalog_pricing()


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
