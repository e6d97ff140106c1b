import json
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, UnauthorizedError
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, Optional

from nutricoach.models.profile import ProfileConflictError, ProfileNotFoundError, SubscriptionError
from nutricoach.services.plan_catalog import all_feature_keys
from nutricoach.services.quota_service import QuotaEnforcer
from nutricoach.utils.auth import extract_user_id_from_event
from nutricoach.utils.quota_middleware import denial_body, denial_status_code

logger = Logger()

cors_config = CORSConfig(
    allow_origin="*",
)

app = APIGatewayRestResolver(cors=cors_config)


class CheckRequest(BaseModel):
    amount: int = Field(default=1, ge=1)


class PurchaseRequest(BaseModel):
    pack_size: Optional[int] = Field(default=None, ge=1)


def _json_response(status_code: int, body: Dict[str, Any]) -> Response:
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body),
    )


@app.exception_handler(ProfileNotFoundError)
def handle_profile_not_found(exc: ProfileNotFoundError) -> Response:
    logger.warning(f"Profile not found for user {exc.user_id}")
    return _json_response(404, {"error": "Profile not found"})


@app.exception_handler(ProfileConflictError)
def handle_profile_conflict(exc: ProfileConflictError) -> Response:
    logger.error(str(exc))
    return _json_response(409, {"error": "Profile is being updated, please retry"})


def _require_user_id() -> str:
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        logger.error("No user_id found in JWT token")
        raise UnauthorizedError("Authentication required")
    return user_id


def _parse(model, raw: Optional[str]):
    if not raw:
        return model()
    try:
        body = json.loads(raw)
        if not isinstance(body, dict):
            raise BadRequestError("JSON body must be an object")
        return model(**body)
    except (ValidationError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")


@app.get("/quota")
def get_usage_summary() -> Dict[str, Any]:
    """
    Remaining uses for every feature (quota badges)
    """
    user_id = _require_user_id()
    summary = QuotaEnforcer().get_usage_summary(user_id)
    return {'usage': {key: remaining.model_dump(mode="json") for key, remaining in summary.items()}}


@app.get("/quota/<feature_key>")
def get_remaining_uses(feature_key: str) -> Dict[str, Any]:
    user_id = _require_user_id()
    return QuotaEnforcer().get_remaining_uses(user_id, feature_key).model_dump(mode="json")


@app.post("/quota/<feature_key>/check")
def check_quota(feature_key: str):
    """
    Check and charge a feature use before the client calls the AI backend
    Expected body: {"amount": n} (optional, defaults to 1)
    """
    user_id = _require_user_id()
    request = _parse(CheckRequest, app.current_event.body)

    decision = QuotaEnforcer().check(user_id, feature_key, request.amount)
    if not decision.allowed:
        return _json_response(denial_status_code(decision), {'allowed': False, **denial_body(decision)})
    return decision.model_dump(mode="json")


@app.post("/quota/<feature_key>/purchase")
def purchase_pack(feature_key: str) -> Dict[str, Any]:
    """
    Record purchased uses for a feature (payment is confirmed upstream)
    Expected body: {"pack_size": n} (optional, defaults to the catalog pack)
    """
    user_id = _require_user_id()
    request = _parse(PurchaseRequest, app.current_event.body)
    if feature_key not in all_feature_keys():
        raise BadRequestError(f"Unknown feature: {feature_key}")

    enforcer = QuotaEnforcer()
    try:
        if request.pack_size is None:
            balance = enforcer.purchase_feature_pack(user_id, feature_key)
        else:
            balance = enforcer.purchase_credits(user_id, feature_key, request.pack_size)
    except SubscriptionError as exc:
        raise BadRequestError(str(exc))

    return {
        'success': True,
        'feature_key': feature_key,
        'purchased_balance': balance,
        'remaining': enforcer.get_remaining_uses(user_id, feature_key).model_dump(mode="json"),
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)
