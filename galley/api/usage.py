"""
galley/api/usage.py
Subscription state, the usage gate and usage increments.

The server ledger is the only counter: clients read the gate here and never
send their own totals.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from galley.core import idempotency
from galley.core.auth import get_current_user_id, require_admin
from galley.core.logging import get_request_id, log_event
from galley.features.entitlements.service import evaluate_gate, require_usage, subscription_snapshot
from galley.features.plans.service import set_subscription_tier
from galley.features.usage.service import reset_usage
from galley.models.usage import Feature, IncrementRequest, ResetUsageRequest, SubscriptionUpdate

router = APIRouter(prefix="/v1", tags=["usage"])


@router.get("/subscription")
def get_subscription(user_id: str = Depends(get_current_user_id)):
    return subscription_snapshot(user_id).model_dump(mode="json")


@router.get("/usage/gate/{feature}")
def get_gate(feature: Feature, user_id: str = Depends(get_current_user_id)):
    """Gate state for one feature; `blocked` carries the upgrade card."""
    return evaluate_gate(user_id, feature).model_dump(mode="json")


@router.post("/usage/{feature}/increment")
def increment(
    feature: Feature,
    request: Request,
    payload: IncrementRequest = IncrementRequest(),
    user_id: str = Depends(get_current_user_id),
):
    """
    Consume `amount` units of a feature.

    With an Idempotency-Key header the increment happens at most once; a
    repeat returns the first response.
    """
    scope = f"usage.increment.{feature.value}"
    key = request.headers.get("Idempotency-Key")
    if key:
        replay = idempotency.begin(key, scope, user_id)
        if replay is not None:
            return JSONResponse(status_code=replay["status_code"], content=replay["body"])

    try:
        decision = require_usage(user_id, feature, payload.amount, request_id=get_request_id())
    except Exception:
        if key:
            idempotency.release(key, scope, user_id)
        raise

    body = {"success": True, **decision.model_dump(mode="json")}
    if key:
        idempotency.complete(key, scope, body, user_id=user_id)
    return body


@router.post("/usage/reset")
def reset(payload: ResetUsageRequest, actor: str = Depends(require_admin)):
    usage = reset_usage(payload.user_id)
    log_event("info", "admin.usage_reset", user_id=payload.user_id, event_type="admin.usage_reset", extra={"actor": actor})
    return {"success": True, "userId": payload.user_id, "usage": usage}


@router.put("/subscription")
def update_subscription(payload: SubscriptionUpdate, actor: str = Depends(require_admin)):
    """Record a tier change (payment completion or manual grant)."""
    tier = set_subscription_tier(payload.user_id, payload.tier, email=payload.email)
    log_event(
        "info",
        "admin.subscription_updated",
        user_id=payload.user_id,
        event_type="admin.subscription_updated",
        extra={"actor": actor, "stored_tier": payload.tier, "tier": tier.value},
    )
    return {"success": True, **subscription_snapshot(payload.user_id).model_dump(mode="json")}
