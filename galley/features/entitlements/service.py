"""
galley/features/entitlements/service.py

The usage gate.

Two states per feature:
- allowed: usage < limit, or the tier is unlimited
- blocked: usage >= limit on the free tier

Only a tier change (upgrade) turns blocked back into allowed within a period.
"""

from typing import List, Optional, Sequence

from galley.core.config import settings
from galley.core.errors import QuotaExceededError
from galley.core.logging import log_event
from galley.core.metrics import usage_blocked_total, usage_consumed_total
from galley.core.tracing import start_span
from galley.features.plans.service import FEATURE_DISPLAY_NAMES, get_limit, get_limits, get_user_tier, is_premium
from galley.features.usage.service import get_usage, increment_usage
from galley.models.usage import Feature, GateDecision, GateState, Tier, UNLIMITED, UpgradePrompt, UsageSnapshot


def build_upgrade_prompt(feature: Feature, usage: int, limit: int) -> UpgradePrompt:
    name = FEATURE_DISPLAY_NAMES[feature]
    return UpgradePrompt(
        title="Premium Feature",
        message=f"You've reached the limit for {name.lower()}. Upgrade to Premium for unlimited access.",
        feature=feature.value,
        feature_name=name,
        usage=usage,
        limit=limit,
        benefits=[f"Unlimited {name.lower()}", "Advanced AI features", "Priority support"],
        upgrade_url=settings.UPGRADE_URL,
    )


def decide(feature: Feature, tier: Tier, usage: int, limit: int, *, requested: int = 1) -> GateDecision:
    """Pure decision: would `requested` more units fit under the limit?"""
    if limit == UNLIMITED:
        return GateDecision(
            feature=feature,
            state=GateState.ALLOWED,
            tier=tier,
            usage=usage,
            limit=limit,
            remaining="unlimited",
        )

    remaining = max(0, limit - usage)
    if usage + requested <= limit:
        return GateDecision(
            feature=feature,
            state=GateState.ALLOWED,
            tier=tier,
            usage=usage,
            limit=limit,
            remaining=remaining,
        )
    return GateDecision(
        feature=feature,
        state=GateState.BLOCKED,
        tier=tier,
        usage=usage,
        limit=limit,
        remaining=remaining,
        upgrade=build_upgrade_prompt(feature, usage, limit),
    )


def evaluate_gate(user_id: str, feature: Feature) -> GateDecision:
    """Read-only gate state for rendering."""
    feature = Feature(feature)
    tier = get_user_tier(user_id)
    usage = get_usage(user_id)[feature.value]
    return decide(feature, tier, usage, get_limit(tier, feature))


def consume(user_id: str, feature: Feature, amount: int = 1) -> GateDecision:
    """
    Atomically take `amount` units if they fit.

    Returns the decision after the attempt: ALLOWED with updated usage when
    the units were taken, BLOCKED (usage unchanged) otherwise.
    """
    feature = Feature(feature)
    tier = get_user_tier(user_id)
    limit = get_limit(tier, feature)
    with start_span("usage.consume", {"feature": feature.value, "user_id": user_id, "amount": amount}):
        applied, current = increment_usage(user_id, feature, amount, limit)

    if applied:
        usage_consumed_total.inc(labels={"feature": feature.value}, amount=amount)
        if limit == UNLIMITED:
            return decide(feature, tier, current, limit)
        return GateDecision(
            feature=feature,
            state=GateState.ALLOWED,
            tier=tier,
            usage=current,
            limit=limit,
            remaining=max(0, limit - current),
        )

    usage_blocked_total.inc(labels={"feature": feature.value})
    log_event(
        "info",
        "usage.blocked",
        user_id=user_id,
        event_type="usage.blocked",
        extra={"feature": feature.value, "usage": current, "limit": limit, "requested": amount},
    )
    return decide(feature, tier, current, limit, requested=amount)


def _quota_error(decision: GateDecision, request_id: Optional[str]) -> QuotaExceededError:
    return QuotaExceededError(
        decision.upgrade.message if decision.upgrade else "Usage limit reached",
        request_id=request_id,
        details={
            "feature": decision.feature.value,
            "usage": decision.usage,
            "limit": decision.limit,
            "upgrade": decision.upgrade.model_dump() if decision.upgrade else None,
        },
    )


def require_usage(user_id: str, feature: Feature, amount: int = 1, *, request_id: Optional[str] = None) -> GateDecision:
    """consume() that raises QuotaExceededError (403) when blocked."""
    decision = consume(user_id, feature, amount)
    if not decision.allowed:
        raise _quota_error(decision, request_id)
    return decision


def require_features(
    user_id: str, features: Sequence[Feature], *, request_id: Optional[str] = None
) -> List[GateDecision]:
    """Take one unit of each feature, or none when any of them is blocked.

    Every gate is read before the first unit is taken, so a request refused
    on its second feature does not cost a unit of the first.
    """
    for feature in features:
        decision = evaluate_gate(user_id, feature)
        if not decision.allowed:
            usage_blocked_total.inc(labels={"feature": decision.feature.value})
            raise _quota_error(decision, request_id)
    return [require_usage(user_id, feature, request_id=request_id) for feature in features]


def subscription_snapshot(user_id: str) -> UsageSnapshot:
    tier = get_user_tier(user_id)
    return UsageSnapshot(
        user_id=user_id,
        tier=tier,
        is_premium=is_premium(tier),
        usage=get_usage(user_id),
        limits={feature.value: limit for feature, limit in get_limits(tier).items()},
    )
