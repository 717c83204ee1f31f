"""
galley/features/plans/service.py

Subscription tiers and their per-feature limits.

Free users get fixed monthly allowances; pro and business are unlimited.
Stored tier names come from the payment flow and are mapped onto the
three service tiers here.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import select, update, insert

from galley.core.database import get_db_session, subscribers
from galley.core.errors import ValidationError
from galley.models.usage import Feature, Tier, UNLIMITED

FREE_LIMITS: Dict[Feature, int] = {
    Feature.AI_REQUESTS: 10,
    Feature.CALENDAR_EVENTS: 25,
    Feature.DOCUMENT_UPLOADS: 10,
    Feature.VIDEO_CALL_MINUTES: 60,
    Feature.FORMS_CREATED: 3,
    Feature.TEAM_MEMBERS: 2,
}

TIER_LIMITS: Dict[Tier, Dict[Feature, int]] = {
    Tier.FREE: FREE_LIMITS,
    Tier.PRO: {feature: UNLIMITED for feature in Feature},
    Tier.BUSINESS: {feature: UNLIMITED for feature in Feature},
}

FEATURE_DISPLAY_NAMES: Dict[Feature, str] = {
    Feature.AI_REQUESTS: "AI Requests",
    Feature.CALENDAR_EVENTS: "Calendar Events",
    Feature.DOCUMENT_UPLOADS: "Document Uploads",
    Feature.VIDEO_CALL_MINUTES: "Video Call Minutes",
    Feature.FORMS_CREATED: "Dynamic Forms",
    Feature.TEAM_MEMBERS: "Team Members",
}

# Stored tier name -> service tier
_STORED_TIER_MAP = {
    "basic": Tier.PRO,
    "premium": Tier.PRO,
    "pro": Tier.PRO,
    "business": Tier.BUSINESS,
}

STORED_TIER_NAMES = ("free", "basic", "premium", "pro", "business")


def map_stored_tier(stored: Optional[str]) -> Tier:
    """Anything unknown or missing is free."""
    if not stored:
        return Tier.FREE
    return _STORED_TIER_MAP.get(stored.strip().lower(), Tier.FREE)


def get_limits(tier: Tier) -> Dict[Feature, int]:
    return TIER_LIMITS[tier]


def get_limit(tier: Tier, feature: Feature) -> int:
    return TIER_LIMITS[tier][feature]


def is_premium(tier: Tier) -> bool:
    return tier != Tier.FREE


def get_user_tier(user_id: str) -> Tier:
    with get_db_session() as session:
        row = session.execute(
            select(subscribers.c.subscription_tier).where(subscribers.c.user_id == user_id)
        ).first()
    return map_stored_tier(row.subscription_tier if row else None)


def set_subscription_tier(user_id: str, stored_tier: str, *, email: Optional[str] = None) -> Tier:
    """Upsert the subscriber row. Returns the service tier it maps to."""
    name = (stored_tier or "").strip().lower()
    if name not in STORED_TIER_NAMES:
        raise ValidationError(f"Unknown subscription tier: {stored_tier}")

    now = datetime.now(timezone.utc)
    values = {"subscription_tier": name, "updated_at": now}
    if email:
        values["email"] = email

    with get_db_session() as session:
        result = session.execute(
            update(subscribers).where(subscribers.c.user_id == user_id).values(**values)
        )
        if result.rowcount == 0:
            session.execute(insert(subscribers).values(user_id=user_id, **values))

    return map_stored_tier(name)
