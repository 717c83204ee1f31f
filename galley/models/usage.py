"""
galley/models/usage.py

Metered features, subscription tiers and gate decisions.
"""

from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from galley.models.common import CamelModel

UNLIMITED = -1


class Feature(str, Enum):
    AI_REQUESTS = "ai_requests"
    CALENDAR_EVENTS = "calendar_events"
    DOCUMENT_UPLOADS = "document_uploads"
    VIDEO_CALL_MINUTES = "video_call_minutes"
    FORMS_CREATED = "forms_created"
    TEAM_MEMBERS = "team_members"


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class GateState(str, Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"


class UpgradePrompt(BaseModel):
    """What a blocked client renders in place of the gated feature."""
    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    feature: str
    feature_name: str
    usage: int
    limit: int
    benefits: list[str]
    upgrade_url: str


class GateDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature: Feature
    state: GateState
    tier: Tier
    usage: int
    limit: int  # -1 = unlimited
    remaining: Union[int, str]  # "unlimited" for paid tiers
    upgrade: Optional[UpgradePrompt] = None

    @property
    def allowed(self) -> bool:
        return self.state == GateState.ALLOWED


class UsageSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    tier: Tier
    is_premium: bool
    usage: Dict[str, int]
    limits: Dict[str, int]


class IncrementRequest(CamelModel):
    amount: int = Field(default=1, ge=1)


class ResetUsageRequest(CamelModel):
    user_id: str = Field(min_length=1)


class SubscriptionUpdate(CamelModel):
    user_id: str = Field(min_length=1)
    tier: str = Field(min_length=1)
    email: Optional[str] = None
