"""Automation rule and execution shapes."""

from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field, field_validator

from galley.models.common import CamelModel, require_text


class ActionConfig(CamelModel):
    """`type` selects the action; everything else is action-specific."""
    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)


class AutomationRuleCreate(CamelModel):
    name: str
    description: Optional[str] = None
    organization_id: Optional[str] = None
    trigger_type: str = "manual"
    trigger_config: Dict[str, Any] = {}
    action_config: ActionConfig
    is_active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, value):
        return require_text(value, "name")


class AutomationRuleUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    trigger_config: Optional[Dict[str, Any]] = None
    action_config: Optional[ActionConfig] = None


class ExecuteRuleRequest(CamelModel):
    rule_id: str
    trigger_data: Dict[str, Any] = {}

    @field_validator("rule_id", mode="before")
    @classmethod
    def normalize_rule_id(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Rule ID is required")
        return value

    @field_validator("trigger_data", mode="before")
    @classmethod
    def normalize_trigger_data(cls, value):
        return {} if value is None else value
