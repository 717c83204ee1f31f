"""
galley/api/automation.py
Automation rule management. Execution lives at /functions/v1/automation-executor.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from galley.core.auth import get_current_user_id
from galley.features.automation.service import create_rule, list_logs, list_rules, update_rule
from galley.models.automation import AutomationRuleCreate, AutomationRuleUpdate

router = APIRouter(prefix="/v1/automation", tags=["automation"])


@router.post("/rules", status_code=201)
def post_rule(payload: AutomationRuleCreate, user_id: str = Depends(get_current_user_id)):
    return {"success": True, "rule": create_rule(payload, created_by=user_id)}


@router.get("/rules")
def get_rules(
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    user_id: str = Depends(get_current_user_id),
):
    rules = list_rules(organization_id)
    return {"success": True, "rules": rules, "count": len(rules)}


@router.patch("/rules/{rule_id}")
def patch_rule(rule_id: str, payload: AutomationRuleUpdate, user_id: str = Depends(get_current_user_id)):
    """Partial update; mostly used to toggle isActive."""
    return {"success": True, "rule": update_rule(rule_id, payload)}


@router.get("/rules/{rule_id}/logs")
def get_rule_logs(
    rule_id: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
):
    logs = list_logs(rule_id, limit)
    return {"success": True, "logs": logs, "count": len(logs)}
