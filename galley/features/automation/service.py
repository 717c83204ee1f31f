"""
galley/features/automation/service.py

Rule-driven automations.

Execution flow for one rule:
1. Load the rule (must exist and be active)
2. Write a `running` log row
3. Dispatch on action_config.type
4. Close the log as completed/failed with timing
5. Bump execution_count and last_execution in one UPDATE
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from galley.core.database import automation_logs, automation_rules, get_db_session, orders
from galley.core.errors import NotFoundError
from galley.core.logging import log_event
from galley.core.metrics import automation_executions_total
from galley.core.tracing import start_span
from galley.models.automation import AutomationRuleCreate, AutomationRuleUpdate, ExecuteRuleRequest

LOG_PAGE_SIZE = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _rule_dict(row) -> Dict[str, Any]:
    return {
        "id": row.id,
        "organizationId": row.organization_id,
        "name": row.name,
        "description": row.description,
        "triggerType": row.trigger_type,
        "triggerConfig": row.trigger_config or {},
        "actionConfig": row.action_config,
        "isActive": bool(row.is_active),
        "executionCount": row.execution_count,
        "lastExecution": _iso(row.last_execution),
        "createdBy": row.created_by,
        "createdAt": _iso(row.created_at),
    }


def _log_dict(row) -> Dict[str, Any]:
    return {
        "id": row.id,
        "ruleId": row.automation_rule_id,
        "status": row.status,
        "triggerData": row.trigger_data,
        "resultData": row.result_data,
        "errorMessage": row.error_message,
        "executionTimeMs": row.execution_time_ms,
        "createdAt": _iso(row.created_at),
        "completedAt": _iso(row.completed_at),
    }


# ---------------------------------------------------------------------------
# rule management
# ---------------------------------------------------------------------------

def create_rule(data: AutomationRuleCreate, *, created_by: Optional[str] = None) -> Dict[str, Any]:
    rule_id = str(uuid.uuid4())
    with get_db_session() as session:
        session.execute(
            insert(automation_rules).values(
                id=rule_id,
                organization_id=data.organization_id,
                name=data.name,
                description=data.description,
                trigger_type=data.trigger_type,
                trigger_config=data.trigger_config,
                action_config=data.action_config.model_dump(),
                is_active=data.is_active,
                created_by=created_by,
            )
        )
    return get_rule(rule_id)


def get_rule(rule_id: str) -> Dict[str, Any]:
    with get_db_session() as session:
        row = session.execute(select(automation_rules).where(automation_rules.c.id == rule_id)).first()
    if row is None:
        raise NotFoundError(f"Automation rule not found: {rule_id}")
    return _rule_dict(row)


def list_rules(organization_id: Optional[str] = None) -> List[Dict[str, Any]]:
    stmt = select(automation_rules).order_by(automation_rules.c.created_at)
    if organization_id:
        stmt = stmt.where(automation_rules.c.organization_id == organization_id)
    with get_db_session() as session:
        rows = session.execute(stmt).all()
    return [_rule_dict(row) for row in rows]


def update_rule(rule_id: str, patch: AutomationRuleUpdate) -> Dict[str, Any]:
    values = patch.model_dump(exclude_unset=True, exclude_none=True)
    if "action_config" in values:
        values["action_config"] = patch.action_config.model_dump()
    get_rule(rule_id)
    if values:
        with get_db_session() as session:
            session.execute(update(automation_rules).where(automation_rules.c.id == rule_id).values(**values))
    return get_rule(rule_id)


def list_logs(rule_id: str, limit: int = LOG_PAGE_SIZE) -> List[Dict[str, Any]]:
    get_rule(rule_id)
    with get_db_session() as session:
        rows = session.execute(
            select(automation_logs)
            .where(automation_logs.c.automation_rule_id == rule_id)
            .order_by(automation_logs.c.created_at.desc())
            .limit(limit)
        ).all()
    return [_log_dict(row) for row in rows]


# ---------------------------------------------------------------------------
# actions
# ---------------------------------------------------------------------------

ActionResult = Dict[str, Any]


def _create_order(rule: Dict[str, Any], config: Dict[str, Any], trigger_data: Dict[str, Any]) -> ActionResult:
    order_id = str(uuid.uuid4())
    order_number = f"AUTO-{int(time.time() * 1000)}"
    with get_db_session() as session:
        session.execute(
            insert(orders).values(
                id=order_id,
                organization_id=rule["organizationId"],
                order_number=order_number,
                order_type="automatic",
                status="pending",
                items=config.get("items") or [],
                total_amount=float(config.get("total_amount") or 0),
                notes="Auto-generated order from automation rule",
                created_by=None,
            )
        )
    return {
        "success": True,
        "message": "Automatic order created successfully",
        "data": {"orderId": order_id, "orderNumber": order_number},
    }


def _send_notification(rule, config, trigger_data) -> ActionResult:
    return {
        "success": True,
        "message": "Notification sent successfully",
        "data": {
            "type": config.get("notification_type") or "email",
            "recipient": config.get("recipient"),
            "subject": config.get("subject"),
            "timestamp": _now().isoformat(),
        },
    }


def _update_inventory(rule, config, trigger_data) -> ActionResult:
    return {
        "success": True,
        "message": "Inventory levels updated successfully",
        "data": {"items_updated": len(config.get("items") or []), "timestamp": _now().isoformat()},
    }


def _schedule_task(rule, config, trigger_data) -> ActionResult:
    return {
        "success": True,
        "message": "Task scheduled successfully",
        "data": {
            "task_name": config.get("task_name"),
            "scheduled_for": config.get("scheduled_time"),
            "timestamp": _now().isoformat(),
        },
    }


def _update_staff_schedule(rule, config, trigger_data) -> ActionResult:
    return {
        "success": True,
        "message": "Staff schedule updated successfully",
        "data": {
            "schedules_updated": config.get("staff_count") or 0,
            "effective_date": config.get("effective_date"),
            "timestamp": _now().isoformat(),
        },
    }


def _generic(rule, config, trigger_data) -> ActionResult:
    return {
        "success": True,
        "message": f"Executed generic automation: {rule['name']}",
        "data": {"action": config.get("type"), "timestamp": _now().isoformat()},
    }


ACTIONS: Dict[str, Callable[..., ActionResult]] = {
    "create_order": _create_order,
    "send_notification": _send_notification,
    "update_inventory": _update_inventory,
    "schedule_task": _schedule_task,
    "update_staff_schedule": _update_staff_schedule,
}


def dispatch(rule: Dict[str, Any], trigger_data: Dict[str, Any]) -> ActionResult:
    """Run the rule's action. Action errors become a failed result, not an exception."""
    config = rule["actionConfig"] or {}
    handler = ACTIONS.get(config.get("type"), _generic)
    try:
        return handler(rule, config, trigger_data)
    except (ValueError, TypeError, KeyError, SQLAlchemyError) as exc:
        return {"success": False, "message": f"Failed to execute {rule['name']}", "error": str(exc)}


# ---------------------------------------------------------------------------
# execution
# ---------------------------------------------------------------------------

def _load_active_rule(rule_id: str) -> Dict[str, Any]:
    with get_db_session() as session:
        row = session.execute(
            select(automation_rules).where(
                automation_rules.c.id == rule_id,
                automation_rules.c.is_active.is_(True),
            )
        ).first()
    if row is None:
        raise NotFoundError(f"Rule not found or inactive: {rule_id}")
    return _rule_dict(row)


def execute_rule(req: ExecuteRuleRequest, *, user_id: Optional[str] = None) -> Dict[str, Any]:
    rule = _load_active_rule(req.rule_id)
    action = (rule["actionConfig"] or {}).get("type") or "generic"
    started = time.monotonic()
    log_id = str(uuid.uuid4())

    with get_db_session() as session:
        session.execute(
            insert(automation_logs).values(
                id=log_id,
                automation_rule_id=rule["id"],
                organization_id=rule["organizationId"],
                status="running",
                trigger_data=req.trigger_data,
            )
        )

    with start_span("automation.execute", {"rule_id": rule["id"], "action": action}):
        result = dispatch(rule, req.trigger_data)

    elapsed_ms = int((time.monotonic() - started) * 1000)
    status = "completed" if result["success"] else "failed"
    now = _now()

    with get_db_session() as session:
        session.execute(
            update(automation_logs)
            .where(automation_logs.c.id == log_id)
            .values(
                status=status,
                result_data=result.get("data"),
                error_message=result.get("error"),
                execution_time_ms=elapsed_ms,
                completed_at=now,
            )
        )
        session.execute(
            update(automation_rules)
            .where(automation_rules.c.id == rule["id"])
            .values(execution_count=automation_rules.c.execution_count + 1, last_execution=now)
        )

    automation_executions_total.inc(labels={"action": action, "status": status})
    log_event(
        "info" if result["success"] else "warning",
        "automation.executed",
        user_id=user_id,
        event_type="automation.executed",
        extra={"rule_id": rule["id"], "action": action, "status": status, "elapsed_ms": elapsed_ms},
    )

    body = {
        "success": result["success"],
        "message": result["message"],
        "data": result.get("data"),
        "executionTime": elapsed_ms,
        "logId": log_id,
    }
    if result.get("error"):
        body["error"] = result["error"]
    return body
