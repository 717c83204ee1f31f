from sqlalchemy import select

from galley.core.database import automation_logs, get_db_session, get_engine, orders
from galley.core.metrics import automation_executions_total
from galley.features.automation.service import create_rule, execute_rule, get_rule
from galley.models.automation import AutomationRuleCreate, ExecuteRuleRequest


def _rule(action, **config):
    return create_rule(
        AutomationRuleCreate(
            name=f"{action} rule",
            organization_id="org_1",
            action_config={"type": action, **config},
        ),
        created_by="user_1",
    )


def test_create_order_action_inserts_order():
    rule = _rule("create_order", items=[{"item": "Tomatoes", "quantity": 4}], total_amount=42.5)

    result = execute_rule(ExecuteRuleRequest(rule_id=rule["id"], trigger_data={"source": "low_stock"}))

    assert result["success"] is True
    assert result["data"]["orderNumber"].startswith("AUTO-")
    assert result["executionTime"] >= 0

    with get_db_session() as session:
        row = session.execute(select(orders).where(orders.c.id == result["data"]["orderId"])).one()
    assert row.order_type == "automatic"
    assert row.status == "pending"
    assert row.total_amount == 42.5
    assert row.organization_id == "org_1"


def test_execution_updates_log_and_counter():
    rule = _rule("send_notification", recipient="chef@example.com", subject="Walk-in temp")

    result = execute_rule(ExecuteRuleRequest(rule_id=rule["id"]))
    execute_rule(ExecuteRuleRequest(rule_id=rule["id"]))

    assert result["data"]["type"] == "email"
    assert result["data"]["recipient"] == "chef@example.com"
    assert get_rule(rule["id"])["executionCount"] == 2
    assert get_rule(rule["id"])["lastExecution"] is not None

    with get_db_session() as session:
        log = session.execute(select(automation_logs).where(automation_logs.c.id == result["logId"])).one()
    assert log.status == "completed"
    assert log.completed_at is not None
    assert log.result_data["recipient"] == "chef@example.com"
    assert automation_executions_total.value({"action": "send_notification", "status": "completed"}) == 2


def test_unknown_action_runs_generic():
    rule = _rule("make_coffee")
    result = execute_rule(ExecuteRuleRequest(rule_id=rule["id"]))
    assert result["success"] is True
    assert result["message"] == "Executed generic automation: make_coffee rule"


def test_failing_action_is_logged_as_failed():
    rule = _rule("create_order", total_amount="a lot")

    result = execute_rule(ExecuteRuleRequest(rule_id=rule["id"]))

    assert result["success"] is False
    assert result["message"] == "Failed to execute create_order rule"
    assert result["error"]
    with get_db_session() as session:
        log = session.execute(select(automation_logs).where(automation_logs.c.id == result["logId"])).one()
    assert log.status == "failed"
    assert log.error_message


def test_database_error_in_action_closes_log(client, user_headers):
    rule = _rule("create_order", items=[{"item": "Onions", "quantity": 2}])
    orders.drop(get_engine())

    resp = client.post(
        "/functions/v1/automation-executor",
        headers=user_headers,
        json={"ruleId": rule["id"]},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["error"]
    with get_db_session() as session:
        logs = session.execute(
            select(automation_logs).where(automation_logs.c.automation_rule_id == rule["id"])
        ).all()
    assert [log.status for log in logs] == ["failed"]
    assert automation_executions_total.value({"action": "create_order", "status": "failed"}) == 1


def test_executor_endpoint(client, user_headers):
    rule = _rule("update_inventory", items=["flour", "sugar"])

    resp = client.post(
        "/functions/v1/automation-executor",
        headers=user_headers,
        json={"ruleId": rule["id"], "triggerData": None},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["items_updated"] == 2


def test_inactive_or_missing_rule_is_404(client, user_headers):
    rule = _rule("schedule_task", task_name="Deep clean")
    client.patch(f"/v1/automation/rules/{rule['id']}", headers=user_headers, json={"isActive": False})

    resp = client.post("/functions/v1/automation-executor", headers=user_headers, json={"ruleId": rule["id"]})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"

    resp = client.post("/functions/v1/automation-executor", headers=user_headers, json={"ruleId": "missing"})
    assert resp.status_code == 404


def test_missing_rule_id_is_400(client, user_headers):
    resp = client.post("/functions/v1/automation-executor", headers=user_headers, json={"ruleId": ""})
    assert resp.status_code == 400
    assert "Rule ID is required" in resp.json()["detail"]


def test_rule_management_api(client, user_headers):
    created = client.post(
        "/v1/automation/rules",
        headers=user_headers,
        json={
            "name": "Nightly par order",
            "organizationId": "org_9",
            "triggerType": "schedule",
            "actionConfig": {"type": "create_order", "items": []},
        },
    )
    assert created.status_code == 201
    rule = created.json()["rule"]
    assert rule["isActive"] is True
    assert rule["createdBy"] == "user_1"

    listed = client.get("/v1/automation/rules", headers=user_headers, params={"organizationId": "org_9"}).json()
    assert [r["id"] for r in listed["rules"]] == [rule["id"]]

    client.post("/functions/v1/automation-executor", headers=user_headers, json={"ruleId": rule["id"]})
    logs = client.get(f"/v1/automation/rules/{rule['id']}/logs", headers=user_headers).json()
    assert logs["count"] == 1
    assert logs["logs"][0]["status"] == "completed"

    toggled = client.patch(f"/v1/automation/rules/{rule['id']}", headers=user_headers, json={"isActive": False})
    assert toggled.json()["rule"]["isActive"] is False
