"""
Unit tests for the rules, executions and tickets routers using mocked dependencies.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, Mock
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from credx.api.main import app
from credx.api.dependencies import get_db, get_execution_log, get_rule_engine, get_rule_service
from credx.rules import schemas
from credx.rules.engine.rule_engine import EngineResult
from credx.rules.errors import NotFound, PersistenceError, ValidationError
from credx.rules.execution_log import ExecutionLog
from credx.rules.models import RuleExecutionModel, RuleModel
from credx.rules.service import RuleService
from credx.storage.models import TicketModel

NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

# Mock Dependencies
mock_service = MagicMock(spec=RuleService)
mock_log = MagicMock(spec=ExecutionLog)
mock_engine = MagicMock()
mock_engine.execute_rule = AsyncMock()
mock_engine.create_ticket = AsyncMock()
mock_session = MagicMock()

def override_get_db():
    yield mock_session

app.dependency_overrides[get_rule_service] = lambda: mock_service
app.dependency_overrides[get_execution_log] = lambda: mock_log
app.dependency_overrides[get_rule_engine] = lambda: mock_engine
app.dependency_overrides[get_db] = override_get_db

client = TestClient(app)

@pytest.fixture(autouse=True)
def reset_mocks():
    for mock in (mock_service, mock_log, mock_engine, mock_session):
        mock.reset_mock(side_effect=True)


def _rule(**fields):
    data = dict(
        id="rule-1",
        name="Urgent to admin",
        description=None,
        conditions={"version": 1, "clauses": [{"field": "priority", "op": "=", "value": "urgent"}]},
        actions=[{"type": "assign_to_role", "role": "admin"}],
        priority=1,
        is_active=True,
        created_at=NOW,
        updated_at=NOW,
        created_by="admin-1",
        version=1,
    )
    data.update(fields)
    return RuleModel(**data)


def _execution(**fields):
    data = dict(id="exec-1", rule_id="rule-1", fact_id="ticket-1", status="success", executed_at=NOW, result={})
    data.update(fields)
    return RuleExecutionModel(**data)


class TestRulesRouter:
    """Tests for /api/v1/rules"""

    def test_create_rule(self):
        mock_service.create_rule.return_value = _rule()
        payload = {
            "name": "Urgent to admin",
            "conditions": [{"field": "priority", "op": "=", "value": "urgent"}],
            "actions": [{"type": "assign_to_role", "role": "admin"}],
            "priority": 1,
        }

        response = client.post("/api/v1/rules/?created_by=admin-1", json=payload)

        assert response.status_code == 201
        assert response.json()["id"] == "rule-1"
        args = mock_service.create_rule.call_args[0]
        assert args[1].name == "Urgent to admin"
        assert args[2] == "admin-1"

    def test_create_rule_accepts_json_text(self):
        mock_service.create_rule.return_value = _rule()

        response = client.post("/api/v1/rules/", json={
            "name": "Urgent to admin",
            "conditions": '{"priority": "urgent"}',
            "actions": '{"assign_to_role": "admin"}',
        })

        assert response.status_code == 201
        assert mock_service.create_rule.call_args[0][1].conditions == '{"priority": "urgent"}'

    def test_create_rule_validation_error(self):
        mock_service.create_rule.side_effect = ValidationError("Invalid JSON format in conditions: Expecting value")

        response = client.post("/api/v1/rules/", json={"name": "Bad", "conditions": "{", "actions": []})

        assert response.status_code == 422
        assert "Invalid JSON format in conditions" in response.json()["detail"]

    def test_list_rules_with_filters(self):
        mock_service.list_rules.return_value = [_rule(), _rule(id="rule-2", priority=2)]

        response = client.get("/api/v1/rules/?search=urgent&status=active&priority=high")

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == ["rule-1", "rule-2"]
        kwargs = mock_service.list_rules.call_args[1]
        assert kwargs["search"] == "urgent"
        assert kwargs["status"] == "active"
        assert kwargs["priority_band"] == "high"

    def test_list_rules_rejects_unknown_status(self):
        response = client.get("/api/v1/rules/?status=archived")
        assert response.status_code == 422

    def test_get_rule_not_found(self):
        mock_service.get_rule.side_effect = NotFound("missing")

        response = client.get("/api/v1/rules/missing")

        assert response.status_code == 404
        assert response.json()["detail"] == "Rule 'missing' not found"

    def test_update_rule(self):
        mock_service.update_rule.return_value = _rule(name="Renamed", version=2)

        response = client.patch("/api/v1/rules/rule-1", json={"name": "Renamed"})

        assert response.status_code == 200
        assert response.json()["version"] == 2
        update = mock_service.update_rule.call_args[0][2]
        assert update.model_dump(exclude_unset=True) == {"name": "Renamed"}

    def test_update_rule_errors(self):
        mock_service.update_rule.side_effect = ValidationError("Rule name must not be empty")
        assert client.patch("/api/v1/rules/rule-1", json={"name": ""}).status_code == 422

        mock_service.update_rule.side_effect = NotFound("missing")
        assert client.patch("/api/v1/rules/missing", json={"name": "X"}).status_code == 404

    def test_delete_rule(self):
        response = client.delete("/api/v1/rules/rule-1")

        assert response.status_code == 204
        mock_service.delete_rule.assert_called_once_with(mock_session, "rule-1")

    def test_delete_rule_not_found(self):
        mock_service.delete_rule.side_effect = NotFound("missing")
        assert client.delete("/api/v1/rules/missing").status_code == 404

    def test_toggle_rule(self):
        mock_service.toggle_active.return_value = _rule(is_active=False, version=2)

        response = client.post("/api/v1/rules/rule-1/toggle")

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_duplicate_rule(self):
        mock_service.duplicate_rule.return_value = _rule(id="rule-copy", name="Urgent to admin (Copy)")

        response = client.post("/api/v1/rules/rule-1/duplicate")

        assert response.status_code == 201
        assert response.json()["name"] == "Urgent to admin (Copy)"

    def test_summary(self):
        mock_service.dashboard_summary.return_value = schemas.DashboardSummary(
            total_rules=4, active_rules=3, total_executions=3, successful_executions=2, success_rate=67
        )

        response = client.get("/api/v1/rules/summary")

        assert response.status_code == 200
        assert response.json()["success_rate"] == 67

    def test_execute_rule_defaults_to_dry_run(self):
        mock_engine.execute_rule.return_value = _execution(
            fact_id=None, result={"dry_run": True, "tickets_scanned": 5, "tickets_processed": 2}
        )

        response = client.post("/api/v1/rules/rule-1/execute")

        assert response.status_code == 200
        assert response.json()["result"]["tickets_processed"] == 2
        mock_engine.execute_rule.assert_awaited_once_with(mock_session, "rule-1", dry_run=True)

    def test_execute_rule_live(self):
        mock_engine.execute_rule.return_value = _execution(fact_id=None, result={"dry_run": False})

        client.post("/api/v1/rules/rule-1/execute?dry_run=false")

        assert mock_engine.execute_rule.call_args[1]["dry_run"] is False

    def test_execute_rule_errors(self):
        mock_engine.execute_rule.side_effect = NotFound("missing")
        assert client.post("/api/v1/rules/missing/execute").status_code == 404

        mock_engine.execute_rule.side_effect = PersistenceError("database unavailable")
        assert client.post("/api/v1/rules/rule-1/execute").status_code == 503


class TestExecutionsRouter:
    """Tests for /api/v1/executions"""

    def test_list_executions(self):
        mock_log.list.return_value = [_execution(id="exec-2"), _execution(id="exec-1", status="failed")]

        response = client.get("/api/v1/executions/?rule_id=rule-1&status=failed")

        assert response.status_code == 200
        assert [e["id"] for e in response.json()] == ["exec-2", "exec-1"]
        kwargs = mock_log.list.call_args[1]
        assert kwargs["rule_id"] == "rule-1"
        assert kwargs["status"] == "failed"

    def test_stats(self):
        mock_log.stats.return_value = schemas.ExecutionStats(
            rule_id="rule-1", total=3, successful=2, failed=1, success_rate=67
        )

        response = client.get("/api/v1/executions/stats?rule_id=rule-1")

        assert response.status_code == 200
        assert response.json()["success_rate"] == 67
        mock_log.stats.assert_called_once_with(mock_session, rule_id="rule-1")


class TestTicketsRouter:
    """Tests for /api/v1/tickets"""

    def test_create_ticket_runs_rules(self):
        ticket = TicketModel(
            id="ticket-1",
            title="Loan disbursal delayed",
            status="in_progress",
            priority="urgent",
            category="service",
            assigned_to="admin-1",
            ticket_metadata={"auto_assigned": True},
            created_at=NOW,
            updated_at=NOW,
        )
        mock_engine.create_ticket.return_value = EngineResult(ticket=ticket, executions=[_execution()])

        response = client.post("/api/v1/tickets/", json={"title": "Loan disbursal delayed", "priority": "urgent"})

        assert response.status_code == 201
        data = response.json()
        assert data["ticket"]["assigned_to"] == "admin-1"
        assert data["ticket"]["metadata"] == {"auto_assigned": True}
        assert data["executions"][0]["rule_id"] == "rule-1"
        ticket_create = mock_engine.create_ticket.call_args[0][1]
        assert ticket_create.priority == "urgent"

    def test_create_ticket_store_unavailable(self):
        mock_engine.create_ticket.side_effect = PersistenceError("database unavailable")

        response = client.post("/api/v1/tickets/", json={"title": "Anything"})

        assert response.status_code == 503

    def test_create_ticket_invalid_priority(self):
        response = client.post("/api/v1/tickets/", json={"title": "Anything", "priority": "critical"})
        assert response.status_code == 422


class TestAppLevel:

    def test_store_failure_maps_to_503(self):
        mock_service.list_rules.side_effect = OperationalError("SELECT", {}, Exception("db gone"))

        response = client.get("/api/v1/rules/")

        assert response.status_code == 503
        assert response.json()["detail"] == "Rule store unavailable, try again shortly"

    def test_liveness(self):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_readiness_without_database(self):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "not_ready"
        assert response.json()["checks"]["postgres"] == "unhealthy"
