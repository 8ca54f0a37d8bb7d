import pytest

from credx.rules import schemas
from credx.rules.errors import NotFound, ValidationError
from credx.rules.execution_log import ExecutionLog
from credx.rules.models import RuleExecutionModel, RuleModel
from credx.rules.repository import RuleRepository
from credx.rules.service import RuleService

@pytest.fixture
def rule_service():
    repo = RuleRepository()
    return RuleService(repo)

def _create(service, session, name="Urgent to admin", priority=3, **fields):
    rule_create = schemas.RuleCreate(
        name=name,
        conditions=fields.pop("conditions", [{"field": "priority", "op": "=", "value": "urgent"}]),
        actions=fields.pop("actions", [{"type": "assign_to_role", "role": "admin"}]),
        priority=priority,
        **fields,
    )
    return service.create_rule(session, rule_create, "admin-1")

def test_rule_crud(rule_service, db_session):
    # Create
    created = _create(rule_service, db_session, priority=1)
    assert created.id is not None
    assert created.is_active is True
    assert created.version == 1

    # Get
    fetched = rule_service.get_rule(db_session, created.id)
    assert fetched.name == "Urgent to admin"
    assert fetched.created_by == "admin-1"

    # List
    assert [r.id for r in rule_service.list_rules(db_session)] == [created.id]

    # Update
    updated = rule_service.update_rule(db_session, created.id, schemas.RuleUpdate(name="Urgent to on-call admin"))
    assert updated.name == "Urgent to on-call admin"
    assert updated.version == 2

    # Delete
    rule_service.delete_rule(db_session, created.id)
    with pytest.raises(NotFound):
        rule_service.get_rule(db_session, created.id)

def test_toggle_controls_active_listing(rule_service, db_session):
    rule = _create(rule_service, db_session)
    assert [r.id for r in rule_service.list_active_rules(db_session)] == [rule.id]

    rule_service.toggle_active(db_session, rule.id)
    assert rule_service.list_active_rules(db_session) == []

    rule_service.toggle_active(db_session, rule.id)
    assert [r.id for r in rule_service.list_active_rules(db_session)] == [rule.id]

def test_active_rules_follow_priority(rule_service, db_session):
    low = _create(rule_service, db_session, name="Low", priority=5)
    high = _create(rule_service, db_session, name="High", priority=1)
    mid = _create(rule_service, db_session, name="Mid", priority=3)

    assert [r.id for r in rule_service.list_active_rules(db_session)] == [high.id, mid.id, low.id]

def test_invalid_json_conditions_are_rejected(rule_service, db_session):
    with pytest.raises(ValidationError):
        _create(rule_service, db_session, conditions="not-json")

    assert db_session.query(RuleModel).count() == 0

def test_failed_update_keeps_stored_rule(rule_service, db_session):
    rule = _create(rule_service, db_session)

    with pytest.raises(ValidationError):
        rule_service.update_rule(
            db_session, rule.id, schemas.RuleUpdate(name="Renamed", conditions="{broken")
        )

    stored = rule_service.get_rule(db_session, rule.id)
    assert stored.name == "Urgent to admin"
    assert stored.version == 1

def test_duplicate_creates_independent_copy(rule_service, db_session):
    rule = _create(rule_service, db_session, priority=2, description="Route urgent tickets")

    copy = rule_service.duplicate_rule(db_session, rule.id)
    rule_service.update_rule(db_session, copy.id, schemas.RuleUpdate(conditions={"category": "kyc"}))

    assert copy.name == "Urgent to admin (Copy)"
    assert copy.priority == 2
    assert rule_service.get_rule(db_session, rule.id).conditions["clauses"][0]["value"] == "urgent"
    assert len(rule_service.list_rules(db_session)) == 2

def test_missing_rules(rule_service, db_session):
    with pytest.raises(NotFound):
        rule_service.update_rule(db_session, "nop", schemas.RuleUpdate(name="Ghost"))
    with pytest.raises(NotFound):
        rule_service.delete_rule(db_session, "nop")
    with pytest.raises(NotFound):
        rule_service.toggle_active(db_session, "nop")
    with pytest.raises(NotFound):
        rule_service.duplicate_rule(db_session, "nop")

def test_dashboard_summary(rule_service, db_session):
    rule = _create(rule_service, db_session)
    _create(rule_service, db_session, name="Paused", is_active=False)
    log = ExecutionLog()
    for status in ("success", "failed", "success"):
        log.append(db_session, RuleExecutionModel(rule_id=rule.id, fact_id="t-1", status=status))

    summary = rule_service.dashboard_summary(db_session)

    assert summary.total_rules == 2
    assert summary.active_rules == 1
    assert summary.total_executions == 3
    assert summary.successful_executions == 2
    assert summary.success_rate == 67
