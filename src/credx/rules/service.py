import copy
import logging
from typing import List, Optional
from uuid import uuid4
from sqlalchemy.orm import Session

from credx.rules import schemas
from credx.rules.errors import NotFound, ValidationError
from credx.rules.execution_log import ExecutionLog, success_rate
from credx.rules.expressions import dump_actions, dump_conditions, parse_actions, parse_conditions
from credx.rules.models import RuleModel
from credx.rules.repository import RuleRepository

logger = logging.getLogger(__name__)


def _validate_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError("Rule name must not be empty")
    return name.strip()


def _validate_priority(priority: int) -> int:
    if priority < 1:
        raise ValidationError("Rule priority must be 1 or greater (1 is the highest)")
    return priority


class RuleService:
    """
    Rule store operations behind the admin rules page.

    Validation failures raise ``ValidationError`` and leave the store untouched;
    operations on unknown ids raise ``NotFound``.
    """

    def __init__(self, repository: RuleRepository, execution_log: Optional[ExecutionLog] = None):
        self.repository = repository
        self.execution_log = execution_log or ExecutionLog()

    def create_rule(self, session: Session, rule_create: schemas.RuleCreate, created_by: Optional[str] = None) -> RuleModel:
        name = _validate_name(rule_create.name)
        conditions = parse_conditions(rule_create.conditions)
        actions = parse_actions(rule_create.actions)

        new_rule = RuleModel(
            id=str(uuid4()),
            name=name,
            description=rule_create.description,
            conditions=dump_conditions(conditions),
            actions=dump_actions(actions),
            priority=_validate_priority(rule_create.priority),
            is_active=rule_create.is_active,
            created_by=created_by,
            version=1,
        )
        rule = self.repository.create(session, new_rule)
        logger.info(f"Rule '{rule.name}' created with priority {rule.priority}")
        return rule

    def get_rule(self, session: Session, rule_id: str) -> RuleModel:
        rule = self.repository.get(session, rule_id)
        if rule is None:
            raise NotFound(rule_id)
        return rule

    def list_rules(
        self,
        session: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        priority_band: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RuleModel]:
        return self.repository.search(
            session, search=search, status=status, priority_band=priority_band, limit=limit, offset=offset
        )

    def list_active_rules(self, session: Session) -> List[RuleModel]:
        return self.repository.list_active(session)

    def update_rule(self, session: Session, rule_id: str, rule_update: schemas.RuleUpdate) -> RuleModel:
        updates = rule_update.model_dump(exclude_unset=True)
        rule = self.get_rule(session, rule_id)
        if not updates:
            return rule

        # Validate everything before touching the stored rule
        if "name" in updates:
            updates["name"] = _validate_name(updates["name"])
        if "priority" in updates:
            if updates["priority"] is None:
                raise ValidationError("Rule priority must not be null")
            _validate_priority(updates["priority"])
        if "conditions" in updates:
            updates["conditions"] = dump_conditions(parse_conditions(updates["conditions"]))
        if "actions" in updates:
            updates["actions"] = dump_actions(parse_actions(updates["actions"]))
        if "is_active" in updates and updates["is_active"] is None:
            raise ValidationError("is_active must not be null")

        updated = self.repository.update(session, rule.id, updates)
        logger.info(f"Rule '{updated.name}' updated to version {updated.version}")
        return updated

    def toggle_active(self, session: Session, rule_id: str) -> RuleModel:
        rule = self.get_rule(session, rule_id)
        updated = self.repository.update(session, rule.id, {"is_active": not rule.is_active})
        logger.info(f"Rule '{updated.name}' is now {'active' if updated.is_active else 'inactive'}")
        return updated

    def delete_rule(self, session: Session, rule_id: str) -> None:
        if not self.repository.delete(session, rule_id):
            raise NotFound(rule_id)
        logger.info(f"Rule {rule_id} deleted")

    def duplicate_rule(self, session: Session, rule_id: str) -> RuleModel:
        source = self.get_rule(session, rule_id)
        duplicate = RuleModel(
            id=str(uuid4()),
            name=f"{source.name} (Copy)",
            description=source.description,
            conditions=copy.deepcopy(source.conditions),
            actions=copy.deepcopy(source.actions),
            priority=source.priority,
            is_active=source.is_active,
            created_by=source.created_by,
            version=1,
        )
        return self.repository.create(session, duplicate)

    def dashboard_summary(self, session: Session) -> schemas.DashboardSummary:
        stats = self.execution_log.stats(session)
        return schemas.DashboardSummary(
            total_rules=self.repository.count(session),
            active_rules=self.repository.count(session, active_only=True),
            total_executions=stats.total,
            successful_executions=stats.successful,
            success_rate=success_rate(stats.successful, stats.total),
        )
