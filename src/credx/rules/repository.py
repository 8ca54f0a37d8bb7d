from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy import select, func

from credx.rules.models import RuleModel, RuleExecutionModel
from credx.storage.repositories.base import AppendOnlyRepository, BaseRepository

# Priority bands used by the admin rules page filter
PRIORITY_BANDS = {
    "high": lambda column: column <= 2,
    "medium": lambda column: column == 3,
    "low": lambda column: column >= 4,
}

class RuleRepository(BaseRepository[RuleModel]):

    model = RuleModel

    def list(self, session: Session, limit: int = 100, offset: int = 0) -> List[RuleModel]:
        stmt = (
            select(RuleModel)
            .order_by(RuleModel.priority.asc(), RuleModel.created_at.asc())
            .limit(limit)
            .offset(offset)
        )
        return list(session.scalars(stmt).all())

    def update(self, session: Session, id: str, updates: Dict[str, Any]) -> Optional[RuleModel]:
        rule = super().update(session, id, updates)
        if rule is None:
            return None
        rule.version = (rule.version or 1) + 1
        session.flush()
        return rule

    def list_active(self, session: Session) -> List[RuleModel]:
        """Active rules by precedence: lowest priority value first, earliest created on ties."""
        stmt = (
            select(RuleModel)
            .where(RuleModel.is_active.is_(True))
            .order_by(RuleModel.priority.asc(), RuleModel.created_at.asc())
        )
        return list(session.scalars(stmt).all())

    def search(
        self,
        session: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        priority_band: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RuleModel]:
        stmt = select(RuleModel)
        if search:
            stmt = stmt.where(func.lower(RuleModel.name).contains(search.lower()))
        if status == "active":
            stmt = stmt.where(RuleModel.is_active.is_(True))
        elif status == "inactive":
            stmt = stmt.where(RuleModel.is_active.is_(False))
        if priority_band in PRIORITY_BANDS:
            stmt = stmt.where(PRIORITY_BANDS[priority_band](RuleModel.priority))

        stmt = stmt.order_by(RuleModel.priority.asc(), RuleModel.created_at.asc()).limit(limit).offset(offset)
        return list(session.scalars(stmt).all())

    def count(self, session: Session, active_only: bool = False) -> int:
        stmt = select(func.count()).select_from(RuleModel)
        if active_only:
            stmt = stmt.where(RuleModel.is_active.is_(True))
        return session.scalar(stmt) or 0


class ExecutionRepository(AppendOnlyRepository[RuleExecutionModel]):
    """Storage for rule executions; rows are never updated or deleted."""

    model = RuleExecutionModel

    def list(self, session: Session, limit: int = 100, offset: int = 0) -> List[RuleExecutionModel]:
        return self.list_filtered(session, limit=limit, offset=offset)

    def list_filtered(
        self,
        session: Session,
        rule_id: Optional[str] = None,
        fact_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RuleExecutionModel]:
        stmt = select(RuleExecutionModel)
        if rule_id:
            stmt = stmt.where(RuleExecutionModel.rule_id == rule_id)
        if fact_id:
            stmt = stmt.where(RuleExecutionModel.fact_id == fact_id)
        if status:
            stmt = stmt.where(RuleExecutionModel.status == status)
        stmt = stmt.order_by(RuleExecutionModel.executed_at.desc()).limit(limit).offset(offset)
        return list(session.scalars(stmt).all())

    def count_by_status(self, session: Session, rule_id: Optional[str] = None) -> Dict[str, int]:
        stmt = select(RuleExecutionModel.status, func.count()).group_by(RuleExecutionModel.status)
        if rule_id:
            stmt = stmt.where(RuleExecutionModel.rule_id == rule_id)
        return {status: count for status, count in session.execute(stmt).all()}
