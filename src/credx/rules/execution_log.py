import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from credx.rules.errors import PersistenceError
from credx.rules.models import RuleExecutionModel
from credx.rules.repository import ExecutionRepository
from credx.rules.schemas import ExecutionStats
from credx.storage.models import utcnow

logger = logging.getLogger(__name__)


def success_rate(successful: int, total: int) -> int:
    """Percentage of successful executions, rounded half up. 0 when there are none."""
    if total <= 0:
        return 0
    return (200 * successful + total) // (2 * total)


class ExecutionLog:
    """
    Audit trail of rule executions, newest first.
    """

    def __init__(self, repository: Optional[ExecutionRepository] = None):
        self.repository = repository or ExecutionRepository()

    def append(self, session: Session, execution: RuleExecutionModel) -> RuleExecutionModel:
        if not execution.id:
            execution.id = str(uuid4())
        if execution.executed_at is None:
            execution.executed_at = utcnow()
        if execution.result is None:
            execution.result = {}
        try:
            return self.repository.create(session, execution)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record execution of rule {execution.rule_id}: {e}") from e

    def list(
        self,
        session: Session,
        rule_id: Optional[str] = None,
        fact_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RuleExecutionModel]:
        return self.repository.list_filtered(
            session, rule_id=rule_id, fact_id=fact_id, status=status, limit=limit, offset=offset
        )

    def stats(self, session: Session, rule_id: Optional[str] = None) -> ExecutionStats:
        counts = self.repository.count_by_status(session, rule_id=rule_id)
        successful = counts.get("success", 0)
        failed = counts.get("failed", 0)
        total = successful + failed
        return ExecutionStats(
            rule_id=rule_id,
            total=total,
            successful=successful,
            failed=failed,
            success_rate=success_rate(successful, total),
        )
