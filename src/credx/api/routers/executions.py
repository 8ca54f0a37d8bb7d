from typing import List, Literal, Optional, Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from credx.rules import schemas
from credx.rules.execution_log import ExecutionLog
from credx.api.dependencies import get_db, get_execution_log


router = APIRouter()

@router.get("/", response_model=List[schemas.ExecutionResponse])
def list_executions(
    log: Annotated[ExecutionLog, Depends(get_execution_log)],
    session: Annotated[Session, Depends(get_db)],
    rule_id: Optional[str] = None,
    fact_id: Optional[str] = None,
    status: Optional[Literal["success", "failed"]] = None,
    limit: int = 100,
    offset: int = 0,
):
    """
    Execution history, most recent first.
    """
    return log.list(session, rule_id=rule_id, fact_id=fact_id, status=status, limit=limit, offset=offset)

@router.get("/stats", response_model=schemas.ExecutionStats)
def execution_stats(
    log: Annotated[ExecutionLog, Depends(get_execution_log)],
    session: Annotated[Session, Depends(get_db)],
    rule_id: Optional[str] = None,
):
    """
    Success rate for one rule, or across all rules when ``rule_id`` is omitted.
    """
    return log.stats(session, rule_id=rule_id)
