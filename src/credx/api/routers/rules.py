from typing import List, Literal, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from credx.rules import schemas
from credx.rules.errors import NotFound, PersistenceError, ValidationError
from credx.rules.engine.rule_engine import RuleEngine
from credx.rules.service import RuleService
from credx.api.dependencies import get_db, get_rule_engine, get_rule_service


router = APIRouter()

@router.post("/", response_model=schemas.RuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    rule_create: schemas.RuleCreate,
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
    created_by: Optional[str] = None,
):
    """
    Create a new routing rule.
    """
    try:
        return service.create_rule(session, rule_create, created_by)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

@router.get("/", response_model=List[schemas.RuleResponse])
def list_rules(
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
    search: Optional[str] = None,
    rule_status: Annotated[Literal["all", "active", "inactive"], Query(alias="status")] = "all",
    priority: Optional[Literal["all", "high", "medium", "low"]] = None,
    limit: int = 100,
    offset: int = 0,
):
    """
    List rules by precedence, optionally filtered by name, status and priority band.
    """
    return service.list_rules(
        session,
        search=search,
        status=rule_status,
        priority_band=priority,
        limit=limit,
        offset=offset,
    )

@router.get("/summary", response_model=schemas.DashboardSummary)
def rules_summary(
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
):
    """
    Dashboard stat cards: rule counts and overall success rate.
    """
    return service.dashboard_summary(session)

@router.get("/{rule_id}", response_model=schemas.RuleResponse)
def get_rule(
    rule_id: str,
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
):
    try:
        return service.get_rule(session, rule_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.patch("/{rule_id}", response_model=schemas.RuleResponse)
def update_rule(
    rule_id: str,
    rule_update: schemas.RuleUpdate,
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
):
    """
    Edit a rule's name, conditions, actions or priority in place.
    """
    try:
        return service.update_rule(session, rule_id, rule_update)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: str,
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
):
    try:
        service.delete_rule(session, rule_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return None

@router.post("/{rule_id}/toggle", response_model=schemas.RuleResponse)
def toggle_rule(
    rule_id: str,
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
):
    try:
        return service.toggle_active(session, rule_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.post("/{rule_id}/duplicate", response_model=schemas.RuleResponse, status_code=status.HTTP_201_CREATED)
def duplicate_rule(
    rule_id: str,
    service: Annotated[RuleService, Depends(get_rule_service)],
    session: Annotated[Session, Depends(get_db)],
):
    try:
        return service.duplicate_rule(session, rule_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.post("/{rule_id}/execute", response_model=schemas.ExecutionResponse)
async def execute_rule(
    rule_id: str,
    engine: Annotated[RuleEngine, Depends(get_rule_engine)],
    session: Annotated[Session, Depends(get_db)],
    dry_run: bool = True,
):
    """
    Manually fire a rule over the unresolved tickets. Defaults to a dry run.
    """
    try:
        return await engine.execute_rule(session, rule_id, dry_run=dry_run)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
