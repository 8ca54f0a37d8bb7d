from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from credx.rules import schemas
from credx.rules.errors import PersistenceError
from credx.rules.engine.rule_engine import RuleEngine
from credx.api.dependencies import get_db, get_rule_engine


router = APIRouter()

@router.post("/", response_model=schemas.EngineRunResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    ticket_create: schemas.TicketCreate,
    engine: Annotated[RuleEngine, Depends(get_rule_engine)],
    session: Annotated[Session, Depends(get_db)],
):
    """
    Open a ticket and route it through the active rules.

    Rule failures do not fail the request; they show up as failed executions.
    """
    try:
        result = await engine.create_ticket(session, ticket_create)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return schemas.EngineRunResponse(
        ticket=schemas.TicketResponse.model_validate(result.ticket),
        executions=[schemas.ExecutionResponse.model_validate(e) for e in result.executions],
    )
