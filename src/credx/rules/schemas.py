from datetime import datetime
from typing import Annotated, Dict, Any, List, Literal, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

TicketStatus = Literal[
    "open", "in_progress", "resolved", "approved", "rejected", "pending_approval", "closed"
]
TicketPriority = Literal["low", "medium", "high", "urgent"]

# Raw rule expressions as submitted: JSON text or already-decoded JSON
RawExpression = Union[str, List[Any], Dict[str, Any]]

# --- Conditions ---

# Ticket fields are scalars; bool first so true stays a bool
ScalarValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]

CONDITION_SCHEMA_VERSION = 1

class FieldEquals(BaseModel):
    """A single equality clause against one ticket field."""
    model_config = ConfigDict(extra="forbid")

    field: str = Field(..., min_length=1)
    op: Literal["="] = "="
    value: ScalarValue

class ConditionSet(BaseModel):
    """
    Clauses combined with logical AND. ``version`` is bumped if compound
    operators are ever introduced.
    """
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = CONDITION_SCHEMA_VERSION
    clauses: List[FieldEquals] = Field(default_factory=list)

# --- Actions ---

class AssignToRole(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["assign_to_role"] = "assign_to_role"
    role: str = Field(..., min_length=1)

class Escalate(BaseModel):
    """Raise ticket priority one level, or straight to ``to_priority``."""
    model_config = ConfigDict(extra="forbid")

    type: Literal["escalate"] = "escalate"
    to_priority: Optional[TicketPriority] = None

class Notify(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["notify"] = "notify"
    channel: Optional[Literal["in_app", "webhook"]] = None
    message: Optional[str] = None

ActionSpec = Annotated[Union[AssignToRole, Escalate, Notify], Field(discriminator="type")]

# --- Rules ---

class RuleBase(BaseModel):
    name: str
    description: Optional[str] = None
    priority: int = Field(3, description="1 is the highest precedence")

class RuleCreate(RuleBase):
    conditions: RawExpression = Field(..., description='e.g. [{"field": "priority", "op": "=", "value": "urgent"}]')
    actions: RawExpression = Field(..., description='e.g. [{"type": "assign_to_role", "role": "admin"}]')
    is_active: bool = True

class RuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    conditions: Optional[RawExpression] = None
    actions: Optional[RawExpression] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None

class RuleResponse(RuleBase):
    id: str
    conditions: Dict[str, Any]
    actions: List[Dict[str, Any]]
    is_active: bool
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    version: int

    model_config = ConfigDict(from_attributes=True)

# --- Executions ---

class ExecutionResponse(BaseModel):
    id: str
    rule_id: str
    fact_id: Optional[str] = None
    status: Literal["success", "failed"]
    executed_at: datetime
    result: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

class ExecutionStats(BaseModel):
    rule_id: Optional[str] = None
    total: int
    successful: int
    failed: int
    success_rate: int

class DashboardSummary(BaseModel):
    total_rules: int
    active_rules: int
    total_executions: int
    successful_executions: int
    success_rate: int

# --- Tickets ---

class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: TicketPriority = "medium"
    status: TicketStatus = "open"
    created_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

class TicketResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    category: Optional[str] = None
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("ticket_metadata", "metadata")
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class EngineRunResponse(BaseModel):
    ticket: TicketResponse
    executions: List[ExecutionResponse]
