import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from credx.rules.actions.base import ActionContext
from credx.rules.actions.registry import ActionRegistry
from credx.rules.errors import EvaluationError, PersistenceError, RuleEngineError, ValidationError
from credx.rules.expressions import parse_actions
from credx.rules.models import RuleModel
from credx.storage.models import TicketModel

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of applying one rule's actions to one ticket."""

    effects: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def fail(self, error: Exception) -> None:
        # Keep the first failure; later effects are still attempted
        if self.error is None:
            self.error = str(error)
            self.error_type = type(error).__name__

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "effects": self.effects}
        if self.error is not None:
            payload["error"] = self.error
            payload["error_type"] = self.error_type
        return payload


class ActionExecutor:
    """
    Applies a rule's actions to a matched ticket, in order.

    Actions are independent: a failing action is recorded and the remaining
    ones still run. Each action runs in its own savepoint, so a failed action
    leaves nothing behind while effects of earlier actions are kept.
    """

    def __init__(self, registry: Type[ActionRegistry] = ActionRegistry):
        self.registry = registry

    async def execute(self, actions: Any, ticket: TicketModel, rule: RuleModel, session: Session) -> ExecutionResult:
        try:
            specs = parse_actions(actions)
        except ValidationError as e:
            raise EvaluationError(f"Stored actions of rule '{rule.name}' are malformed: {e}") from e

        context = ActionContext(ticket=ticket, rule=rule, session=session)
        result = ExecutionResult()

        for spec in specs:
            savepoint = session.begin_nested()
            try:
                handler = self.registry.get(spec.type)
                outcome = await handler.execute(spec, context)
            except KeyError as e:
                error = EvaluationError(str(e.args[0]) if e.args else f"Unknown action '{spec.type}'")
            except SQLAlchemyError as e:
                error = PersistenceError(f"Store rejected '{spec.type}' for ticket {ticket.id}: {e}")
            except RuleEngineError as e:
                error = e
            except Exception as e:
                logger.error(f"Action '{spec.type}' crashed for rule {rule.id}: {e}", exc_info=True)
                error = EvaluationError(f"Action '{spec.type}' failed: {e}")
            else:
                savepoint.commit()
                result.effects.append(outcome)
                continue

            savepoint.rollback()
            logger.error(f"Action '{spec.type}' failed for rule {rule.id} on ticket {ticket.id}: {error}")
            result.effects.append({"type": spec.type, "status": "failed", "error": str(error)})
            result.fail(error)

        return result
