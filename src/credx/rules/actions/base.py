from abc import ABC, abstractmethod
from typing import Dict, Any
from sqlalchemy.orm import Session

from credx.rules.models import RuleModel
from credx.storage.models import TicketModel

class ActionContext:
    """
    Context passed to an action execution.
    Holds the matched ticket, the rule that fired and the DB session.
    """
    def __init__(self, ticket: TicketModel, rule: RuleModel, session: Session):
        self.ticket = ticket
        self.rule = rule
        self.session = session

    @property
    def rule_name(self) -> str:
        return self.rule.name

class Action(ABC):
    """
    Base class for effects applied to a ticket when a rule matches.
    """

    @property
    @abstractmethod
    def type_name(self) -> str:
        """The identifier for this action type (e.g., 'assign_to_role', 'notify')."""
        pass

    @abstractmethod
    async def execute(self, config: Any, context: ActionContext) -> Dict[str, Any]:
        """
        Apply the effect.

        Args:
            config: The typed action from the rule (e.g. ``AssignToRole(role="admin")``)
            context: The matched ticket and rule

        Returns:
            An outcome record, at least {"type": ..., "status": "applied" | "skipped" | ...}
        """
        pass
