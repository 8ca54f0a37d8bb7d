import logging
from typing import Dict, Any

from credx.rules.errors import PersistenceError
from credx.rules.schemas import AssignToRole
from credx.storage.repositories.ticket_repository import TicketRepository
from credx.storage.repositories.user_repository import UserRepository
from .base import Action, ActionContext

logger = logging.getLogger(__name__)

class AssignToRoleAction(Action):
    """
    Assigns the ticket to a user holding the configured role and moves it to
    ``in_progress``. Best-effort: when nobody holds the role the ticket is left
    untouched.
    """

    def __init__(self, users: UserRepository = None, tickets: TicketRepository = None):
        self.users = users or UserRepository()
        self.tickets = tickets or TicketRepository()

    @property
    def type_name(self) -> str:
        return "assign_to_role"

    async def execute(self, config: AssignToRole, context: ActionContext) -> Dict[str, Any]:
        assignee = self.users.first_by_role(context.session, config.role)
        if assignee is None:
            logger.warning(f"No user with role '{config.role}' for rule '{context.rule_name}', skipping assignment")
            return {"type": self.type_name, "status": "skipped", "reason": f"no user with role '{config.role}'"}

        metadata = dict(context.ticket.ticket_metadata or {})
        metadata["auto_assigned"] = True
        metadata["rule_applied"] = context.rule_name

        updated = self.tickets.update(context.session, context.ticket.id, {
            "assigned_to": assignee.id,
            "status": "in_progress",
            "ticket_metadata": metadata,
        })
        if updated is None:
            raise PersistenceError(f"Ticket {context.ticket.id} no longer exists")

        logger.info(f"Ticket {context.ticket.id} auto-assigned to {assignee.id} by rule '{context.rule_name}'")
        return {"type": self.type_name, "status": "applied", "assigned_to": assignee.id}
