import logging
from typing import Dict, Any

from credx.rules.errors import PersistenceError
from credx.rules.schemas import Escalate
from credx.storage.models import TICKET_PRIORITIES
from credx.storage.repositories.ticket_repository import TicketRepository
from .base import Action, ActionContext

logger = logging.getLogger(__name__)

class EscalateAction(Action):
    """
    Raises ticket priority one level (low -> medium -> high -> urgent), or to an
    explicit level. Never lowers priority.
    """

    def __init__(self, tickets: TicketRepository = None):
        self.tickets = tickets or TicketRepository()

    @property
    def type_name(self) -> str:
        return "escalate"

    async def execute(self, config: Escalate, context: ActionContext) -> Dict[str, Any]:
        current = context.ticket.priority
        rank = TICKET_PRIORITIES.index(current) if current in TICKET_PRIORITIES else 0

        if config.to_priority is not None:
            target = config.to_priority
        elif rank + 1 < len(TICKET_PRIORITIES):
            target = TICKET_PRIORITIES[rank + 1]
        else:
            target = current

        if current in TICKET_PRIORITIES and TICKET_PRIORITIES.index(target) <= rank:
            return {"type": self.type_name, "status": "skipped", "reason": f"priority already '{current}'"}

        metadata = dict(context.ticket.ticket_metadata or {})
        metadata["escalated"] = True
        metadata["escalated_by_rule"] = context.rule_name
        metadata["previous_priority"] = current

        updated = self.tickets.update(context.session, context.ticket.id, {
            "priority": target,
            "ticket_metadata": metadata,
        })
        if updated is None:
            raise PersistenceError(f"Ticket {context.ticket.id} no longer exists")

        logger.info(f"Ticket {context.ticket.id} escalated {current} -> {target} by rule '{context.rule_name}'")
        return {"type": self.type_name, "status": "applied", "from": current, "to": target}
