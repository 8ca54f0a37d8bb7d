import logging
from typing import Dict, Any, Optional

from credx.platform.config import settings
from credx.rules.notifications import NotificationDispatcher, default_dispatchers
from credx.rules.schemas import Notify
from .base import Action, ActionContext

logger = logging.getLogger(__name__)

class NotifyAction(Action):
    """
    Hands the ticket to a notification dispatcher. Fire-and-forget: delivery
    failures are logged and reported in the outcome, never raised.
    """

    def __init__(self, dispatchers: Optional[Dict[str, NotificationDispatcher]] = None):
        self.dispatchers = dispatchers if dispatchers is not None else default_dispatchers()

    @property
    def type_name(self) -> str:
        return "notify"

    async def execute(self, config: Notify, context: ActionContext) -> Dict[str, Any]:
        channel = config.channel or settings.NOTIFICATION_CHANNEL
        dispatcher = self.dispatchers.get(channel)
        if dispatcher is None:
            logger.error(f"No '{channel}' notification dispatcher for rule '{context.rule_name}'")
            return {"type": self.type_name, "status": "dispatch_failed", "channel": channel,
                    "error": f"channel '{channel}' not configured"}

        try:
            await dispatcher.send_notification(
                context.ticket.to_fact(), context.rule, session=context.session, message=config.message
            )
        except Exception as e:
            logger.error(f"Notification for ticket {context.ticket.id} by rule '{context.rule_name}' failed: {e}")
            return {"type": self.type_name, "status": "dispatch_failed", "channel": channel, "error": str(e)}

        return {"type": self.type_name, "status": "sent", "channel": channel}
