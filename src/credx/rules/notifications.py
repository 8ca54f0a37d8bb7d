import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from uuid import uuid4

import httpx
from sqlalchemy.orm import Session

from credx.platform.config import settings
from credx.rules.models import NotificationModel, RuleModel
from credx.storage.models import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Rule '{{ rule_name }}' matched ticket '{{ title }}' ({{ priority }})"


def render_template(template: str, rule: RuleModel, fact: Dict[str, Any]) -> str:
    """Substitute ``{{ rule_name }}`` and ``{{ <ticket field> }}`` placeholders."""
    text = template.replace("{{ rule_name }}", rule.name)
    for key, value in fact.items():
        if isinstance(value, (str, int, float, bool)):
            text = text.replace(f"{{{{ {key} }}}}", str(value))
    return text


class NotificationDispatcher(ABC):
    """
    Delivers a notice that a rule fired for a ticket.
    """

    @property
    @abstractmethod
    def channel(self) -> str:
        """The channel identifier (e.g., 'in_app', 'webhook')."""
        pass

    @abstractmethod
    async def send_notification(
        self,
        fact: Dict[str, Any],
        rule: RuleModel,
        session: Optional[Session] = None,
        message: Optional[str] = None,
    ) -> None:
        pass


class InAppNotificationDispatcher(NotificationDispatcher):
    """
    Writes a notification row for the ticket's assignee (or its creator when
    nobody is assigned yet).
    """

    @property
    def channel(self) -> str:
        return "in_app"

    async def send_notification(self, fact, rule, session=None, message=None) -> None:
        if session is None:
            raise RuntimeError(f"No DB session for in-app notification of rule '{rule.name}'")

        notification = NotificationModel(
            id=str(uuid4()),
            user_id=fact.get("assigned_to") or fact.get("created_by"),
            ticket_id=fact.get("id"),
            rule_id=rule.id,
            rule_name=rule.name,
            title=render_template("Ticket routed by {{ rule_name }}", rule, fact),
            message=render_template(message or DEFAULT_MESSAGE, rule, fact),
            data={"ticket_id": fact.get("id"), "status": fact.get("status")},
            created_at=utcnow(),
        )
        session.add(notification)
        logger.info(f"In-app notification queued for ticket {fact.get('id')} by rule '{rule.name}'")


class WebhookNotificationDispatcher(NotificationDispatcher):
    """
    Posts a JSON notice to a webhook (Slack-compatible ``text`` field).
    """

    def __init__(self, webhook_url: str, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    @property
    def channel(self) -> str:
        return "webhook"

    async def send_notification(self, fact, rule, session=None, message=None) -> None:
        if not self.webhook_url:
            raise RuntimeError(f"Webhook URL missing for rule '{rule.name}'")

        payload = {
            "text": render_template(message or DEFAULT_MESSAGE, rule, fact),
            "ticket_id": fact.get("id"),
            "rule_id": rule.id,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        logger.info(f"Webhook notification sent for ticket {fact.get('id')} by rule '{rule.name}'")


def default_dispatchers() -> Dict[str, NotificationDispatcher]:
    dispatchers: Dict[str, NotificationDispatcher] = {"in_app": InAppNotificationDispatcher()}
    if settings.NOTIFICATION_WEBHOOK_URL:
        dispatchers["webhook"] = WebhookNotificationDispatcher(
            settings.NOTIFICATION_WEBHOOK_URL, timeout=settings.NOTIFICATION_TIMEOUT_SECONDS
        )
    return dispatchers
