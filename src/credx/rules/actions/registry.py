from typing import Dict, List, Optional
import logging
from .base import Action

logger = logging.getLogger(__name__)

class ActionRegistry:
    """
    Registry for available action types.
    """

    _actions: Dict[str, Action] = {}

    @classmethod
    def register(cls, action: Action) -> None:
        """Register an action handler, replacing any handler of the same type."""
        name = action.type_name
        if name in cls._actions:
            logger.debug(f"Action type '{name}' already registered. Overwriting.")
        cls._actions[name] = action
        logger.debug(f"Registered action handler for type: '{name}'")

    @classmethod
    def get(cls, type_name: str) -> Action:
        """Get an action handler by type."""
        handler = cls._actions.get(type_name)
        if not handler:
            raise KeyError(f"Action type '{type_name}' not found. Registered: {list(cls._actions.keys())}")
        return handler

    @classmethod
    def registered(cls) -> List[str]:
        return sorted(cls._actions)

    @classmethod
    def clear(cls) -> None:
        cls._actions = {}

# Default handlers
from .assign_action import AssignToRoleAction
from .escalate_action import EscalateAction
from .notify_action import NotifyAction
from credx.rules.notifications import NotificationDispatcher

def init_actions(dispatchers: Optional[Dict[str, NotificationDispatcher]] = None) -> None:
    ActionRegistry.register(AssignToRoleAction())
    ActionRegistry.register(EscalateAction())
    ActionRegistry.register(NotifyAction(dispatchers))
