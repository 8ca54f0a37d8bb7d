"""
Parsing of rule condition and action expressions.

Admins submit conditions and actions either as JSON text (the rules page
editor) or as decoded JSON. Both are normalized here into the structured
forms stored on a rule:

    conditions: {"version": 1, "clauses": [{"field": "priority", "op": "=", "value": "urgent"}]}
    actions:    [{"type": "assign_to_role", "role": "admin"}, {"type": "notify"}]

The object shorthand used by the rules page, e.g.
``{"priority": "high", "category": "technical"}`` for conditions and
``{"assign_to_role": "admin", "notify": true}`` (or ``{"route_to": "senior_support"}``)
for actions, is accepted too.
"""

import json
from typing import Any, Dict, List

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from credx.platform.config import settings
from credx.rules.errors import ValidationError
from credx.rules.schemas import ActionSpec, ConditionSet, RawExpression

_action_list = TypeAdapter(List[ActionSpec])

# Shorthand keys accepted in object-form actions
_ACTION_SHORTHAND = {
    "assign_to_role": lambda v: {"type": "assign_to_role", "role": settings.DEFAULT_ASSIGNEE_ROLE if v is True else v},
    "assign_to": lambda v: {"type": "assign_to_role", "role": settings.DEFAULT_ASSIGNEE_ROLE if v is True else v},
    "route_to": lambda v: {"type": "assign_to_role", "role": settings.DEFAULT_ASSIGNEE_ROLE if v is True else v},
    "escalate": lambda v: {"type": "escalate"} if v is True else {"type": "escalate", "to_priority": v},
    "notify": lambda v: {"type": "notify"} if v is True else {"type": "notify", "message": v},
}


def _decode(raw: RawExpression, what: str) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON format in {what}: {e.msg}") from e
    return raw


def _pydantic_message(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_conditions(raw: RawExpression) -> ConditionSet:
    """Parse conditions into a ``ConditionSet``, raising ``ValidationError`` if malformed."""
    data = _decode(raw, "conditions")

    if isinstance(data, list):
        data = {"clauses": data}
    elif isinstance(data, dict) and "clauses" not in data and "version" not in data:
        data = {
            "clauses": [{"field": field, "op": "=", "value": value} for field, value in data.items()]
        }
    elif not isinstance(data, dict):
        raise ValidationError("Conditions must be a list of clauses or an object")

    try:
        return ConditionSet.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid conditions: {_pydantic_message(e)}") from e


def parse_actions(raw: RawExpression) -> List[ActionSpec]:
    """Parse actions into an ordered list of typed actions."""
    data = _decode(raw, "actions")

    if isinstance(data, dict):
        if "type" in data:
            data = [data]
        else:
            expanded = []
            for key, value in data.items():
                if key not in _ACTION_SHORTHAND:
                    raise ValidationError(f"Unknown action '{key}'")
                if value is False or value is None:
                    continue
                expanded.append(_ACTION_SHORTHAND[key](value))
            data = expanded
    elif not isinstance(data, list):
        raise ValidationError("Actions must be a list of actions or an object")

    try:
        actions = _action_list.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid actions: {_pydantic_message(e)}") from e

    if not actions:
        raise ValidationError("A rule needs at least one action")
    return actions


def dump_conditions(conditions: ConditionSet) -> Dict[str, Any]:
    return conditions.model_dump(mode="json")


def dump_actions(actions: List[ActionSpec]) -> List[Dict[str, Any]]:
    return _action_list.dump_python(actions, mode="json", exclude_none=True)
