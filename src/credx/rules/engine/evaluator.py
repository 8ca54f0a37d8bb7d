import logging
from typing import Any, Dict, Union

from pydantic import ValidationError as PydanticValidationError

from credx.rules.errors import EvaluationError
from credx.rules.schemas import ConditionSet, FieldEquals

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (str, int, float, bool, type(None))


class ConditionEvaluator:
    """
    Evaluates a rule's condition set against a ticket record.

    Clauses are AND-ed. A clause naming a field the ticket does not carry never
    matches. Evaluation only reads ``fact``.
    """

    def evaluate(self, conditions: Union[ConditionSet, Dict[str, Any]], fact: Dict[str, Any]) -> bool:
        """
        Args:
            conditions: A ``ConditionSet`` or its stored dict form
                (e.g. {"version": 1, "clauses": [{"field": "priority", "op": "=", "value": "urgent"}]})
            fact: The ticket record (e.g. {"priority": "urgent", "category": "service", ...})

        Returns:
            bool: True if every clause holds.

        Raises:
            EvaluationError: stored conditions are malformed, or a clause compares
                values of incompatible types.
        """
        condition_set = self._coerce(conditions)
        for clause in condition_set.clauses:
            if not self._clause_holds(clause, fact):
                return False
        return True

    def _coerce(self, conditions: Union[ConditionSet, Dict[str, Any]]) -> ConditionSet:
        if isinstance(conditions, ConditionSet):
            return conditions
        try:
            return ConditionSet.model_validate(conditions)
        except PydanticValidationError as e:
            raise EvaluationError(f"Stored conditions are malformed: {e.error_count()} error(s)") from e

    def _clause_holds(self, clause: FieldEquals, fact: Dict[str, Any]) -> bool:
        if clause.field not in fact:
            logger.debug(f"Field '{clause.field}' absent from ticket, clause does not match")
            return False

        actual = fact[clause.field]
        expected = clause.value
        if not isinstance(actual, _SCALAR_TYPES) or not isinstance(expected, _SCALAR_TYPES):
            raise EvaluationError(
                f"Cannot compare field '{clause.field}' of type {type(actual).__name__} "
                f"with {type(expected).__name__}"
            )

        # True == 1 in Python; booleans only equal booleans here
        if isinstance(actual, bool) != isinstance(expected, bool):
            return False
        return actual == expected
