"""
Rule engine exceptions.

Rule store mutations raise ``ValidationError`` and ``NotFound`` straight to the
caller. ``PersistenceError`` and ``EvaluationError`` are contained inside an
engine pass and only surface as failed executions.
"""


class RuleEngineError(Exception):
    """Base exception for rule engine operations."""
    pass


class ValidationError(RuleEngineError):
    """Raised when a rule definition is malformed."""
    pass


class NotFound(RuleEngineError):
    """Raised when a rule id does not exist."""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule '{rule_id}' not found")
        self.rule_id = rule_id


class PersistenceError(RuleEngineError):
    """Raised when the backing store is unreachable or rejects a write."""
    pass


class EvaluationError(RuleEngineError):
    """Raised when a condition or action cannot be evaluated against a ticket."""
    pass
