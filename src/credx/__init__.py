"""
credX Rules - Ticket routing and automation engine for the credX platform

This package contains the rule engine backing the credX admin dashboard and
customer portal:
- api: FastAPI REST endpoints (rules, executions, tickets)
- rules: Rule Engine (rule store, condition evaluator, actions, execution log)
- storage: Database models, adapters and repositories
- platform: Cross-cutting concerns (configuration, logging)
"""

__version__ = "0.1.0"
