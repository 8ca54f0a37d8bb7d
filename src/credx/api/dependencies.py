from typing import Generator

from sqlalchemy.orm import Session

from credx.platform.config import settings
from credx.rules.actions.registry import init_actions
from credx.rules.engine.rule_engine import RuleEngine
from credx.rules.execution_log import ExecutionLog
from credx.rules.repository import RuleRepository
from credx.rules.service import RuleService
from credx.storage.postgres_adapter import PostgresAdapter, PostgresConfig

__all__ = [
    "get_db",
    "get_postgres_adapter",
    "get_rule_service",
    "get_rule_engine",
    "get_execution_log",
    "init_resources",
    "close_resources",
]

# Singletons
_postgres_adapter: PostgresAdapter | None = None
_rule_engine: RuleEngine | None = None


def get_postgres_adapter() -> PostgresAdapter:
    global _postgres_adapter
    if not _postgres_adapter:
        _postgres_adapter = PostgresAdapter(PostgresConfig())
    return _postgres_adapter

def get_db() -> Generator[Session, None, None]:
    """One transaction per request: committed on success, rolled back on error."""
    with get_postgres_adapter().get_session() as session:
        yield session

def get_execution_log() -> ExecutionLog:
    return ExecutionLog()

def get_rule_service() -> RuleService:
    return RuleService(RuleRepository(), ExecutionLog())

def get_rule_engine() -> RuleEngine:
    global _rule_engine
    if not _rule_engine:
        _rule_engine = RuleEngine()
    return _rule_engine


def init_resources() -> None:
    """Connect the database and register the default action handlers."""
    adapter = get_postgres_adapter()
    adapter.connect()
    if settings.DB_CREATE_TABLES:
        adapter.create_tables()
    init_actions()

def close_resources() -> None:
    global _postgres_adapter, _rule_engine
    if _postgres_adapter:
        _postgres_adapter.close()
        _postgres_adapter = None
    _rule_engine = None
