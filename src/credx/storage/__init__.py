"""credX Storage Layer - Database models, adapter and repositories."""

from .postgres_adapter import PostgresAdapter, PostgresConfig
from .models import Base, TicketModel, UserModel

__all__ = [
    "PostgresAdapter",
    "PostgresConfig",
    "Base",
    "TicketModel",
    "UserModel",
]
