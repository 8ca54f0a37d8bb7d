from datetime import datetime, timezone
from typing import Optional, Dict, Any
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Text, JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

class Base(DeclarativeBase):
    pass

# Helper to support both Postgres JSONB and generic JSON (for SQLite tests)
JSON_TYPE = JSON().with_variant(JSONB, 'postgresql')
TIMESTAMP_TYPE = DateTime(timezone=True).with_variant(TIMESTAMP(timezone=True), 'postgresql')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Tickets ---

TICKET_STATUSES = (
    "open", "in_progress", "resolved", "approved", "rejected", "pending_approval", "closed",
)
TICKET_PRIORITIES = ("low", "medium", "high", "urgent")
UNRESOLVED_STATUSES = ("open", "in_progress", "pending_approval")


class TicketModel(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String, default="open", index=True)
    priority: Mapped[str] = mapped_column(String, default="medium", index=True)
    category: Mapped[Optional[str]] = mapped_column(String, index=True)
    created_by: Mapped[Optional[str]] = mapped_column(String)
    assigned_to: Mapped[Optional[str]] = mapped_column(String, index=True)

    # "metadata" is reserved on declarative classes
    ticket_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON_TYPE, default=dict)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow, onupdate=utcnow)

    def to_fact(self) -> Dict[str, Any]:
        """Snapshot of the ticket as a plain record for condition evaluation."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "category": self.category,
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "metadata": dict(self.ticket_metadata or {}),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

# --- Users ---

class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String)
    role: Mapped[str] = mapped_column(String, server_default='customer', index=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow, server_default=func.now())
