from datetime import datetime
from typing import Dict, Any, List, Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Boolean, Integer, Index

from credx.storage.models import Base, JSON_TYPE, TIMESTAMP_TYPE, utcnow

class RuleModel(Base):
    __tablename__ = "rules"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Normalized condition set: {"version": 1, "clauses": [{"field", "op", "value"}, ...]}
    conditions: Mapped[Dict[str, Any]] = mapped_column(JSON_TYPE, nullable=False)

    # Ordered effect list, e.g. [{"type": "assign_to_role", "role": "admin"}]
    actions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON_TYPE, nullable=False)

    # 1 is the highest precedence
    priority: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Audit fields
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow, onupdate=utcnow)
    created_by: Mapped[Optional[str]] = mapped_column(String)
    version: Mapped[int] = mapped_column(Integer, default=1)

    __table_args__ = (
        Index("ix_rules_active_priority", "is_active", "priority", "created_at"),
    )

class RuleExecutionModel(Base):
    __tablename__ = "rule_executions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    rule_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    # Null for manual runs that are not bound to a single ticket
    fact_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)

    # success | failed
    status: Mapped[str] = mapped_column(String, nullable=False, index=True)
    executed_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow, index=True)
    result: Mapped[Dict[str, Any]] = mapped_column(JSON_TYPE, default=dict)

class NotificationModel(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)

    ticket_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    rule_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    rule_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Status: unread, read
    status: Mapped[str] = mapped_column(String, default="unread", index=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON_TYPE, default=dict)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=utcnow)
    read_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP_TYPE, nullable=True)
