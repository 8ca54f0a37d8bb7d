from typing import List, Sequence
from sqlalchemy.orm import Session
from sqlalchemy import select

from credx.storage.models import TicketModel, UNRESOLVED_STATUSES
from .base import BaseRepository

class TicketRepository(BaseRepository[TicketModel]):
    """Tickets are the facts rules are evaluated against."""

    model = TicketModel

    def list(self, session: Session, limit: int = 100, offset: int = 0) -> List[TicketModel]:
        stmt = select(TicketModel).order_by(TicketModel.created_at.desc()).limit(limit).offset(offset)
        return list(session.scalars(stmt).all())

    def list_by_status(
        self,
        session: Session,
        statuses: Sequence[str] = UNRESOLVED_STATUSES,
        limit: int = 100,
    ) -> List[TicketModel]:
        """Oldest first, so a capped scan covers the longest-waiting tickets."""
        stmt = (
            select(TicketModel)
            .where(TicketModel.status.in_(list(statuses)))
            .order_by(TicketModel.created_at.asc())
            .limit(limit)
        )
        return list(session.scalars(stmt).all())
