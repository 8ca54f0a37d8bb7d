from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select

from credx.storage.models import UserModel
from .base import BaseRepository

class UserRepository(BaseRepository[UserModel]):

    model = UserModel

    def list(self, session: Session, limit: int = 100, offset: int = 0) -> List[UserModel]:
        stmt = select(UserModel).limit(limit).offset(offset)
        return list(session.scalars(stmt).all())

    def first_by_role(self, session: Session, role: str) -> Optional[UserModel]:
        """Pick one user holding ``role``: earliest created wins, id breaks ties."""
        stmt = (
            select(UserModel)
            .where(UserModel.role == role)
            .order_by(UserModel.created_at.asc(), UserModel.id.asc())
            .limit(1)
        )
        return session.scalars(stmt).first()
