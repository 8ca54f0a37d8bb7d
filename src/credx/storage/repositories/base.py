from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Dict, Any, Type
from sqlalchemy.orm import Session

T = TypeVar("T")

class AppendOnlyRepository(Generic[T], ABC):
    """
    Session-scoped storage for a single mapped model that only grows.

    Subclasses set ``model`` and provide their own listing; writes only flush,
    committing is left to the caller's session scope.
    """

    model: Type[T]

    def create(self, session: Session, entity: T) -> T:
        session.add(entity)
        session.flush()
        return entity

    def get(self, session: Session, id: str) -> Optional[T]:
        return session.get(self.model, id)

    @abstractmethod
    def list(self, session: Session, limit: int = 100, offset: int = 0) -> List[T]:
        pass


class BaseRepository(AppendOnlyRepository[T]):
    """Session-scoped CRUD over a single mapped model."""

    def update(self, session: Session, id: str, updates: Dict[str, Any]) -> Optional[T]:
        entity = self.get(session, id)
        if entity is None:
            return None
        for key, value in updates.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        session.flush()
        return entity

    def delete(self, session: Session, id: str) -> bool:
        entity = self.get(session, id)
        if entity is None:
            return False
        session.delete(entity)
        session.flush()
        return True
