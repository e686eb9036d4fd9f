# backend/app/repositories/base_repository.py
"""
Base Repository for Coursehub chat.

Repositories own every query; services own transactions. Nothing here
commits: writes are flushed so ids exist, and the calling service's
``transaction()`` decides when they become durable.

Deletes are soft for models carrying ``SoftDeleteMixin`` (messages,
attachments, conversations, courses, lessons, users) and hard otherwise
(memberships, read marks, hearts).
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database.soft_delete import SoftDeleteMixin

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """Data access surface every repository provides."""

    @abstractmethod
    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Entity by primary key, or None."""

    @abstractmethod
    def create(self, **kwargs) -> T:
        """
        Create and flush a new entity.

        Raises:
            RepositoryException: If creation fails
        """

    @abstractmethod
    def update(self, id: str, **kwargs) -> Optional[T]:
        """Set the given attributes; None when the entity does not exist."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Soft or hard delete; False when the entity does not exist."""

    @abstractmethod
    def count(self, **kwargs) -> int:
        """Number of entities matching exact-match criteria."""


class BaseRepository(IRepository[T]):
    """
    Default implementations over a SQLAlchemy session.

    Attributes:
        db: SQLAlchemy session (managed by the service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate driver errors into RepositoryException."""
        try:
            yield
        except IntegrityError as e:
            self.logger.error(f"Integrity error while {action} {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {str(e)}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Error while {action} {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed {action} {self.model.__name__}: {str(e)}") from e

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        with self._guard("loading"):
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()

    def create(self, **kwargs) -> T:
        """Note: Does NOT commit - transaction management is handled by service layer."""
        with self._guard("creating"):
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity

    def update(self, id: str, **kwargs) -> Optional[T]:
        with self._guard("updating"):
            entity = self.get_by_id(id, load_relationships=False)
            if not entity:
                return None
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
            return entity

    def delete(self, id: str) -> bool:
        with self._guard("deleting"):
            entity = self.get_by_id(id, load_relationships=False)
            if not entity:
                return False
            if isinstance(entity, SoftDeleteMixin):
                entity.soft_delete()
            else:
                self.db.delete(entity)
            self.db.flush()
            return True

    def count(self, **kwargs) -> int:
        with self._guard("counting"):
            return self.db.query(self.model).filter_by(**kwargs).count()

    def find_by(self, **kwargs) -> List[T]:
        """All entities matching exact-match criteria."""
        with self._guard("finding"):
            return self.db.query(self.model).filter_by(**kwargs).all()

    def find_one_by(self, **kwargs) -> Optional[T]:
        with self._guard("finding"):
            return self.db.query(self.model).filter_by(**kwargs).first()

    def bulk_create(self, rows: List[Dict[str, Any]]) -> List[T]:
        """Create many entities with a single flush."""
        if not rows:
            return []
        with self._guard("bulk creating"):
            entities = [self.model(**data) for data in rows]
            self.db.add_all(entities)
            self.db.flush()
            return entities

    def _apply_eager_loading(self, query: Query) -> Query:
        """
        Apply eager loading to relationships.

        Override in subclasses to specify which relationships to load.
        """
        return query
