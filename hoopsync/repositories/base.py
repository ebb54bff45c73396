"""
Base repository class for the local store.

Every synchronized model carries an immutable ``external_id``; the base class
offers ``upsert_by_external_id`` so reconciliation never keys on the local id.

Example:
    class GameRepository(BaseRepository[Game]):
        def find_final_on(self, game_date: date) -> List[Game]:
            return self.where(Game.game_date == game_date, Game.status == GameStatus.FINAL)
"""
import uuid
from abc import ABC
from datetime import datetime
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from hoopsync.core.exceptions import PersistenceError

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Common reads plus the external-id upsert.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session (owned by the caller)
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # Reads
    # ========================================================================

    def query(self) -> Query:
        return self.db.query(self.model_type)

    def find_by_id(self, id: str) -> Optional[T]:
        return self.query().filter(self.model_type.id == id).first()

    def find_by_external_id(self, external_id: str) -> Optional[T]:
        return self.query().filter(self.model_type.external_id == str(external_id)).first()

    def find_ordered(self, column: str) -> List[T]:
        return self.query().order_by(getattr(self.model_type, column)).all()

    def where(self, *criterion) -> List[T]:
        return self.query().filter(*criterion).all()

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    def count_all(self) -> int:
        return self.count()

    def in_date_range(self, date_field: str, start: Any, end: Any) -> List[T]:
        """Records whose ``date_field`` lies within [start, end] inclusive, oldest first."""
        column = getattr(self.model_type, date_field)
        return self.query().filter(column >= start, column <= end).order_by(column).all()

    # ========================================================================
    # Writes
    # ========================================================================

    def upsert_by_external_id(self, external_id: str, **fields) -> str:
        """
        Insert or update the record identified by ``external_id``.

        Repeating the call with the same fields leaves exactly one row with
        those fields, and ``updated_at`` only moves when a field changed.
        Returns the local ID.
        """
        external_id = str(external_id)
        instance = self.find_by_external_id(external_id)
        now = datetime.utcnow()

        if instance is None:
            instance = self.model_type(
                id=str(uuid.uuid4()),
                external_id=external_id,
                created_at=now,
                updated_at=now,
                **fields
            )
            self.db.add(instance)
            return instance.id

        changed = [key for key, value in fields.items() if getattr(instance, key) != value]
        for key in changed:
            setattr(instance, key, fields[key])
        if changed:
            instance.updated_at = now
        return instance.id

    def flush(self) -> None:
        self.db.flush()

    def save(self) -> None:
        """Commit pending changes; the session is rolled back on failure."""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save {self.model_type.__name__}: {e}") from e
