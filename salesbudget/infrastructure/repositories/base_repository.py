"""
Base Repository - shared plumbing for the row repositories.

Provides batched writes for all row models.
"""
from typing import Any, Dict, Generic, List, Type, TypeVar

from sqlalchemy import insert
from sqlalchemy.orm import Session

from salesbudget.models import Base

T = TypeVar('T', bound=Base)


class BaseRepository(Generic[T]):
    """
    Base repository bound to one session and one row model.

    Type Parameters:
        T: The SQLAlchemy model type this repository manages
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    def bulk_insert(self, rows: List[Dict[str, Any]], batch_size: int = 500) -> int:
        """
        Insert plain column mappings with one multi-row INSERT per batch.

        Runs inside the caller's transaction; nothing is committed here.

        Args:
            rows: Column name -> value mappings
            batch_size: Maximum rows per INSERT statement

        Returns:
            Number of rows inserted

        Raises:
            ValueError: If batch_size is below 1
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        inserted = 0
        for start in range(0, len(rows), batch_size):
            batch = rows[start:start + batch_size]
            self.session.execute(insert(self.model_class).values(batch))
            inserted += len(batch)
        return inserted
