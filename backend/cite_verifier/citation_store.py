import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Citation

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when citation records could not be made durable."""


class CitationStore:
    """Insert, list and delete citation records on a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self._next_sequence = None

    def insert(self, citation: Citation):
        if self._next_sequence is None:
            current = self.db.query(func.max(Citation.sequence)).scalar()
            self._next_sequence = (current or 0) + 1
        citation.sequence = self._next_sequence
        self._next_sequence += 1
        self.db.add(citation)

    def delete(self, citation: Citation):
        self.db.delete(citation)

    def get(self, citation_id: str) -> Optional[Citation]:
        return self.db.query(Citation).filter(Citation.id == citation_id).first()

    def list(self) -> List[Citation]:
        return self.db.query(Citation).order_by(Citation.sequence, Citation.created_at).all()

    def commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self._next_sequence = None
            logger.error(f"Commit failed: {e}")
            raise PersistenceError(f"Could not save citation records: {e}") from e

    def delete_all(self):
        deleted = self.db.query(Citation).delete()
        self.commit()
        self._next_sequence = None
        logger.info(f"Deleted {deleted} citation records")
