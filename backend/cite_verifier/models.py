import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy import Enum as SAEnum

from .database import Base


class ValidationStatus(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


# Display label and severity for each status, shared by the API and CLI
STATUS_DISPLAY = {
    ValidationStatus.PENDING: ("Pending", "info"),
    ValidationStatus.VALID: ("Valid", "success"),
    ValidationStatus.INVALID: ("Invalid", "error"),
}


def _status_column():
    return Column(
        SAEnum(
            ValidationStatus,
            name="validation_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=ValidationStatus.PENDING,
    )


def _utcnow():
    return datetime.now(timezone.utc)


class Citation(Base):
    """One input line and everything the validation pass learned about it."""

    __tablename__ = "citations"

    id = Column(String(36), primary_key=True)
    sequence = Column(Integer, nullable=True, index=True)
    original_text = Column(Text, nullable=False)
    normalized_citation = Column(String, nullable=True)
    case_name = Column(Text, nullable=True)
    citation_status = _status_column()
    case_name_status = _status_column()

    # CourtListener cluster id and its page; always set or cleared together
    cluster_id = Column(String, nullable=True)
    courtlistener_url = Column(String, nullable=True)

    opinion_text = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __init__(self, original_text: str, **kwargs):
        if not original_text or not original_text.strip():
            raise ValueError("original_text must not be empty")
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("created_at", _utcnow())
        kwargs.setdefault("citation_status", ValidationStatus.PENDING)
        kwargs.setdefault("case_name_status", ValidationStatus.PENDING)
        super().__init__(original_text=original_text, **kwargs)

    def set_match(self, cluster_id, url: str):
        self.cluster_id = str(cluster_id)
        self.courtlistener_url = url

    def clear_match(self):
        self.cluster_id = None
        self.courtlistener_url = None

    @property
    def is_resolved(self) -> bool:
        return (
            self.citation_status != ValidationStatus.PENDING
            and self.case_name_status != ValidationStatus.PENDING
        )

    def resolve_pending(self):
        """Mark any status still pending as invalid."""
        if self.citation_status == ValidationStatus.PENDING:
            self.citation_status = ValidationStatus.INVALID
        if self.case_name_status == ValidationStatus.PENDING:
            self.case_name_status = ValidationStatus.INVALID

    def __repr__(self):
        return (
            f"<Citation {self.id} citation={self.citation_status.value} "
            f"case_name={self.case_name_status.value}>"
        )
