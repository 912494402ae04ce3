"""
Bug Exchange - Submission Model
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from bugexchange.db.database import Base
import uuid


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Submission(Base):
    """A proposed fix for a bug, made by someone other than its author"""
    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    bug_id: Mapped[str] = mapped_column(String(36), ForeignKey("bugs.id"))
    submitter_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    description: Mapped[str] = mapped_column(Text)
    solution: Mapped[str] = mapped_column(Text)
    language: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=SubmissionStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_submissions_bug_id", "bug_id"),
    )

    # Relationships
    bug: Mapped["Bug"] = relationship("Bug", back_populates="submissions")
    submitter: Mapped["User"] = relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bug_id": self.bug_id,
            "submitter_id": self.submitter_id,
            "description": self.description,
            "solution": self.solution,
            "language": self.language,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
