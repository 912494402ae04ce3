"""
Bug Exchange - Bug Transition Model

Append-only audit trail of status and assignment changes. Rows are ordered by
created_at, ties broken by the autoincrement id.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, Index, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from bugexchange.db.database import Base


class BugTransition(Base):
    """Immutable record of one status or assignment change"""
    __tablename__ = "bug_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bug_id: Mapped[str] = mapped_column(String(36), ForeignKey("bugs.id"))
    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20))
    assigned_to_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_bug_transitions_bug_id", "bug_id"),
    )

    # Relationships
    bug: Mapped["Bug"] = relationship("Bug", back_populates="transitions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bug_id": self.bug_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "assigned_to_id": self.assigned_to_id,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(BugTransition, "before_update")
def _forbid_update(mapper, connection, target):
    raise ValueError(f"Bug transition {target.id} is append-only and cannot be updated")


@event.listens_for(BugTransition, "before_delete")
def _forbid_delete(mapper, connection, target):
    raise ValueError(f"Bug transition {target.id} is append-only and cannot be deleted")
