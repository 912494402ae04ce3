"""
Bug Exchange - Reputation Ledger Entry Model
"""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from bugexchange.db.database import Base
import uuid


class ReputationEntry(Base):
    """One signed reputation delta, keyed by the event that produced it"""
    __tablename__ = "reputation_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    event_type: Mapped[str] = mapped_column(String(50))  # submission_approved
    event_id: Mapped[str] = mapped_column(String(36))
    delta: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("event_type", "event_id", name="uq_reputation_event"),
        Index("idx_reputation_entries_user_id", "user_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "event_id": self.event_id,
            "delta": self.delta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
