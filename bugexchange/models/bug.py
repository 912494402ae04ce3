"""
Bug Exchange - Bug Model
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from sqlalchemy import String, DateTime, Text, JSON, Numeric, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from bugexchange.db.database import Base
import uuid


class BugStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    CLAIMED = "CLAIMED"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    VERIFIED = "VERIFIED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"
    DUPLICATE = "DUPLICATE"


class BugCategory(str, Enum):
    SECURITY = "SECURITY"
    PERFORMANCE = "PERFORMANCE"
    UI_UX = "UI_UX"
    FUNCTIONALITY = "FUNCTIONALITY"
    ACCESSIBILITY = "ACCESSIBILITY"
    COMPATIBILITY = "COMPATIBILITY"
    DOCUMENTATION = "DOCUMENTATION"
    OTHER = "OTHER"


class BugPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class BugSeverity(str, Enum):
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    BLOCKER = "BLOCKER"


class Bug(Base):
    """A reported defect carrying a bounty"""
    __tablename__ = "bugs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)
    stack_trace: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    repo_snippet: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bounty_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    tags: Mapped[list] = mapped_column(JSON, default=list)

    status: Mapped[str] = mapped_column(String(20), default=BugStatus.OPEN.value)

    # Informational only, never consulted by the lifecycle policy
    category: Mapped[str] = mapped_column(String(20), default=BugCategory.FUNCTIONALITY.value)
    priority: Mapped[str] = mapped_column(String(20), default=BugPriority.MEDIUM.value)
    severity: Mapped[str] = mapped_column(String(20), default=BugSeverity.MODERATE.value)

    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    assigned_to_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_bugs_status", "status"),
        Index("idx_bugs_author_id", "author_id"),
    )

    # Relationships
    author: Mapped["User"] = relationship("User", foreign_keys=[author_id])
    assigned_to: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_to_id])
    submissions: Mapped[List["Submission"]] = relationship("Submission", back_populates="bug")
    transitions: Mapped[List["BugTransition"]] = relationship(
        "BugTransition", back_populates="bug", order_by="BugTransition.id"
    )

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "stack_trace": self.stack_trace,
            "repo_snippet": self.repo_snippet,
            "bounty_amount": str(self.bounty_amount) if self.bounty_amount is not None else None,
            "tags": list(self.tags or []),
            "status": self.status,
            "category": self.category,
            "priority": self.priority,
            "severity": self.severity,
            "author_id": self.author_id,
            "assigned_to_id": self.assigned_to_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
