"""
Bug Exchange - Comment Model
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import String, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from bugexchange.db.database import Base
import uuid


class Comment(Base):
    """Discussion on a bug or a submission; replies point at a top-level comment"""
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    content: Mapped[str] = mapped_column(Text)
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    bug_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("bugs.id"), nullable=True)
    submission_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("submissions.id"), nullable=True)
    parent_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("comments.id"), nullable=True)
    mentions: Mapped[list] = mapped_column(JSON, default=list)  # ids of @mentioned users
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_comments_bug_id", "bug_id"),
        Index("idx_comments_submission_id", "submission_id"),
    )

    # Relationships
    author: Mapped["User"] = relationship("User")
    parent: Mapped[Optional["Comment"]] = relationship(
        "Comment", back_populates="replies", remote_side="Comment.id"
    )
    replies: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="parent", order_by="Comment.created_at"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "author_id": self.author_id,
            "bug_id": self.bug_id,
            "submission_id": self.submission_id,
            "parent_id": self.parent_id,
            "mentions": self.mentions or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
