"""
Bug Exchange - Comment Schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    """Schema for posting a comment; one of bug_id / submission_id is required"""
    content: str = Field(..., min_length=1, description="Comment text; @name mentions a user")
    bug_id: Optional[str] = None
    submission_id: Optional[str] = None
    parent_id: Optional[str] = Field(None, description="Top-level comment this replies to")


class CommentAuthor(BaseModel):
    id: str
    name: Optional[str]

    class Config:
        from_attributes = True


class CommentReply(BaseModel):
    """Schema for a comment without its replies"""
    id: str
    content: str
    author: CommentAuthor
    bug_id: Optional[str]
    submission_id: Optional[str]
    parent_id: Optional[str]
    mentions: List[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class CommentResponse(CommentReply):
    """Schema for a top-level comment with its replies, oldest reply first"""
    replies: List[CommentReply] = []
