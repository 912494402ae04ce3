"""
Bug Exchange - Submission Schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from bugexchange.models.submission import SubmissionStatus


class SubmissionCreate(BaseModel):
    """Schema for proposing a fix"""
    description: str = Field(..., min_length=20, description="What the fix does")
    solution: str = Field(..., min_length=50, description="The fix itself")
    language: Optional[str] = Field(None, max_length=50)


class SubmissionResponse(BaseModel):
    """Schema for submission response"""
    id: str
    bug_id: str
    submitter_id: str
    description: str
    solution: str
    language: Optional[str]
    status: SubmissionStatus
    created_at: datetime

    class Config:
        from_attributes = True


class ArbitrationResponse(BaseModel):
    """Outcome of an approve or reject request"""
    message: str
    submission_id: str
    bug_id: str
    bug_status: str
    reputation_awarded: int = 0
