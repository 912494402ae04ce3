"""
Bug Exchange - Bug Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from bugexchange.config import settings
from bugexchange.models.bug import BugStatus, BugCategory, BugPriority, BugSeverity


class BugCreate(BaseModel):
    """Schema for reporting a new bug"""
    title: str = Field(..., min_length=5, max_length=255, description="Short summary of the bug")
    description: str = Field(..., min_length=20, description="Full description")
    stack_trace: Optional[str] = None
    repo_snippet: Optional[str] = None
    bounty_amount: Decimal = Field(..., description="Bounty offered for an approved fix")
    tags: List[str] = Field(..., min_length=1, description="At least one tag")
    category: BugCategory = BugCategory.FUNCTIONALITY
    priority: BugPriority = BugPriority.MEDIUM
    severity: BugSeverity = BugSeverity.MODERATE
    assigned_to_id: Optional[str] = None

    @field_validator('bounty_amount')
    @classmethod
    def validate_bounty(cls, v: Decimal) -> Decimal:
        if v < settings.MIN_BOUNTY:
            raise ValueError(f"Minimum bounty is {settings.MIN_BOUNTY}")
        return v

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        cleaned = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in cleaned:
                cleaned.append(tag)
        if not cleaned:
            raise ValueError("At least one tag is required")
        return cleaned


class BugResponse(BaseModel):
    """Schema for bug response"""
    id: str
    title: str
    description: str
    stack_trace: Optional[str]
    repo_snippet: Optional[str]
    bounty_amount: Decimal
    tags: List[str]
    status: BugStatus
    category: BugCategory
    priority: BugPriority
    severity: BugSeverity
    author_id: str
    assigned_to_id: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusChangeRequest(BaseModel):
    """Schema for a bug status change"""
    status: BugStatus
    notes: Optional[str] = Field(None, max_length=2000)


class AssignmentRequest(BaseModel):
    """Schema for assigning or unassigning a bug"""
    assigned_to_id: Optional[str] = Field(None, description="User to assign; empty to unassign")
    notes: Optional[str] = Field(None, max_length=2000)


class TransitionResponse(BaseModel):
    """Schema for one audit trail entry"""
    id: int
    bug_id: str
    from_status: Optional[BugStatus]
    to_status: BugStatus
    assigned_to_id: Optional[str]
    notes: str
    created_at: datetime

    class Config:
        from_attributes = True


class DuplicateCheckRequest(BaseModel):
    """Schema for a duplicate check; at least one field must be set"""
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    stack_trace: Optional[str] = None


class DuplicateMatch(BugResponse):
    """An existing bug annotated with its similarity score"""
    similarity_score: int = Field(..., ge=0, le=100)


class DuplicateCheckResponse(BaseModel):
    duplicates: List[DuplicateMatch]
