"""
Bug Exchange - User Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    id: str
    name: Optional[str]
    reputation: int
    bug_count: int = 0
    submission_count: int = 0
    approved_submissions: int = 0


class ReputationEntryResponse(BaseModel):
    id: str
    user_id: str
    event_type: str
    event_id: str
    delta: int
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityUser(BaseModel):
    id: str
    name: Optional[str]


class ActivityBug(BaseModel):
    id: str
    title: str
    bounty_amount: Decimal


class ActivityItem(BaseModel):
    """One entry of the recent-activity feed"""
    id: str
    type: str  # bug_posted | submission_made | submission_approved
    created_at: datetime
    user: ActivityUser
    bug: ActivityBug
