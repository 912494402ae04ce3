"""
Bug Exchange - Users API Endpoints
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.core.reputation import ReputationLedger
from bugexchange.db.database import get_db
from bugexchange.schemas.user import ActivityItem, LeaderboardEntry, ReputationEntryResponse
from bugexchange.services.bug_service import BugService, get_user_or_404

router = APIRouter()


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def leaderboard(db: AsyncSession = Depends(get_db)):
    """Top users by reputation"""
    return await BugService(db).leaderboard(limit=10)


@router.get("/users/{user_id}/reputation", response_model=List[ReputationEntryResponse])
async def reputation_history(user_id: str, db: AsyncSession = Depends(get_db)):
    """Reputation ledger entries for a user, oldest first"""
    await get_user_or_404(db, user_id)
    return await ReputationLedger(db).entries_for(user_id)


@router.get("/activity", response_model=List[ActivityItem])
async def recent_activity(db: AsyncSession = Depends(get_db)):
    """Latest bugs posted and submissions made"""
    return await BugService(db).recent_activity(limit=10)
