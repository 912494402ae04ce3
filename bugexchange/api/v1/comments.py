"""
Bug Exchange - Comments API Endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.api.deps import get_actor, get_notifier
from bugexchange.core.lifecycle import Actor
from bugexchange.core.notifier import Notifier
from bugexchange.db.database import get_db
from bugexchange.schemas.comment import CommentCreate, CommentResponse
from bugexchange.services.comment_service import CommentService

router = APIRouter()


@router.get("", response_model=List[CommentResponse])
async def list_comments(
    bug_id: Optional[str] = None,
    submission_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Top-level comments on a bug or submission, newest first"""
    return await CommentService(db).list_comments(bug_id, submission_id)


@router.post("", response_model=CommentResponse, status_code=201)
async def create_comment(
    data: CommentCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Comment on a bug or submission, or reply to a top-level comment"""
    return await CommentService(db, notifier).create_comment(actor, data)
