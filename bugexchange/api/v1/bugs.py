"""
Bug Exchange - Bugs API Endpoints
"""
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.api.deps import get_actor, get_notifier
from bugexchange.core.duplicate_detector import DuplicateQuery
from bugexchange.core.lifecycle import Actor
from bugexchange.core.notifier import Notifier
from bugexchange.db.database import get_db
from bugexchange.schemas.bug import (
    AssignmentRequest,
    BugCreate,
    BugResponse,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    DuplicateMatch,
    StatusChangeRequest,
    TransitionResponse,
)
from bugexchange.schemas.submission import ArbitrationResponse, SubmissionCreate, SubmissionResponse
from bugexchange.services.arbitration_service import ArbitrationCoordinator
from bugexchange.services.assignment_service import AssignmentManager
from bugexchange.services.bug_service import BugService

router = APIRouter()


@router.get("", response_model=List[BugResponse])
async def list_bugs(
    query: Optional[str] = None,
    tags: Optional[str] = Query(None, description="Comma-separated tags"),
    min_bounty: Optional[Decimal] = None,
    max_bounty: Optional[Decimal] = None,
    db: AsyncSession = Depends(get_db),
):
    """List bugs, newest first"""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    return await BugService(db).list_bugs(query, tag_list, min_bounty, max_bounty)


@router.post("", response_model=BugResponse, status_code=201)
async def create_bug(
    data: BugCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Report a new bug; it starts OPEN"""
    return await BugService(db).create_bug(actor, data)


@router.post("/duplicates", response_model=DuplicateCheckResponse)
async def check_duplicates(
    request: DuplicateCheckRequest,
    db: AsyncSession = Depends(get_db),
):
    """Rank existing bugs by similarity to a prospective report"""
    query = DuplicateQuery(
        title=request.title,
        description=request.description,
        tags=list(request.tags or []),
        stack_trace=request.stack_trace,
    )
    matches = await BugService(db).check_duplicates(query)
    return {"duplicates": [DuplicateMatch(**m) for m in matches]}


@router.get("/{bug_id}", response_model=BugResponse)
async def get_bug(bug_id: str, db: AsyncSession = Depends(get_db)):
    """Get bug details"""
    return await BugService(db).get_bug(bug_id)


@router.post("/{bug_id}/status", response_model=BugResponse)
async def change_status(
    bug_id: str,
    request: StatusChangeRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Change a bug's status (author, assignee, or trusted reviewer)"""
    return await BugService(db).change_status(bug_id, actor, request.status, request.notes)


@router.post("/{bug_id}/assign", response_model=BugResponse)
async def assign_bug(
    bug_id: str,
    request: AssignmentRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Assign or unassign a bug (author or current assignee)"""
    return await AssignmentManager(db).set_assignment(bug_id, actor, request.assigned_to_id, request.notes)


@router.get("/{bug_id}/transitions", response_model=List[TransitionResponse])
async def list_transitions(bug_id: str, db: AsyncSession = Depends(get_db)):
    """Audit trail for a bug, oldest first"""
    return await BugService(db).transitions(bug_id)


@router.get("/{bug_id}/submissions", response_model=List[SubmissionResponse])
async def list_submissions(bug_id: str, db: AsyncSession = Depends(get_db)):
    return await BugService(db).list_submissions(bug_id)


@router.post("/{bug_id}/submissions", response_model=SubmissionResponse, status_code=201)
async def create_submission(
    bug_id: str,
    data: SubmissionCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Propose a fix for an open bug"""
    return await BugService(db, notifier).create_submission(bug_id, actor, data)


@router.post("/{bug_id}/submissions/{submission_id}/approve", response_model=ArbitrationResponse)
async def approve_submission(
    bug_id: str,
    submission_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Approve a submission: resolves the bug and grants reputation"""
    result = await ArbitrationCoordinator(db, notifier).approve(bug_id, submission_id, actor)
    return ArbitrationResponse(
        message="Submission approved successfully",
        submission_id=result.submission_id,
        bug_id=result.bug_id,
        bug_status=result.bug_status,
        reputation_awarded=result.reputation_awarded,
    )


@router.post("/{bug_id}/submissions/{submission_id}/reject", response_model=ArbitrationResponse)
async def reject_submission(
    bug_id: str,
    submission_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Reject a submission; the bug stays as it is"""
    result = await ArbitrationCoordinator(db, notifier).reject(bug_id, submission_id, actor)
    return ArbitrationResponse(
        message="Submission rejected successfully",
        submission_id=result.submission_id,
        bug_id=result.bug_id,
        bug_status=result.bug_status,
    )
