"""
Bug Exchange - Bug Service

Bug creation, status changes, submissions, duplicate lookup and the
reputation leaderboard. Status changes go through the lifecycle policy and
land together with their audit record.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.config import settings
from bugexchange.core.audit import AuditLedger
from bugexchange.core.duplicate_detector import DuplicateDetector, DuplicateQuery
from bugexchange.core.errors import InvalidInput, NotFound, Unauthenticated, Unauthorized
from bugexchange.core.lifecycle import Actor, NoteKind, TransitionNote, authorize_transition
from bugexchange.core.notifier import Notifier, notify_quietly
from bugexchange.models import Bug, BugStatus, Submission, SubmissionStatus, User
from bugexchange.schemas.bug import BugCreate, BugResponse
from bugexchange.schemas.submission import SubmissionCreate

logger = logging.getLogger(__name__)


def require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None or not actor.id:
        raise Unauthenticated("Authentication required")
    return actor


async def get_bug_or_404(db: AsyncSession, bug_id: str, for_update: bool = False) -> Bug:
    query = select(Bug).where(Bug.id == bug_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    bug = result.scalar_one_or_none()
    if not bug:
        raise NotFound(f"Bug not found: {bug_id}")
    return bug


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFound(f"User not found: {user_id}")
    return user


def _icontains(column, text: str):
    """Case-insensitive substring match; `%` and `_` in `text` match literally."""
    return func.lower(column).contains(text.lower(), autoescape=True)


class BugService:
    """Operations on bugs that are not submission arbitration or assignment."""

    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        self.db = db
        self.audit = AuditLedger(db)
        self.notifier = notifier or Notifier()

    # ------------------------------------------------------------------
    # Bugs
    # ------------------------------------------------------------------

    async def create_bug(self, actor: Actor, data: BugCreate) -> Bug:
        require_actor(actor)
        try:
            if data.assigned_to_id:
                await get_user_or_404(self.db, data.assigned_to_id)

            bug = Bug(
                title=data.title,
                description=data.description,
                stack_trace=data.stack_trace,
                repo_snippet=data.repo_snippet,
                bounty_amount=data.bounty_amount,
                tags=list(data.tags),
                status=BugStatus.OPEN.value,
                category=data.category.value,
                priority=data.priority.value,
                severity=data.severity.value,
                author_id=actor.id,
                assigned_to_id=data.assigned_to_id or None,
            )
            self.db.add(bug)
            await self.db.flush()

            await self.audit.record(
                bug_id=bug.id,
                from_status=None,
                to_status=BugStatus.OPEN,
                assigned_to_id=bug.assigned_to_id,
                notes=TransitionNote(NoteKind.CREATED).render(),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(bug)
        logger.info(f"Bug {bug.id} created by {actor.id} with bounty {bug.bounty_amount}")
        return bug

    async def get_bug(self, bug_id: str) -> Bug:
        return await get_bug_or_404(self.db, bug_id)

    async def list_bugs(
        self,
        query: Optional[str] = None,
        tags: Optional[List[str]] = None,
        min_bounty: Optional[Decimal] = None,
        max_bounty: Optional[Decimal] = None,
    ) -> List[Bug]:
        stmt = select(Bug)
        if query:
            stmt = stmt.where(or_(_icontains(Bug.title, query), _icontains(Bug.description, query)))
        if min_bounty is not None:
            stmt = stmt.where(Bug.bounty_amount >= min_bounty)
        if max_bounty is not None:
            stmt = stmt.where(Bug.bounty_amount <= max_bounty)
        stmt = stmt.order_by(Bug.created_at.desc())

        result = await self.db.execute(stmt)
        bugs = list(result.scalars().all())
        if tags:
            wanted = set(tags)
            bugs = [b for b in bugs if wanted.intersection(b.tags or [])]
        return bugs

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def change_status(self, bug_id: str, actor: Actor, status: BugStatus,
                            notes: Optional[str] = None) -> Bug:
        """Move a bug to `status`, writing one transition unless it is a no-op."""
        require_actor(actor)
        try:
            bug = await get_bug_or_404(self.db, bug_id, for_update=True)

            decision = authorize_transition(actor, bug, status)
            if not decision.allowed:
                raise Unauthorized(decision.reason)

            from_status = bug.status
            if from_status != status.value:
                bug.status = status.value
                await self.audit.record(
                    bug_id=bug.id,
                    from_status=from_status,
                    to_status=status,
                    assigned_to_id=bug.assigned_to_id,
                    notes=TransitionNote(NoteKind.STATUS_CHANGED, notes).render(from_status, status),
                )
                logger.info(f"Bug {bug.id} status {from_status} -> {status.value} by {actor.id} ({decision.reason})")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return bug

    async def transitions(self, bug_id: str):
        await get_bug_or_404(self.db, bug_id)
        return await self.audit.history(bug_id)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def create_submission(self, bug_id: str, actor: Actor, data: SubmissionCreate) -> Submission:
        require_actor(actor)
        try:
            bug = await get_bug_or_404(self.db, bug_id)
            if bug.author_id == actor.id:
                raise InvalidInput("Cannot submit to your own bug")
            if bug.status != BugStatus.OPEN.value:
                raise InvalidInput("Bug is not open for submissions")

            submission = Submission(
                bug_id=bug.id,
                submitter_id=actor.id,
                description=data.description,
                solution=data.solution,
                language=data.language,
                status=SubmissionStatus.PENDING.value,
            )
            self.db.add(submission)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(submission)
        logger.info(f"Submission {submission.id} created for bug {bug.id} by {actor.id}")

        author = await self.db.get(User, bug.author_id)
        submitter = await self.db.get(User, actor.id)
        if author is not None:
            await notify_quietly(self.notifier.submission_received(
                author.email,
                bug.title,
                (submitter.name if submitter else None) or "Anonymous",
                bug.id,
            ))
        return submission

    async def list_submissions(self, bug_id: str) -> List[Submission]:
        await get_bug_or_404(self.db, bug_id)
        result = await self.db.execute(
            select(Submission)
            .where(Submission.bug_id == bug_id)
            .order_by(Submission.created_at.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Duplicates
    # ------------------------------------------------------------------

    async def find_duplicate_candidates(self, query: DuplicateQuery,
                                        limit: Optional[int] = None) -> List[Bug]:
        """Coarse text/tag match, newest first, capped at `limit`."""
        limit = settings.DUPLICATE_CANDIDATE_LIMIT if limit is None else limit

        clauses = []
        if query.title:
            clauses.append(_icontains(Bug.title, query.title))
            leading = " ".join(query.title.split(" ")[:3])
            if leading:
                clauses.append(_icontains(Bug.title, leading))
        if query.description:
            leading = " ".join(query.description.split(" ")[:10])
            if leading:
                clauses.append(_icontains(Bug.description, leading))
        if query.stack_trace:
            first_line = query.stack_trace.split("\n")[0]
            if first_line:
                clauses.append(_icontains(Bug.stack_trace, first_line))

        stmt = select(Bug)
        if clauses:
            stmt = stmt.where(or_(*clauses))
        stmt = stmt.order_by(Bug.created_at.desc())

        result = await self.db.execute(stmt)
        bugs = list(result.scalars().all())
        if query.tags:
            wanted = set(query.tags)
            bugs = [b for b in bugs if wanted.intersection(b.tags or [])]
        return bugs[:limit]

    async def check_duplicates(self, query: DuplicateQuery) -> List[Dict]:
        if query.is_empty():
            raise InvalidInput("At least one field is required for duplicate detection")

        candidates = await self.find_duplicate_candidates(query)
        detector = DuplicateDetector(
            [BugResponse.model_validate(bug).model_dump() for bug in candidates],
            threshold=settings.DUPLICATE_SCORE_THRESHOLD,
        )
        return detector.check_duplicates(query)

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    async def leaderboard(self, limit: int = 10) -> List[Dict]:
        bug_counts = (
            select(Bug.author_id.label("user_id"), func.count(Bug.id).label("n"))
            .group_by(Bug.author_id)
            .subquery()
        )
        submission_counts = (
            select(Submission.submitter_id.label("user_id"), func.count(Submission.id).label("n"))
            .group_by(Submission.submitter_id)
            .subquery()
        )
        approved_counts = (
            select(Submission.submitter_id.label("user_id"), func.count(Submission.id).label("n"))
            .where(Submission.status == SubmissionStatus.APPROVED.value)
            .group_by(Submission.submitter_id)
            .subquery()
        )

        result = await self.db.execute(
            select(
                User,
                func.coalesce(bug_counts.c.n, 0),
                func.coalesce(submission_counts.c.n, 0),
                func.coalesce(approved_counts.c.n, 0),
            )
            .outerjoin(bug_counts, bug_counts.c.user_id == User.id)
            .outerjoin(submission_counts, submission_counts.c.user_id == User.id)
            .outerjoin(approved_counts, approved_counts.c.user_id == User.id)
            .order_by(User.reputation.desc())
            .limit(limit)
        )
        return [
            {
                "id": user.id,
                "name": user.name,
                "reputation": user.reputation,
                "bug_count": bugs,
                "submission_count": submissions,
                "approved_submissions": approved,
            }
            for user, bugs, submissions, approved in result.all()
        ]

    # ------------------------------------------------------------------
    # Activity feed
    # ------------------------------------------------------------------

    RECENT_BUGS = 5
    RECENT_SUBMISSIONS = 10

    async def recent_activity(self, limit: int = 10) -> List[Dict]:
        """Latest bugs posted and submissions made, merged newest first."""
        bug_rows = await self.db.execute(
            select(Bug, User)
            .join(User, User.id == Bug.author_id)
            .order_by(Bug.created_at.desc())
            .limit(self.RECENT_BUGS)
        )
        submission_rows = await self.db.execute(
            select(Submission, Bug, User)
            .join(Bug, Bug.id == Submission.bug_id)
            .join(User, User.id == Submission.submitter_id)
            .order_by(Submission.created_at.desc())
            .limit(self.RECENT_SUBMISSIONS)
        )

        def _bug_ref(bug: Bug) -> Dict:
            return {"id": bug.id, "title": bug.title, "bounty_amount": bug.bounty_amount}

        activities = [
            {
                "id": f"bug_{bug.id}",
                "type": "bug_posted",
                "created_at": bug.created_at,
                "user": {"id": author.id, "name": author.name},
                "bug": _bug_ref(bug),
            }
            for bug, author in bug_rows.all()
        ]
        for submission, bug, submitter in submission_rows.all():
            approved = submission.status == SubmissionStatus.APPROVED.value
            activities.append({
                "id": f"submission_{submission.id}",
                "type": "submission_approved" if approved else "submission_made",
                "created_at": submission.created_at,
                "user": {"id": submitter.id, "name": submitter.name},
                "bug": _bug_ref(bug),
            })

        activities.sort(key=lambda a: a["created_at"], reverse=True)
        return activities[:limit]
