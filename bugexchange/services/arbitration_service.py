"""
Bug Exchange - Arbitration Coordinator

Approves or rejects submissions on behalf of the bug author. Approval is the
only path that grants reputation. Its writes commit together or not at all:

  1. submission PENDING -> APPROVED
  2. bug <observed approvable status> -> RESOLVED (compare-and-swap, only
     while no other submission on the bug is APPROVED)
  3. reputation ledger entry for the submitter, floor(bounty / 100)
  4. audit trail record for the RESOLVED transition

A concurrent approval on the same bug loses the compare-and-swap and fails
with Conflict, and so does an approval on a bug that was reopened after an
earlier one. The commit is the last storage call; submitter notification
runs afterwards and cannot fail the request.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from bugexchange.core.audit import AuditLedger
from bugexchange.core.errors import Conflict, NotFound, Unauthorized
from bugexchange.core.lifecycle import Actor, NoteKind, TransitionNote, is_approvable
from bugexchange.core.notifier import Notifier, notify_quietly
from bugexchange.core.reputation import SUBMISSION_APPROVED, ReputationLedger, reputation_for_bounty
from bugexchange.models import Bug, BugStatus, Submission, SubmissionStatus, User
from bugexchange.services.bug_service import get_bug_or_404, require_actor

logger = logging.getLogger(__name__)


@dataclass
class ArbitrationResult:
    """What an approve/reject request committed."""
    bug_id: str
    submission_id: str
    submission_status: str
    bug_status: str
    reputation_awarded: int = 0


class ArbitrationCoordinator:
    """Runs the approve and reject transactions for submissions."""

    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        self.db = db
        self.notifier = notifier or Notifier()
        self.audit = AuditLedger(db)
        self.reputation = ReputationLedger(db)

    async def _load(self, bug_id: str, submission_id: str, actor: Optional[Actor],
                    verb: str) -> Tuple[Bug, Submission]:
        require_actor(actor)

        bug = await get_bug_or_404(self.db, bug_id)
        if bug.author_id != actor.id:
            logger.warning(f"User {actor.id} tried to {verb} a submission on bug {bug.id} they do not own")
            raise Unauthorized(f"Only bug author can {verb} submissions")

        result = await self.db.execute(
            select(Submission)
            .where(Submission.id == submission_id, Submission.bug_id == bug.id)
            .execution_options(populate_existing=True)
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise NotFound(f"Submission not found: {submission_id}")

        if submission.status != SubmissionStatus.PENDING.value:
            raise Conflict(f"Submission {submission.id} was already {submission.status.lower()}")
        return bug, submission

    async def _decide(self, submission_id: str, status: SubmissionStatus) -> None:
        result = await self.db.execute(
            update(Submission)
            .where(
                Submission.id == submission_id,
                Submission.status == SubmissionStatus.PENDING.value,
            )
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict(f"Submission {submission_id} was decided by another request")

    # ------------------------------------------------------------------
    # Approve
    # ------------------------------------------------------------------

    async def approve(self, bug_id: str, submission_id: str, actor: Optional[Actor]) -> ArbitrationResult:
        try:
            bug, submission = await self._load(bug_id, submission_id, actor, "approve")

            observed = bug.status
            if not is_approvable(observed):
                raise Conflict(f"Bug {bug.id} is {observed} and no longer accepts approvals")

            await self._decide(submission.id, SubmissionStatus.APPROVED)

            already_approved = exists().where(
                Submission.bug_id == bug.id,
                Submission.id != submission.id,
                Submission.status == SubmissionStatus.APPROVED.value,
            )
            swapped = await self.db.execute(
                update(Bug)
                .where(Bug.id == bug.id, Bug.status == observed, ~already_approved)
                .values(status=BugStatus.RESOLVED.value)
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount != 1:
                raise Conflict(f"Bug {bug.id} already has an approved submission or changed state during approval")

            awarded = reputation_for_bounty(bug.bounty_amount)
            await self.reputation.grant(
                user_id=submission.submitter_id,
                event_type=SUBMISSION_APPROVED,
                event_id=submission.id,
                delta=awarded,
            )

            await self.audit.record(
                bug_id=bug.id,
                from_status=observed,
                to_status=BugStatus.RESOLVED,
                assigned_to_id=bug.assigned_to_id,
                notes=TransitionNote(NoteKind.SUBMISSION_APPROVED).render(subject_id=submission.id),
            )
            submitter = await self.db.get(User, submission.submitter_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        # Mirror the committed row values without another round trip
        set_committed_value(bug, "status", BugStatus.RESOLVED.value)
        set_committed_value(submission, "status", SubmissionStatus.APPROVED.value)
        logger.info(
            f"Submission {submission.id} approved on bug {bug.id}; "
            f"{awarded} reputation to {submission.submitter_id}"
        )

        await notify_quietly(self.notifier.submission_approved(
            submitter.email if submitter else None,
            bug.title,
            bug.bounty_amount,
            (submitter.name if submitter else None) or "Developer",
        ))
        return ArbitrationResult(
            bug_id=bug.id,
            submission_id=submission.id,
            submission_status=SubmissionStatus.APPROVED.value,
            bug_status=BugStatus.RESOLVED.value,
            reputation_awarded=awarded,
        )

    # ------------------------------------------------------------------
    # Reject
    # ------------------------------------------------------------------

    async def reject(self, bug_id: str, submission_id: str, actor: Optional[Actor]) -> ArbitrationResult:
        try:
            bug, submission = await self._load(bug_id, submission_id, actor, "reject")
            await self._decide(submission.id, SubmissionStatus.REJECTED)
            submitter = await self.db.get(User, submission.submitter_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        set_committed_value(submission, "status", SubmissionStatus.REJECTED.value)
        logger.info(f"Submission {submission.id} rejected on bug {bug.id}")

        await notify_quietly(self.notifier.submission_rejected(
            submitter.email if submitter else None,
            bug.title,
            (submitter.name if submitter else None) or "Developer",
        ))
        return ArbitrationResult(
            bug_id=bug.id,
            submission_id=submission.id,
            submission_status=SubmissionStatus.REJECTED.value,
            bug_status=bug.status,
        )
