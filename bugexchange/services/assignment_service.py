"""
Bug Exchange - Assignment Manager

Tracks who is working a bug. Only the bug author or the current assignee may
change the assignment; every real change is recorded on the audit trail with
the bug's status left as-is.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.core.audit import AuditLedger
from bugexchange.core.errors import Unauthorized
from bugexchange.core.lifecycle import Actor, NoteKind, TransitionNote, authorize_assignment
from bugexchange.models import Bug
from bugexchange.services.bug_service import get_bug_or_404, get_user_or_404, require_actor

logger = logging.getLogger(__name__)


class AssignmentManager:
    """Assigns and unassigns bugs."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditLedger(db)

    async def set_assignment(self, bug_id: str, actor: Actor,
                             new_assignee_id: Optional[str] = None,
                             notes: Optional[str] = None) -> Bug:
        """Point the bug at `new_assignee_id`, or unassign it when None/empty."""
        require_actor(actor)
        new_assignee_id = new_assignee_id or None
        try:
            bug = await get_bug_or_404(self.db, bug_id, for_update=True)

            decision = authorize_assignment(actor, bug)
            if not decision.allowed:
                raise Unauthorized(decision.reason)

            if new_assignee_id is not None:
                await get_user_or_404(self.db, new_assignee_id)

            previous = bug.assigned_to_id
            if previous != new_assignee_id:
                bug.assigned_to_id = new_assignee_id
                kind = NoteKind.ASSIGNED if new_assignee_id else NoteKind.UNASSIGNED
                await self.audit.record(
                    bug_id=bug.id,
                    from_status=bug.status,
                    to_status=bug.status,
                    assigned_to_id=new_assignee_id,
                    notes=TransitionNote(kind, notes).render(),
                )
                logger.info(f"Bug {bug.id} assignment {previous} -> {new_assignee_id} by {actor.id}")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return bug
