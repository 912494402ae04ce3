"""
Bug Exchange - Audit Ledger

Writes and reads the append-only bug transition trail. Writes join the
caller's open transaction; committing is the caller's job.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.models.transition import BugTransition

logger = logging.getLogger(__name__)


def _value(status) -> Optional[str]:
    if status is None:
        return None
    return getattr(status, "value", status)


class AuditLedger:
    """Append-only access to `bug_transitions`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        bug_id: str,
        from_status,
        to_status,
        assigned_to_id: Optional[str],
        notes: str,
    ) -> BugTransition:
        transition = BugTransition(
            bug_id=bug_id,
            from_status=_value(from_status),
            to_status=_value(to_status),
            assigned_to_id=assigned_to_id,
            notes=notes,
        )
        self.db.add(transition)
        await self.db.flush()
        logger.debug(f"Transition recorded for bug {bug_id}: {transition.from_status} -> {transition.to_status}")
        return transition

    async def history(self, bug_id: str) -> List[BugTransition]:
        """Transitions for a bug in creation order."""
        result = await self.db.execute(
            select(BugTransition)
            .where(BugTransition.bug_id == bug_id)
            .order_by(BugTransition.created_at.asc(), BugTransition.id.asc())
        )
        return list(result.scalars().all())
