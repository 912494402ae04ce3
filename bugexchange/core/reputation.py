"""
Bug Exchange - Reputation Ledger

Reputation is an append-only ledger of signed deltas keyed by the event that
produced them. `users.reputation` holds the running balance and is moved in
the same transaction as each entry.
"""

import logging
import math
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.config import settings
from bugexchange.core.errors import Conflict, NotFound
from bugexchange.models.reputation_entry import ReputationEntry
from bugexchange.models.user import User

logger = logging.getLogger(__name__)

SUBMISSION_APPROVED = "submission_approved"


def reputation_for_bounty(bounty_amount, unit: Optional[int] = None) -> int:
    """One point per `unit` of bounty, rounded down. Bounties below one unit earn nothing."""
    unit = settings.REPUTATION_UNIT if unit is None else unit
    amount = Decimal(str(bounty_amount))
    if amount <= 0:
        return 0
    return math.floor(amount / unit)


class ReputationLedger:
    """Grants and reads reputation deltas.

    `grant` joins the caller's open transaction and never commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def grant(self, user_id: str, event_type: str, event_id: str, delta: int) -> ReputationEntry:
        """Apply `delta` to `user_id` for the given event, at most once per event."""
        existing = await self.db.execute(
            select(ReputationEntry.id).where(
                ReputationEntry.event_type == event_type,
                ReputationEntry.event_id == event_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise Conflict(f"Reputation for {event_type} {event_id} was already granted")

        entry = ReputationEntry(user_id=user_id, event_type=event_type, event_id=event_id, delta=delta)
        self.db.add(entry)
        try:
            await self.db.flush()
        except IntegrityError:
            raise Conflict(f"Reputation for {event_type} {event_id} was already granted")

        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(reputation=User.reputation + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound(f"User not found: {user_id}")

        logger.info(f"Reputation {delta:+d} for user {user_id} ({event_type} {event_id})")
        return entry

    async def entries_for(self, user_id: str) -> List[ReputationEntry]:
        result = await self.db.execute(
            select(ReputationEntry)
            .where(ReputationEntry.user_id == user_id)
            .order_by(ReputationEntry.created_at.asc())
        )
        return list(result.scalars().all())

    async def balance(self, user_id: str) -> int:
        result = await self.db.execute(select(User.reputation).where(User.id == user_id))
        value = result.scalar_one_or_none()
        if value is None:
            raise NotFound(f"User not found: {user_id}")
        return value
