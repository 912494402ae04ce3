"""
Bug Exchange - Request Dependencies

The identity provider sits in front of this service and forwards the
authenticated user id in the X-User-Id header. The user's reputation is read
from the store and handed to the core as an explicit Actor.
"""
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bugexchange.core.errors import Unauthenticated
from bugexchange.core.lifecycle import Actor
from bugexchange.core.notifier import Notifier
from bugexchange.db.database import get_db
from bugexchange.models import User


async def get_actor(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the calling user, or fail with Unauthenticated."""
    if not x_user_id:
        raise Unauthenticated("Authentication required")
    result = await db.execute(select(User).where(User.id == x_user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise Unauthenticated("Unknown user")
    return Actor(id=user.id, reputation=user.reputation or 0)


def get_notifier() -> Notifier:
    return Notifier()
