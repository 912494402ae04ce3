"""
Bug Exchange - Comment Service

Threaded discussion on bugs and submissions. Replies attach to a top-level
comment on the same bug or submission. `@name` mentions are resolved to user
ids when the comment is posted; mentioned users and the owner of the bug or
submission are notified after commit.
"""
import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bugexchange.core.errors import InvalidInput, NotFound
from bugexchange.core.lifecycle import Actor
from bugexchange.core.notifier import Notifier, notify_quietly
from bugexchange.models import Comment, Submission, User
from bugexchange.schemas.comment import CommentCreate
from bugexchange.services.bug_service import get_bug_or_404, require_actor

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)")


def _with_thread(query):
    return query.options(
        selectinload(Comment.author),
        selectinload(Comment.replies).selectinload(Comment.author),
    )


class CommentService:
    """Posts and lists comments."""

    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        self.db = db
        self.notifier = notifier or Notifier()

    async def create_comment(self, actor: Actor, data: CommentCreate) -> Comment:
        require_actor(actor)
        data = data.model_copy(update={
            "bug_id": data.bug_id or None,
            "submission_id": data.submission_id or None,
            "parent_id": data.parent_id or None,
        })
        if not data.bug_id and not data.submission_id:
            raise InvalidInput("Either bug_id or submission_id is required")

        # (recipient, subject, message) collected before commit, sent after
        outbox: List[Tuple[User, str, str]] = []
        try:
            commenter = await self.db.get(User, actor.id)
            commenter_name = (commenter.name if commenter else None) or "Someone"

            bug = await get_bug_or_404(self.db, data.bug_id) if data.bug_id else None
            submission = None
            if data.submission_id:
                submission = await self.db.get(Submission, data.submission_id)
                if not submission:
                    raise NotFound(f"Submission not found: {data.submission_id}")

            if data.parent_id:
                parent = await self.db.get(Comment, data.parent_id)
                if not parent:
                    raise NotFound(f"Comment not found: {data.parent_id}")
                if parent.parent_id is not None:
                    raise InvalidInput("Replies can only be made to top-level comments")
                if (parent.bug_id, parent.submission_id) != (data.bug_id, data.submission_id):
                    raise InvalidInput("Reply must be on the same bug or submission as its parent")

            names = set(MENTION_PATTERN.findall(data.content))
            mentioned: List[User] = []
            if names:
                result = await self.db.execute(select(User).where(User.name.in_(names)))
                mentioned = list(result.scalars().all())

            comment = Comment(
                content=data.content,
                author_id=actor.id,
                bug_id=data.bug_id,
                submission_id=data.submission_id,
                parent_id=data.parent_id,
                mentions=[u.id for u in mentioned],
            )
            self.db.add(comment)
            await self.db.flush()

            notified = {actor.id}
            for user in mentioned:
                if user.id not in notified:
                    notified.add(user.id)
                    outbox.append((user, "You were mentioned", f"{commenter_name} mentioned you in a comment"))

            if bug is not None and bug.author_id not in notified:
                owner = await self.db.get(User, bug.author_id)
                if owner is not None:
                    notified.add(owner.id)
                    outbox.append((owner, "New comment on your bug", f'{commenter_name} commented on "{bug.title}"'))

            if submission is not None and submission.submitter_id not in notified:
                submitter = await self.db.get(User, submission.submitter_id)
                target = await get_bug_or_404(self.db, submission.bug_id)
                if submitter is not None:
                    notified.add(submitter.id)
                    outbox.append((
                        submitter,
                        "New comment on your submission",
                        f'{commenter_name} commented on your submission for "{target.title}"',
                    ))

            result = await self.db.execute(
                _with_thread(select(Comment).where(Comment.id == comment.id))
                .execution_options(populate_existing=True)
            )
            comment = result.scalar_one()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        on = f"bug {comment.bug_id}" if comment.bug_id else f"submission {comment.submission_id}"
        logger.info(f"Comment {comment.id} by {actor.id} on {on}")
        link_bug_id = comment.bug_id or (submission.bug_id if submission is not None else None)
        for user, subject, message in outbox:
            await notify_quietly(self.notifier.comment_posted(user.email, subject, message, link_bug_id))
        return comment

    async def list_comments(self, bug_id: Optional[str] = None,
                            submission_id: Optional[str] = None) -> List[Comment]:
        """Top-level comments, newest first, each with its replies."""
        if not bug_id and not submission_id:
            raise InvalidInput("Either bug_id or submission_id is required")

        targets = []
        if bug_id:
            targets.append(Comment.bug_id == bug_id)
        if submission_id:
            targets.append(Comment.submission_id == submission_id)

        result = await self.db.execute(
            _with_thread(
                select(Comment)
                .where(or_(*targets), Comment.parent_id.is_(None))
                .order_by(Comment.created_at.desc())
            )
        )
        return list(result.scalars().all())
