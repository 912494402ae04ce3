"""
Tests for comments on bugs and submissions: threading, @mentions, owner
notification, and input checks.
"""

import pytest

from bugexchange.core.errors import InvalidInput, NotFound, Unauthenticated
from bugexchange.core.lifecycle import Actor
from bugexchange.schemas.comment import CommentCreate
from bugexchange.services.comment_service import CommentService


# ===========================================================================
# Posting
# ===========================================================================

class TestCreateComment:

    @pytest.mark.asyncio
    async def test_comment_on_bug_notifies_author(self, db, factory, notifier):
        author = await factory.user("author", email="owner@example.com")
        dev = await factory.user("dev")
        bug = await factory.bug(author)

        comment = await CommentService(db, notifier).create_comment(
            Actor(dev.id), CommentCreate(content="Can you share the browser version?", bug_id=bug.id)
        )

        assert comment.bug_id == bug.id
        assert comment.author.name == "dev"
        assert comment.replies == []
        notifier.comment_posted.assert_awaited_once_with(
            "owner@example.com", "New comment on your bug", f'dev commented on "{bug.title}"', bug.id
        )

    @pytest.mark.asyncio
    async def test_own_bug_comment_notifies_nobody(self, db, factory, notifier):
        author = await factory.user("author")
        bug = await factory.bug(author)

        await CommentService(db, notifier).create_comment(
            Actor(author.id), CommentCreate(content="Still reproducible on main", bug_id=bug.id)
        )

        notifier.comment_posted.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mentions_resolved_and_notified_once(self, db, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev", email="dev@example.com")
        bug = await factory.bug(author)

        comment = await CommentService(db, notifier).create_comment(
            Actor(dev.id), CommentCreate(content="@author see my fix, and @nobody too", bug_id=bug.id)
        )

        assert comment.mentions == [author.id]
        # author is both mentioned and owner: one notice
        notifier.comment_posted.assert_awaited_once()
        assert notifier.comment_posted.await_args.args[1] == "You were mentioned"

    @pytest.mark.asyncio
    async def test_comment_on_submission_notifies_submitter(self, db, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev", email="dev@example.com")
        bug = await factory.bug(author)
        submission = await factory.submission(bug, dev)

        await CommentService(db, notifier).create_comment(
            Actor(author.id), CommentCreate(content="Please add a test", submission_id=submission.id)
        )

        notifier.comment_posted.assert_awaited_once_with(
            "dev@example.com",
            "New comment on your submission",
            f'author commented on your submission for "{bug.title}"',
            bug.id,
        )

    @pytest.mark.asyncio
    async def test_failing_notifier_keeps_comment(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author)
        notifier.comment_posted.side_effect = RuntimeError("relay down")

        comment = await CommentService(db, notifier).create_comment(
            Actor(dev.id), CommentCreate(content="hello", bug_id=bug.id)
        )

        async with session_maker() as s:
            listed = await CommentService(s).list_comments(bug_id=bug.id)
        assert [c.id for c in listed] == [comment.id]


# ===========================================================================
# Threads
# ===========================================================================

class TestThreads:

    @pytest.mark.asyncio
    async def test_replies_nested_under_top_level(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author)
        service = CommentService(db, notifier)

        older = await service.create_comment(Actor(dev.id), CommentCreate(content="first", bug_id=bug.id))
        newer = await service.create_comment(Actor(dev.id), CommentCreate(content="second", bug_id=bug.id))
        r1 = await service.create_comment(
            Actor(author.id), CommentCreate(content="reply one", bug_id=bug.id, parent_id=older.id)
        )
        r2 = await service.create_comment(
            Actor(dev.id), CommentCreate(content="reply two", bug_id=bug.id, parent_id=older.id)
        )

        async with session_maker() as s:
            listed = await CommentService(s).list_comments(bug_id=bug.id)

        assert [c.id for c in listed] == [newer.id, older.id]
        assert [r.id for r in listed[1].replies] == [r1.id, r2.id]
        assert listed[1].replies[0].author.name == "author"
        assert listed[0].replies == []

    @pytest.mark.asyncio
    async def test_reply_to_reply_rejected(self, db, factory, notifier):
        author = await factory.user("author")
        bug = await factory.bug(author)
        service = CommentService(db, notifier)
        top = await service.create_comment(Actor(author.id), CommentCreate(content="top", bug_id=bug.id))
        reply = await service.create_comment(
            Actor(author.id), CommentCreate(content="reply", bug_id=bug.id, parent_id=top.id)
        )

        with pytest.raises(InvalidInput):
            await service.create_comment(
                Actor(author.id), CommentCreate(content="deeper", bug_id=bug.id, parent_id=reply.id)
            )

    @pytest.mark.asyncio
    async def test_reply_must_share_target(self, db, factory, notifier):
        author = await factory.user("author")
        bug = await factory.bug(author)
        other = await factory.bug(author, title="Unrelated report")
        service = CommentService(db, notifier)
        top = await service.create_comment(Actor(author.id), CommentCreate(content="top", bug_id=bug.id))

        with pytest.raises(InvalidInput):
            await service.create_comment(
                Actor(author.id), CommentCreate(content="misplaced", bug_id=other.id, parent_id=top.id)
            )


# ===========================================================================
# Input checks
# ===========================================================================

class TestCommentInput:

    @pytest.mark.asyncio
    async def test_target_required(self, db, factory, notifier):
        dev = await factory.user("dev")
        with pytest.raises(InvalidInput):
            await CommentService(db, notifier).create_comment(Actor(dev.id), CommentCreate(content="orphan"))
        with pytest.raises(InvalidInput):
            await CommentService(db).list_comments()

    @pytest.mark.asyncio
    async def test_unknown_targets(self, db, factory, notifier):
        dev = await factory.user("dev")
        service = CommentService(db, notifier)
        with pytest.raises(NotFound):
            await service.create_comment(Actor(dev.id), CommentCreate(content="x", bug_id="missing"))
        with pytest.raises(NotFound):
            await service.create_comment(Actor(dev.id), CommentCreate(content="x", submission_id="missing"))

    @pytest.mark.asyncio
    async def test_missing_actor(self, db, factory, notifier):
        author = await factory.user("author")
        bug = await factory.bug(author)
        with pytest.raises(Unauthenticated):
            await CommentService(db, notifier).create_comment(None, CommentCreate(content="x", bug_id=bug.id))
