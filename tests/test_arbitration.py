"""
Tests for the arbitration coordinator: the approve transaction (submission,
bug status, reputation, audit record), reject, author-only permission,
at-most-one approval per bug, and best-effort notification.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from bugexchange.core.audit import AuditLedger
from bugexchange.core.errors import Conflict, NotFound, Unauthenticated, Unauthorized
from bugexchange.core.lifecycle import Actor
from bugexchange.core.notifier import Notifier
from bugexchange.core.reputation import ReputationLedger
from bugexchange.models import Bug, BugStatus, Submission, User
from bugexchange.services.arbitration_service import ArbitrationCoordinator, ArbitrationResult
from bugexchange.services.bug_service import BugService


# ===========================================================================
# Helpers
# ===========================================================================

async def _get(session_maker, model, id_):
    async with session_maker() as s:
        return await s.get(model, id_)


async def _history(session_maker, bug_id):
    async with session_maker() as s:
        return await AuditLedger(s).history(bug_id)


async def _entries(session_maker, user_id):
    async with session_maker() as s:
        return await ReputationLedger(s).entries_for(user_id)


# ===========================================================================
# Approve
# ===========================================================================

class TestApprove:

    @pytest.mark.asyncio
    async def test_approve_commits_all_effects(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev", reputation=10)
        bug = await factory.bug(author, bounty="500")
        submission = await factory.submission(bug, dev)

        result = await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        assert isinstance(result, ArbitrationResult)
        assert result.reputation_awarded == 5
        assert (await _get(session_maker, Submission, submission.id)).status == "APPROVED"
        assert (await _get(session_maker, Bug, bug.id)).status == "RESOLVED"
        assert (await _get(session_maker, User, dev.id)).reputation == 15

        history = await _history(session_maker, bug.id)
        assert len(history) == 1
        assert (history[0].from_status, history[0].to_status) == ("OPEN", "RESOLVED")
        assert submission.id in history[0].notes

        entries = await _entries(session_maker, dev.id)
        assert [(e.event_type, e.event_id, e.delta) for e in entries] == [
            ("submission_approved", submission.id, 5)
        ]

    @pytest.mark.asyncio
    async def test_submitter_notified_after_commit(self, db, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev", email="dev@example.com")
        bug = await factory.bug(author, bounty="500")
        submission = await factory.submission(bug, dev)

        await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        notifier.submission_approved.assert_awaited_once()
        args = notifier.submission_approved.await_args.args
        assert args[0] == "dev@example.com"
        assert args[1] == bug.title
        assert Decimal(str(args[2])) == Decimal("500")
        assert args[3] == "dev"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bounty,expected", [("99", 0), ("100", 1), ("250.75", 2), ("1999.99", 19)])
    async def test_reputation_is_floor_of_bounty_over_100(self, db, session_maker, factory, notifier, bounty, expected):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author, bounty=bounty)
        submission = await factory.submission(bug, dev)

        result = await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        assert result.reputation_awarded == expected
        assert (await _get(session_maker, User, dev.id)).reputation == expected

    @pytest.mark.asyncio
    async def test_approve_from_in_progress_records_observed_status(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author, status=BugStatus.IN_PROGRESS, assignee=dev)
        submission = await factory.submission(bug, dev)

        await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        history = await _history(session_maker, bug.id)
        assert history[0].from_status == "IN_PROGRESS"
        assert history[0].assigned_to_id == dev.id

    @pytest.mark.asyncio
    async def test_second_approval_on_resolved_bug_conflicts(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        u = await factory.user("u")
        v = await factory.user("v")
        bug = await factory.bug(author, bounty="500")
        first = await factory.submission(bug, u)
        second = await factory.submission(bug, v)

        coordinator = ArbitrationCoordinator(db, notifier)
        await coordinator.approve(bug.id, first.id, Actor(author.id))

        with pytest.raises(Conflict):
            await coordinator.approve(bug.id, second.id, Actor(author.id))

        assert (await _get(session_maker, Submission, second.id)).status == "PENDING"
        assert (await _get(session_maker, User, v.id)).reputation == 0
        assert len(await _history(session_maker, bug.id)) == 1

    @pytest.mark.asyncio
    async def test_reopened_bug_refuses_second_approval(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        u = await factory.user("u")
        v = await factory.user("v")
        bug = await factory.bug(author, bounty="500")
        first = await factory.submission(bug, u)
        second = await factory.submission(bug, v)

        coordinator = ArbitrationCoordinator(db, notifier)
        await coordinator.approve(bug.id, first.id, Actor(author.id))
        await BugService(db).change_status(bug.id, Actor(author.id), BugStatus.REOPENED)

        with pytest.raises(Conflict):
            await coordinator.approve(bug.id, second.id, Actor(author.id))

        async with session_maker() as s:
            result = await s.execute(
                select(Submission.status).where(Submission.bug_id == bug.id)
            )
            statuses = list(result.scalars().all())
            total = (await s.get(User, u.id)).reputation + (await s.get(User, v.id)).reputation
        assert statuses.count("APPROVED") == 1
        assert total == 5
        assert (await _get(session_maker, Bug, bug.id)).status == "REOPENED"
        assert (await _get(session_maker, Submission, second.id)).status == "PENDING"

    @pytest.mark.asyncio
    async def test_retried_approval_conflicts_without_double_grant(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author, bounty="500")
        submission = await factory.submission(bug, dev)

        coordinator = ArbitrationCoordinator(db, notifier)
        await coordinator.approve(bug.id, submission.id, Actor(author.id))
        with pytest.raises(Conflict):
            await coordinator.approve(bug.id, submission.id, Actor(author.id))

        assert (await _get(session_maker, User, dev.id)).reputation == 5
        assert len(await _entries(session_maker, dev.id)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [BugStatus.RESOLVED, BugStatus.VERIFIED, BugStatus.CLOSED, BugStatus.DUPLICATE])
    async def test_non_approvable_status_conflicts(self, db, session_maker, factory, notifier, status):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author, status=status)
        submission = await factory.submission(bug, dev)

        with pytest.raises(Conflict):
            await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        assert (await _get(session_maker, Submission, submission.id)).status == "PENDING"
        notifier.submission_approved.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_approvals_exactly_one_wins(self, session_maker, factory, notifier):
        author = await factory.user("author")
        u = await factory.user("u")
        v = await factory.user("v")
        bug = await factory.bug(author, bounty="500")
        first = await factory.submission(bug, u)
        second = await factory.submission(bug, v)

        async def approve(submission_id):
            async with session_maker() as s:
                return await ArbitrationCoordinator(s, notifier).approve(bug.id, submission_id, Actor(author.id))

        results = await asyncio.gather(approve(first.id), approve(second.id), return_exceptions=True)

        wins = [r for r in results if isinstance(r, ArbitrationResult)]
        conflicts = [r for r in results if isinstance(r, Conflict)]
        assert len(wins) == 1
        assert len(conflicts) == 1

        async with session_maker() as s:
            statuses = [
                (await s.get(Submission, first.id)).status,
                (await s.get(Submission, second.id)).status,
            ]
            total = (await s.get(User, u.id)).reputation + (await s.get(User, v.id)).reputation
        assert statuses.count("APPROVED") == 1
        assert total == 5
        assert len(await _history(session_maker, bug.id)) == 1


# ===========================================================================
# Permissions and lookups
# ===========================================================================

class TestArbitrationGuards:

    @pytest.mark.asyncio
    async def test_assignee_cannot_approve(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        assignee = await factory.user("assignee", reputation=1000)
        bug = await factory.bug(author, assignee=assignee)
        submission = await factory.submission(bug, dev)

        with pytest.raises(Unauthorized) as exc:
            await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(assignee.id, 1000))

        assert "Only bug author" in exc.value.message
        assert (await _get(session_maker, Bug, bug.id)).status == "OPEN"

    @pytest.mark.asyncio
    async def test_non_author_cannot_reject(self, db, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author)
        submission = await factory.submission(bug, dev)

        with pytest.raises(Unauthorized):
            await ArbitrationCoordinator(db, notifier).reject(bug.id, submission.id, Actor(dev.id))

    @pytest.mark.asyncio
    async def test_missing_actor(self, db, factory, notifier):
        author = await factory.user("author")
        bug = await factory.bug(author)
        with pytest.raises(Unauthenticated):
            await ArbitrationCoordinator(db, notifier).approve(bug.id, "s", None)

    @pytest.mark.asyncio
    async def test_unknown_bug(self, db, factory, notifier):
        author = await factory.user("author")
        with pytest.raises(NotFound):
            await ArbitrationCoordinator(db, notifier).approve("missing", "s", Actor(author.id))

    @pytest.mark.asyncio
    async def test_submission_of_other_bug_not_found(self, db, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author)
        other = await factory.bug(author, title="Another bug entirely")
        submission = await factory.submission(other, dev)

        with pytest.raises(NotFound):
            await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))


# ===========================================================================
# Reject
# ===========================================================================

class TestReject:

    @pytest.mark.asyncio
    async def test_reject_only_touches_submission(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev", reputation=7, email="dev@example.com")
        bug = await factory.bug(author)
        submission = await factory.submission(bug, dev)

        result = await ArbitrationCoordinator(db, notifier).reject(bug.id, submission.id, Actor(author.id))

        assert result.submission_status == "REJECTED"
        assert result.reputation_awarded == 0
        assert (await _get(session_maker, Submission, submission.id)).status == "REJECTED"
        assert (await _get(session_maker, Bug, bug.id)).status == "OPEN"
        assert (await _get(session_maker, User, dev.id)).reputation == 7
        assert await _history(session_maker, bug.id) == []
        notifier.submission_rejected.assert_awaited_once_with("dev@example.com", bug.title, "dev")

    @pytest.mark.asyncio
    async def test_decided_submission_cannot_be_rejected(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author)
        submission = await factory.submission(bug, dev)

        coordinator = ArbitrationCoordinator(db, notifier)
        await coordinator.approve(bug.id, submission.id, Actor(author.id))
        with pytest.raises(Conflict):
            await coordinator.reject(bug.id, submission.id, Actor(author.id))

        assert (await _get(session_maker, Submission, submission.id)).status == "APPROVED"


# ===========================================================================
# Notification failures
# ===========================================================================

class TestNotificationFailure:

    @pytest.mark.asyncio
    async def test_raising_notifier_does_not_fail_approval(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author, bounty="300")
        submission = await factory.submission(bug, dev)
        notifier.submission_approved = AsyncMock(side_effect=RuntimeError("smtp down"))

        result = await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        assert result.reputation_awarded == 3
        assert (await _get(session_maker, Bug, bug.id)).status == "RESOLVED"

    @pytest.mark.asyncio
    async def test_storage_failure_after_commit_does_not_fail_approval(self, db, session_maker, factory, notifier):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author, bounty="500")
        submission = await factory.submission(bug, dev)

        real_commit = db.commit
        broken = AsyncMock(side_effect=RuntimeError("storage unavailable"))

        async def commit_then_break():
            await real_commit()
            db.execute = broken
            db.get = broken
            db.refresh = broken

        db.commit = commit_then_break
        result = await ArbitrationCoordinator(db, notifier).approve(bug.id, submission.id, Actor(author.id))

        assert result.bug_status == "RESOLVED"
        assert result.reputation_awarded == 5
        broken.assert_not_awaited()
        notifier.submission_approved.assert_awaited_once()
        assert (await _get(session_maker, Submission, submission.id)).status == "APPROVED"

    @pytest.mark.asyncio
    async def test_real_notifier_webhook_failure_is_swallowed(self, db, session_maker, factory):
        author = await factory.user("author")
        dev = await factory.user("dev")
        bug = await factory.bug(author)
        submission = await factory.submission(bug, dev)
        notifier = Notifier(webhook_url="http://notify.invalid/hook", timeout_seconds=0.5)

        with patch.object(Notifier, "_send", AsyncMock(side_effect=OSError("connection refused"))):
            await ArbitrationCoordinator(db, notifier).reject(bug.id, submission.id, Actor(author.id))

        assert (await _get(session_maker, Submission, submission.id)).status == "REJECTED"
