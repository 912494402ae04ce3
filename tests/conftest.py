"""
Bug Exchange - Test Fixtures

Shared pytest fixtures: a throwaway SQLite database per test, an async
session bound to it, a factory for users/bugs/submissions, and a mock
notifier that records calls instead of sending anything.
"""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Ensure the project root is on sys.path so `bugexchange.*` imports resolve
PROJECT_ROOT = str(Path(__file__).resolve().parent.parent)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from bugexchange.db.database import Base  # noqa: E402
import bugexchange.models  # noqa: E402,F401
from bugexchange.models import Bug, BugStatus, Submission, SubmissionStatus, User  # noqa: E402


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    eng = create_async_engine(database_url, poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


# ---------------------------------------------------------------------------
# Mock notifier
# ---------------------------------------------------------------------------

@pytest.fixture
def notifier():
    """Notifier double; every send reports success."""
    n = MagicMock()
    n.submission_approved = AsyncMock(return_value=True)
    n.submission_rejected = AsyncMock(return_value=True)
    n.submission_received = AsyncMock(return_value=True)
    n.comment_posted = AsyncMock(return_value=True)
    return n


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class Factory:
    """Creates committed rows directly, bypassing the services."""

    def __init__(self, session_maker):
        self._session_maker = session_maker
        self._counter = 0

    async def user(self, name: str = None, reputation: int = 0, email: str = None) -> User:
        self._counter += 1
        name = name or f"user{self._counter}"
        async with self._session_maker() as s:
            user = User(name=name, reputation=reputation, email=email or f"{name}@example.com")
            s.add(user)
            await s.commit()
            await s.refresh(user)
            return user

    async def bug(
        self,
        author: User,
        bounty="500",
        status: BugStatus = BugStatus.OPEN,
        assignee: User = None,
        title: str = "Login button crashes on click",
        description: str = "Clicking the login button throws an exception in the handler",
        tags=None,
        stack_trace: str = None,
    ) -> Bug:
        async with self._session_maker() as s:
            bug = Bug(
                title=title,
                description=description,
                bounty_amount=Decimal(str(bounty)),
                tags=list(tags) if tags is not None else ["auth", "frontend"],
                stack_trace=stack_trace,
                status=status.value,
                author_id=author.id,
                assigned_to_id=assignee.id if assignee else None,
            )
            s.add(bug)
            await s.commit()
            await s.refresh(bug)
            return bug

    async def submission(self, bug: Bug, submitter: User,
                         status: SubmissionStatus = SubmissionStatus.PENDING) -> Submission:
        async with self._session_maker() as s:
            submission = Submission(
                bug_id=bug.id,
                submitter_id=submitter.id,
                description="Guard the click handler against a missing session",
                solution="if (!session) { return redirect('/login') } " * 3,
                language="typescript",
                status=status.value,
            )
            s.add(submission)
            await s.commit()
            await s.refresh(submission)
            return submission


@pytest.fixture
def factory(session_maker):
    return Factory(session_maker)
