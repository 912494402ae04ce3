"""
Bug Exchange - Bug Lifecycle Policy

Pure permission gate for bug status and assignment changes. The policy does
not validate which status may follow which: any requested status is allowed
for an eligible actor.

Components:
  - Actor: the caller's identity facts, passed in explicitly
  - TransitionDecision: allow / deny result with a reason
  - TransitionNote: user-supplied or generated audit note
  - authorize_transition: status-change permission (author, assignee, trusted reviewer)
  - authorize_assignment: assignment permission (author, assignee only)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bugexchange.config import settings
from bugexchange.models.bug import BugStatus

logger = logging.getLogger(__name__)


# Bug statuses from which a submission may still be approved
APPROVABLE_STATUSES = frozenset({
    BugStatus.OPEN,
    BugStatus.IN_PROGRESS,
    BugStatus.CLAIMED,
    BugStatus.UNDER_REVIEW,
    BugStatus.REOPENED,
})


@dataclass(frozen=True)
class Actor:
    """Identity facts for the user issuing a request."""
    id: str
    reputation: int = 0


@dataclass
class TransitionDecision:
    """Result of a lifecycle permission check."""
    allowed: bool
    reason: str = ""


# ---------------------------------------------------------------------------
# Audit notes
# ---------------------------------------------------------------------------

class NoteKind(str, Enum):
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    CREATED = "created"
    SUBMISSION_APPROVED = "submission_approved"


@dataclass(frozen=True)
class TransitionNote:
    """Either text supplied by the caller or a generated note of a given kind.

    Persisted as a single string via render().
    """
    kind: NoteKind
    user_supplied: Optional[str] = None

    def render(self, from_status: Optional[str] = None, to_status: Optional[str] = None,
               subject_id: Optional[str] = None) -> str:
        if self.user_supplied:
            return self.user_supplied
        if self.kind == NoteKind.STATUS_CHANGED:
            return f"Status changed from {_label(from_status)} to {_label(to_status)}"
        if self.kind == NoteKind.ASSIGNED:
            return "Bug assigned to user"
        if self.kind == NoteKind.UNASSIGNED:
            return "Bug unassigned from user"
        if self.kind == NoteKind.SUBMISSION_APPROVED:
            return f"Submission {subject_id} approved"
        return "Bug created"


def _label(status) -> str:
    if isinstance(status, BugStatus):
        return status.value
    return str(status)


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------

def authorize_transition(actor: Actor, bug, requested_status: BugStatus,
                         trusted_threshold: Optional[int] = None) -> TransitionDecision:
    """Decide whether `actor` may move `bug` to `requested_status`.

    Allowed for the bug author, the current assignee, or any user whose
    reputation meets the trusted-reviewer threshold.
    """
    threshold = settings.TRUSTED_REVIEWER_THRESHOLD if trusted_threshold is None else trusted_threshold

    if actor.id == bug.author_id:
        return TransitionDecision(allowed=True, reason="author")
    if bug.assigned_to_id is not None and actor.id == bug.assigned_to_id:
        return TransitionDecision(allowed=True, reason="assignee")
    if actor.reputation >= threshold:
        return TransitionDecision(allowed=True, reason="trusted_reviewer")

    logger.warning(
        f"Status change to {_label(requested_status)} denied for user {actor.id} on bug {bug.id}"
    )
    return TransitionDecision(
        allowed=False,
        reason=(
            "Only the bug author, the assignee, or users with at least "
            f"{threshold} reputation can change bug status"
        ),
    )


def authorize_assignment(actor: Actor, bug) -> TransitionDecision:
    """Decide whether `actor` may change who is assigned to `bug`.

    Reputation never grants assignment rights.
    """
    if actor.id == bug.author_id:
        return TransitionDecision(allowed=True, reason="author")
    if bug.assigned_to_id is not None and actor.id == bug.assigned_to_id:
        return TransitionDecision(allowed=True, reason="assignee")

    logger.warning(f"Assignment change denied for user {actor.id} on bug {bug.id}")
    return TransitionDecision(
        allowed=False,
        reason="Only the bug author or the current assignee can change assignment",
    )


def is_approvable(status) -> bool:
    try:
        return BugStatus(status) in APPROVABLE_STATUSES
    except ValueError:
        return False
