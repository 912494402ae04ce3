from bugexchange.models.user import User
from bugexchange.models.bug import Bug, BugStatus, BugCategory, BugPriority, BugSeverity
from bugexchange.models.submission import Submission, SubmissionStatus
from bugexchange.models.transition import BugTransition
from bugexchange.models.reputation_entry import ReputationEntry
from bugexchange.models.comment import Comment

__all__ = [
    "User",
    "Bug",
    "BugStatus",
    "BugCategory",
    "BugPriority",
    "BugSeverity",
    "Submission",
    "SubmissionStatus",
    "BugTransition",
    "ReputationEntry",
    "Comment",
]
