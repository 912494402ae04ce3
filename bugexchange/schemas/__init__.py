from bugexchange.schemas.bug import (
    BugCreate,
    BugResponse,
    StatusChangeRequest,
    AssignmentRequest,
    TransitionResponse,
    DuplicateCheckRequest,
    DuplicateMatch,
    DuplicateCheckResponse,
)
from bugexchange.schemas.submission import (
    SubmissionCreate,
    SubmissionResponse,
    ArbitrationResponse,
)
from bugexchange.schemas.user import (
    LeaderboardEntry,
    ReputationEntryResponse,
    ActivityItem,
)
from bugexchange.schemas.comment import (
    CommentCreate,
    CommentReply,
    CommentResponse,
)

__all__ = [
    "BugCreate", "BugResponse", "StatusChangeRequest", "AssignmentRequest", "TransitionResponse",
    "DuplicateCheckRequest", "DuplicateMatch", "DuplicateCheckResponse",
    "SubmissionCreate", "SubmissionResponse", "ArbitrationResponse",
    "LeaderboardEntry", "ReputationEntryResponse", "ActivityItem",
    "CommentCreate", "CommentReply", "CommentResponse",
]
