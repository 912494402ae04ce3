"""
Bug Exchange - Error Taxonomy

Every failure surfaced to a caller carries a stable machine-readable `kind`
and a human-readable message. The HTTP layer maps `status_code` directly.
"""


class BugExchangeError(Exception):
    """Base class for domain errors."""
    kind = "internal"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class Unauthenticated(BugExchangeError):
    kind = "unauthenticated"
    status_code = 401


class Unauthorized(BugExchangeError):
    kind = "unauthorized"
    status_code = 403


class NotFound(BugExchangeError):
    kind = "not_found"
    status_code = 404


class InvalidInput(BugExchangeError):
    kind = "invalid_input"
    status_code = 400


class Conflict(BugExchangeError):
    kind = "conflict"
    status_code = 409


class Internal(BugExchangeError):
    kind = "internal"
    status_code = 500
