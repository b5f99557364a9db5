"""Error taxonomy shared by the services and the JSON routes."""

from __future__ import annotations


class QuizboardError(Exception):
    """Base class for errors surfaced to the caller as a JSON notification."""

    status_code = 400
    code = "error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code

    def to_dict(self) -> dict:
        return {"ok": False, "msg": self.code, "detail": self.detail}


class ValidationError(QuizboardError):
    status_code = 400
    code = "invalid_input"


class NotAuthorized(QuizboardError):
    status_code = 403
    code = "not_authorized"


class NotOwner(NotAuthorized):
    code = "not_owner"


class NotEnrolled(NotAuthorized):
    code = "not_enrolled"


class NotFound(QuizboardError):
    status_code = 404
    code = "not_found"


class Conflict(QuizboardError):
    status_code = 409
    code = "conflict"


class DuplicateRequest(Conflict):
    code = "duplicate_request"


class AlreadySubmitted(Conflict):
    code = "already_submitted"


class AlreadyActive(Conflict):
    code = "already_active"


class InvalidTransition(Conflict):
    code = "invalid_transition"


class SessionNotActive(Conflict):
    code = "session_not_active"


class StoreUnavailable(QuizboardError):
    status_code = 503
    code = "store_unavailable"
