"""
Typed service errors.

Each error is an HTTPException so services raise them exactly like any other
HTTP error; the `code` lets callers tell validation, conflict, not-found and
server faults apart without parsing messages.
"""

from typing import Any, Optional

from fastapi import HTTPException


class WorkspanError(HTTPException):
    status_code = 500
    code = "server_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(WorkspanError):
    status_code = 400
    code = "validation_error"


class BudgetExceeded(ValidationFailed):
    status_code = 422
    code = "budget_exceeded"


class DurationExceeded(ValidationFailed):
    status_code = 422
    code = "duration_exceeded"


class DuplicateReview(ValidationFailed):
    status_code = 409
    code = "duplicate_review"


class NotFound(WorkspanError):
    status_code = 404
    code = "not_found"


class Forbidden(WorkspanError):
    status_code = 403
    code = "forbidden"


class StateConflict(WorkspanError):
    status_code = 409
    code = "invalid_state"


class ServerFault(WorkspanError):
    status_code = 500
    code = "server_fault"
