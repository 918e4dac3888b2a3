"""
Error taxonomy for the tournament workflow core.

Every business-rule rejection raised by the registries, the ledger and the
assignment coordinator derives from WorkflowError. Each kind carries the
HTTP status and machine-readable code the API layer reports.
"""
from typing import Optional


class WorkflowError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class NotFound(WorkflowError):
    """Entity missing, inactive, or not part of the expected tournament."""
    status_code = 404
    code = "NOT_FOUND"


class Forbidden(WorkflowError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "You are not authorized to perform this action."):
        super().__init__(message)


class InvalidTransition(WorkflowError):
    """Status precondition not met for the requested action."""
    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(self, from_state: str, to_state: Optional[str] = None, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            reason or f"Cannot transition from {from_state} to {to_state or 'unknown'}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["from_state"] = self.from_state
        data["to_state"] = self.to_state
        return data


class InsufficientFunds(WorkflowError):
    status_code = 402
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, team_id: str, requested: int, available: Optional[int] = None):
        self.team_id = team_id
        self.requested = requested
        self.available = available
        super().__init__(f"Team {team_id} does not have sufficient budget for {requested}.")


class Conflict(WorkflowError):
    """Uniqueness violation (duplicate name, registration or staff member)."""
    status_code = 409
    code = "CONFLICT"


class ValidationFailed(WorkflowError):
    status_code = 400
    code = "VALIDATION_FAILED"


class CompensationFailed(WorkflowError):
    """A compensating ledger credit could not be applied."""
    status_code = 500
    code = "COMPENSATION_FAILED"
