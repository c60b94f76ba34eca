"""Error taxonomy shared by every service.

Engines report expected business-rule failures as result values carrying an
``ErrorCode``; routers turn failed results into ``ServiceError`` which the
exception handlers in ``libs.common.error_handler`` render as JSON.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    TIER_REQUIRED = "tier_required"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


class ErrorCode(str, enum.Enum):
    # Generic
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    TIER_REQUIRED = "TIER_REQUIRED"
    TRANSACTION_CONFLICT = "TRANSACTION_CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Session negotiation
    INVALID_ACTION = "INVALID_ACTION"
    INVALID_REASON = "INVALID_REASON"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    NO_ASSIGNED_COACH = "NO_ASSIGNED_COACH"
    NOT_ASSIGNED = "NOT_ASSIGNED"

    # Goals
    GOAL_NOT_FOUND = "GOAL_NOT_FOUND"
    VOTING_NOT_ACTIVE = "VOTING_NOT_ACTIVE"
    VOTING_ENDED = "VOTING_ENDED"
    INVALID_OPTION = "INVALID_OPTION"
    NOT_IN_VOTING_STATUS = "NOT_IN_VOTING_STATUS"
    VOTING_STILL_OPEN = "VOTING_STILL_OPEN"
    NOT_IN_FUNDRAISING_STATUS = "NOT_IN_FUNDRAISING_STATUS"
    NO_OPTIONS = "NO_OPTIONS"
    WINNING_OPTION_NOT_FOUND = "WINNING_OPTION_NOT_FOUND"
    INVALID_GOAL_STATE = "INVALID_GOAL_STATE"
    GOAL_HAS_ACTIVITY = "GOAL_HAS_ACTIVITY"


KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 400,
    ErrorKind.TIER_REQUIRED: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}

# "Not your turn" is about current protocol state, not identity, so it is a
# validation-class error.
CODE_KIND: dict[ErrorCode, ErrorKind] = {
    ErrorCode.INVALID_INPUT: ErrorKind.VALIDATION,
    ErrorCode.NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.FORBIDDEN: ErrorKind.FORBIDDEN,
    ErrorCode.UNAUTHORIZED: ErrorKind.UNAUTHORIZED,
    ErrorCode.TIER_REQUIRED: ErrorKind.TIER_REQUIRED,
    ErrorCode.TRANSACTION_CONFLICT: ErrorKind.CONFLICT,
    ErrorCode.INTERNAL_ERROR: ErrorKind.INTERNAL,
    ErrorCode.INVALID_ACTION: ErrorKind.VALIDATION,
    ErrorCode.INVALID_REASON: ErrorKind.VALIDATION,
    ErrorCode.NOT_YOUR_TURN: ErrorKind.VALIDATION,
    ErrorCode.DUPLICATE_REQUEST: ErrorKind.CONFLICT,
    ErrorCode.NO_ASSIGNED_COACH: ErrorKind.VALIDATION,
    ErrorCode.NOT_ASSIGNED: ErrorKind.FORBIDDEN,
    ErrorCode.GOAL_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.VOTING_NOT_ACTIVE: ErrorKind.VALIDATION,
    ErrorCode.VOTING_ENDED: ErrorKind.VALIDATION,
    ErrorCode.INVALID_OPTION: ErrorKind.VALIDATION,
    ErrorCode.NOT_IN_VOTING_STATUS: ErrorKind.VALIDATION,
    ErrorCode.VOTING_STILL_OPEN: ErrorKind.VALIDATION,
    ErrorCode.NOT_IN_FUNDRAISING_STATUS: ErrorKind.VALIDATION,
    ErrorCode.NO_OPTIONS: ErrorKind.VALIDATION,
    ErrorCode.WINNING_OPTION_NOT_FOUND: ErrorKind.INTERNAL,
    ErrorCode.INVALID_GOAL_STATE: ErrorKind.VALIDATION,
    ErrorCode.GOAL_HAS_ACTIVITY: ErrorKind.VALIDATION,
}

MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_INPUT: "Invalid input",
    ErrorCode.NOT_FOUND: "Not found or already processed",
    ErrorCode.FORBIDDEN: "You are not allowed to do this",
    ErrorCode.UNAUTHORIZED: "Unauthorized",
    ErrorCode.TIER_REQUIRED: "This feature requires a higher subscription tier",
    ErrorCode.TRANSACTION_CONFLICT: "Conflict - please try again",
    ErrorCode.INTERNAL_ERROR: "Something went wrong",
    ErrorCode.INVALID_ACTION: "Invalid action. Use 'accept', 'counter' or 'decline'",
    ErrorCode.INVALID_REASON: "A cancellation reason is required",
    ErrorCode.NOT_YOUR_TURN: "Waiting for the other party to respond",
    ErrorCode.DUPLICATE_REQUEST: "An active session request already exists",
    ErrorCode.NO_ASSIGNED_COACH: "You need an assigned coach to schedule a session",
    ErrorCode.NOT_ASSIGNED: "You can only schedule sessions with assigned members",
    ErrorCode.GOAL_NOT_FOUND: "Goal not found",
    ErrorCode.VOTING_NOT_ACTIVE: "Voting is not active",
    ErrorCode.VOTING_ENDED: "Voting has ended",
    ErrorCode.INVALID_OPTION: "Invalid option",
    ErrorCode.NOT_IN_VOTING_STATUS: "Voting is not active",
    ErrorCode.VOTING_STILL_OPEN: "Voting deadline has not passed yet",
    ErrorCode.NOT_IN_FUNDRAISING_STATUS: "Contributions are only possible while fundraising",
    ErrorCode.NO_OPTIONS: "Goal has no options",
    ErrorCode.WINNING_OPTION_NOT_FOUND: "Winning option not found",
    ErrorCode.INVALID_GOAL_STATE: "Goal is not in a state that allows this",
    ErrorCode.GOAL_HAS_ACTIVITY: "Goal has votes or contributions and cannot be deleted",
}


def status_for(code: ErrorCode) -> int:
    return KIND_STATUS[CODE_KIND.get(code, ErrorKind.INTERNAL)]


class ServiceError(Exception):
    """An expected failure crossing the engine/handler boundary."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message or MESSAGES.get(code, code.value)
        self.details = details or {}
        super().__init__(self.message)

    @property
    def kind(self) -> ErrorKind:
        return CODE_KIND.get(self.code, ErrorKind.INTERNAL)

    @property
    def status_code(self) -> int:
        return status_for(self.code)


@dataclass
class ServiceResult:
    """Base for engine results: a success flag plus a typed error code."""

    success: bool = True
    error: Optional[ErrorCode] = None
    message: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def raise_for_error(self) -> None:
        if not self.success:
            raise ServiceError(
                self.error or ErrorCode.INTERNAL_ERROR,
                message=self.message,
                details=self.details,
            )
