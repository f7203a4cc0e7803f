"""
Error kinds raised by the issue workflow.

Every operation either succeeds completely or raises one of these with no
state change. The HTTP layer maps them to a status code in one place
(see ``main.py``); nothing in the services knows about HTTP.
"""
from typing import Optional


class LedgerError(Exception):
    code = "store_failure"
    status_code = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Operation failed"


# --- 400 ---
class ValidationError(LedgerError):
    code = "validation_error"
    status_code = 400


# --- 403 ---
class AuthorizationError(LedgerError):
    code = "forbidden"
    status_code = 403


class WrongRole(AuthorizationError):
    code = "wrong_role"

    def __init__(self, role, allowed):
        self.role = role
        self.allowed = tuple(allowed)
        names = ", ".join(str(getattr(r, "value", r)) for r in self.allowed)
        super().__init__(f"Role '{getattr(role, 'value', role)}' is not allowed; requires one of: {names}")


class NotAssigned(AuthorizationError):
    code = "not_assigned"

    def default_message(self) -> str:
        return "You are not assigned to this issue"


# --- 404 ---
class NotFound(LedgerError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


# --- 409 ---
class StateConflictError(LedgerError):
    code = "state_conflict"
    status_code = 409


class IllegalState(StateConflictError):
    code = "illegal_state"

    def __init__(self, current, attempted, message: Optional[str] = None):
        self.current = getattr(current, "value", current)
        self.attempted = getattr(attempted, "value", attempted)
        super().__init__(message or f"Cannot apply '{self.attempted}' while status is '{self.current}'")


class WrongState(IllegalState):
    code = "wrong_state"


class AlreadyProcessed(StateConflictError):
    code = "already_processed"

    def default_message(self) -> str:
        return "Already processed by another request"


class AlreadyAccepted(AlreadyProcessed):
    code = "already_accepted"

    def default_message(self) -> str:
        return "Application already accepted"


class DuplicateBid(StateConflictError):
    code = "duplicate_bid"

    def default_message(self) -> str:
        return "You have already applied for this issue"


class IssueNotOpen(StateConflictError):
    code = "issue_not_open"

    def default_message(self) -> str:
        return "Issue is not available for applications"


class AlreadySubmitted(StateConflictError):
    code = "already_submitted"

    def default_message(self) -> str:
        return "Proof has already been submitted for this issue"


class AlreadyPaid(StateConflictError):
    code = "already_paid"

    def default_message(self) -> str:
        return "A payment has already been recorded for this issue"


class IssueNotResolved(StateConflictError):
    code = "issue_not_resolved"

    def default_message(self) -> str:
        return "Issue must be resolved with approved proof before payment"


class InsufficientBalance(StateConflictError):
    code = "insufficient_balance"

    def __init__(self, requested=None, available=None):
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient balance: requested {requested}, available {available}")


class ActiveBidsRemain(StateConflictError):
    code = "active_bids_remain"

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"Issue still has {remaining} active application(s)")


# --- 500 ---
class StoreFailure(LedgerError):
    """Transaction aborted or timed out. Nothing was applied; safe to retry."""

    code = "store_failure"
    status_code = 500
    retryable = True

    def default_message(self) -> str:
        return "Database error, please retry"
