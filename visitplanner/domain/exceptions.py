"""
Domain-specific exception hierarchy for the visit planner.

Every error carries the booking outcome it maps to so the service layer can
turn it into a result instead of letting it escape to the transport.
"""


class VisitPlannerError(Exception):
    """Base class for all application-level errors."""

    outcome = "store_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(VisitPlannerError):
    """Raised for malformed or missing fields and non-positive numbers."""

    outcome = "invalid_input"


class DateOutOfRange(InvalidInput):
    """Raised when a slot date falls outside its schedule's range."""


class PlanLimitExceeded(InvalidInput):
    """Raised when a free-plan account asks for a multi-day schedule."""


class SlotConflict(InvalidInput):
    """Raised when slots overlap existing ones and the caller did not opt out."""

    def __init__(self, message: str, conflicts=()):
        super().__init__(message)
        self.conflicts = list(conflicts)


class NotFound(VisitPlannerError):
    """Raised when a slot, schedule or booking does not resolve."""

    outcome = "not_found"


class Conflict(VisitPlannerError):
    """Base for requests that clash with current occupancy."""


class SlotFull(Conflict):
    """Raised when a slot cannot take the requested party."""

    outcome = "slot_full"


class NeedsReplaceConfirmation(Conflict):
    """Raised when the visitor already holds a booking in the schedule."""

    outcome = "needs_replace_confirmation"
    code = "ALREADY_BOOKED"


class StoreError(VisitPlannerError):
    """Raised when the persistence layer fails."""

    outcome = "store_error"
