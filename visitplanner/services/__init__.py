"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingOutcome, BookingResult, BookingService
from .profile_service import ProfileService
from .schedule_service import PublicSchedule, ScheduleService
from .store import EntitlementProvider, VisitStore

__all__ = [
    "BookingOutcome",
    "BookingResult",
    "BookingService",
    "EntitlementProvider",
    "ProfileService",
    "PublicSchedule",
    "ScheduleService",
    "VisitStore",
]
