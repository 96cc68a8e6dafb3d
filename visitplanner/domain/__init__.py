"""
Domain layer - Pure business logic without external dependencies.
"""

from .booking_arbiter import BookingArbiter, BookingDecision, ValidatedRequest
from .models import (
    Baby,
    BookingRequest,
    Entity,
    Profile,
    SlotCandidate,
    SlotOccupancy,
    SlotPlan,
    TimeRange,
    VisitBooking,
    VisitSchedule,
    VisitSlot,
)
from .slot_planner import SlotPlanner, parse_positive_int

__all__ = [
    "Baby",
    "BookingArbiter",
    "BookingDecision",
    "BookingRequest",
    "Entity",
    "Profile",
    "SlotCandidate",
    "SlotOccupancy",
    "SlotPlan",
    "SlotPlanner",
    "TimeRange",
    "ValidatedRequest",
    "VisitBooking",
    "VisitSchedule",
    "VisitSlot",
    "parse_positive_int",
]
