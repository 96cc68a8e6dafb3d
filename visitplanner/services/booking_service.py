"""
Application service for public visit bookings.

The service runs the arbiter's lookup, checks and commit inside a single
store transaction so concurrent visitors cannot both pass the capacity check
on stale occupancy. Domain errors come back as results, never as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..domain.booking_arbiter import BookingArbiter, BookingDecision
from ..domain.exceptions import NotFound, StoreError, VisitPlannerError
from ..domain.models import BookingRequest, Entity, VisitBooking, VisitSlot
from .store import VisitStore

logger = logging.getLogger(__name__)

GENERIC_STORE_MESSAGE = "Unexpected error while processing the booking."


class BookingOutcome(str, Enum):
    """Terminal states of a booking or cancellation request."""
    ACCEPTED = "accepted"
    SLOT_FULL = "slot_full"
    NEEDS_REPLACE_CONFIRMATION = "needs_replace_confirmation"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


@dataclass
class BookingResult:
    """What happened to a request, with a message safe to show the visitor."""
    outcome: BookingOutcome
    message: str = ""
    code: Optional[str] = None
    booking: Optional[VisitBooking] = None
    replaced: List[VisitBooking] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome is BookingOutcome.ACCEPTED


class BookingService:
    """
    Books and cancels visits against a shared store.

    Every call is an independent fetch-check-commit sequence; no state is
    kept between calls.
    """

    def __init__(self, store: VisitStore, arbiter: BookingArbiter | None = None) -> None:
        self._store = store
        self._arbiter = arbiter or BookingArbiter()

    def book(self, request: BookingRequest) -> BookingResult:
        """
        Create a booking, replacing the visitor's earlier one when asked to.
        """
        try:
            validated = self._arbiter.validate(request)

            with self._store.transaction():
                slot = self._load_slot(validated.slot_id)
                visitor_bookings = self._bookings_for_visitor(
                    slot.schedule_id, validated.visitor_name
                )
                slot_bookings = self._bookings_on_slot(slot.id)

                decision = self._arbiter.evaluate(
                    validated, slot, visitor_bookings, slot_bookings
                )
                booking = self._commit(decision)
        except VisitPlannerError as exc:
            return self._failure(exc)

        logger.info(
            "Booked %s people on slot %s%s",
            booking.number_of_people,
            booking.slot_id,
            " (replacing earlier booking)" if decision.is_replacement else "",
        )
        return BookingResult(
            outcome=BookingOutcome.ACCEPTED,
            booking=booking,
            replaced=decision.replaced,
        )

    def cancel(self, slot_id, visitor_name) -> BookingResult:
        """
        Delete the visitor's booking on a slot. A second cancel is NOT_FOUND.
        """
        try:
            validated = self._arbiter.validate_cancellation(slot_id, visitor_name)

            with self._store.transaction():
                matches = [
                    booking for booking in self._bookings_on_slot(validated.slot_id)
                    if booking.is_for(validated.visitor_name)
                ]
                if not matches:
                    raise NotFound("Booking not found.")

                self._store.delete(
                    Entity.BOOKING, {"id": [booking.id for booking in matches]}
                )
        except VisitPlannerError as exc:
            return self._failure(exc)

        logger.info("Cancelled booking on slot %s", validated.slot_id)
        return BookingResult(outcome=BookingOutcome.ACCEPTED, replaced=matches)

    def _load_slot(self, slot_id: str) -> VisitSlot:
        record = self._store.find_one(Entity.SLOT, {"id": slot_id})
        if record is None:
            raise NotFound("Selected time was not found.")
        return VisitSlot.from_record(record)

    def _bookings_for_visitor(self, schedule_id: str, visitor_name: str) -> List[VisitBooking]:
        """Every booking in the schedule whose name matches, ignoring case."""
        slot_ids = [
            record["id"]
            for record in self._store.find(Entity.SLOT, {"schedule_id": schedule_id})
        ]
        records = self._store.find(Entity.BOOKING, {"slot_id": slot_ids})

        return [
            booking
            for booking in (VisitBooking.from_record(record) for record in records)
            if booking.is_for(visitor_name)
        ]

    def _bookings_on_slot(self, slot_id: str) -> List[VisitBooking]:
        records = self._store.find(Entity.BOOKING, {"slot_id": slot_id})
        return [VisitBooking.from_record(record) for record in records]

    def _commit(self, decision: BookingDecision) -> VisitBooking:
        """Delete superseded bookings and insert the new one, atomically."""
        request = decision.request

        with self._store.transaction():
            if decision.replaced:
                self._store.delete(
                    Entity.BOOKING, {"id": [booking.id for booking in decision.replaced]}
                )
            record = self._store.insert(
                Entity.BOOKING,
                {
                    "slot_id": request.slot_id,
                    "visitor_name": request.visitor_name,
                    "number_of_people": request.number_of_people,
                },
            )

        return VisitBooking.from_record(record)

    @staticmethod
    def _failure(exc: VisitPlannerError) -> BookingResult:
        outcome = BookingOutcome(exc.outcome)

        if isinstance(exc, StoreError):
            logger.exception("Booking request failed in the store: %s", exc)
            return BookingResult(outcome=outcome, message=GENERIC_STORE_MESSAGE)

        logger.debug("Booking request rejected (%s): %s", outcome.value, exc.message)
        return BookingResult(
            outcome=outcome,
            message=exc.message,
            code=getattr(exc, "code", None),
        )
