"""
Decision rules for public visit bookings.

The arbiter is pure: it never reads or writes storage. The booking service
feeds it the current occupancy inside a transaction and commits whatever
decision comes back.
"""

from dataclasses import dataclass, field
from typing import Any, List, Sequence

from .exceptions import InvalidInput, NeedsReplaceConfirmation, SlotFull
from .models import BookingRequest, VisitBooking, VisitSlot
from .slot_planner import parse_positive_int


@dataclass(frozen=True)
class ValidatedRequest:
    """A booking request whose fields have been cleaned and checked."""
    slot_id: str
    visitor_name: str
    number_of_people: int
    replace_existing: bool = False


@dataclass
class BookingDecision:
    """An accepted booking plus the prior bookings it supersedes."""
    request: ValidatedRequest
    replaced: List[VisitBooking] = field(default_factory=list)

    @property
    def is_replacement(self) -> bool:
        return bool(self.replaced)


class BookingArbiter:
    """
    Enforces slot capacity and one booking per visitor per schedule.

    State machine per request:
    1. validate: clean the name and party size
    2. duplicate check: a visitor with a booking must confirm a replace
    3. capacity check: skipped slots and overfull slots are refused
    4. the caller commits the returned decision atomically
    """

    def validate(self, request: BookingRequest) -> ValidatedRequest:
        """
        Clean a raw request.

        Raises:
            InvalidInput: If the slot id or name is missing, or the party
                size is not an integer of at least one
        """
        slot_id = self._clean_text(request.slot_id)
        visitor_name = self._clean_text(request.visitor_name)

        if not slot_id:
            raise InvalidInput("A slot must be selected.")
        if not visitor_name:
            raise InvalidInput("Invalid name.")

        try:
            people = parse_positive_int(request.number_of_people, "Number of people")
        except InvalidInput:
            raise InvalidInput("Number of people must be at least 1.") from None

        return ValidatedRequest(
            slot_id=slot_id,
            visitor_name=visitor_name,
            number_of_people=people,
            replace_existing=bool(request.replace_existing),
        )

    def evaluate(
        self,
        request: ValidatedRequest,
        slot: VisitSlot,
        visitor_bookings: Sequence[VisitBooking],
        slot_bookings: Sequence[VisitBooking],
    ) -> BookingDecision:
        """
        Decide whether a validated request may be committed.

        Args:
            request: The cleaned request
            slot: The target slot
            visitor_bookings: The visitor's bookings anywhere in the schedule
            slot_bookings: Every booking currently on the target slot

        Returns:
            The decision to commit, listing bookings to delete first

        Raises:
            NeedsReplaceConfirmation: Visitor already booked, no replace flag
            SlotFull: Slot is skipped or lacks room for the party
        """
        if visitor_bookings and not request.replace_existing:
            raise NeedsReplaceConfirmation(
                "You already have a booking in this schedule. "
                "Confirm that you want to change it."
            )

        if slot.is_skipped:
            raise SlotFull("This time is not open for visits.")

        # Every booking currently on the slot counts, including ones being replaced
        occupied = sum(booking.number_of_people for booking in slot_bookings)

        if occupied + request.number_of_people > slot.max_people:
            raise SlotFull(
                "This time does not have enough room for the number of people given."
            )

        return BookingDecision(request=request, replaced=list(visitor_bookings))

    def validate_cancellation(self, slot_id: Any, visitor_name: Any) -> ValidatedRequest:
        """Clean the fields of a cancellation request."""
        cleaned_slot = self._clean_text(slot_id)
        cleaned_name = self._clean_text(visitor_name)

        if not cleaned_slot:
            raise InvalidInput("Incomplete data to cancel the booking.")
        if not cleaned_name:
            raise InvalidInput("Invalid name.")

        return ValidatedRequest(
            slot_id=cleaned_slot,
            visitor_name=cleaned_name,
            number_of_people=1,
        )

    @staticmethod
    def _clean_text(value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()
