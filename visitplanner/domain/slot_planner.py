"""
Core business logic for turning a caregiver's time range into visit slots.

Pure domain logic without any external dependencies (no database, no I/O).
"""

import math
from datetime import date, time
from typing import Any, Iterable, List, Optional, Sequence

from pendulum import DateTime

from .exceptions import DateOutOfRange, InvalidInput, SlotConflict
from .models import SlotCandidate, SlotPlan, TimeRange, VisitSchedule, VisitSlot, combine

# Longest digit string accepted from user input
MAX_DIGITS = 9


def _is_ascii_digits(text: str) -> bool:
    return text.isascii() and text.isdecimal()


def parse_positive_int(value: Any, field_name: str) -> int:
    """
    Parse a user-supplied count such as "60" into a positive integer.

    Booleans, fractions, non-numeric text and values below one are rejected
    rather than coerced.
    """
    if isinstance(value, bool):
        raise InvalidInput(f"{field_name} must be a whole number, got {value!r}")

    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise InvalidInput(f"{field_name} must be a whole number, got {value!r}")
        number = int(value)
    elif isinstance(value, str) and _is_ascii_digits(value.strip()):
        digits = value.strip().lstrip("0")
        if len(digits) > MAX_DIGITS:
            raise InvalidInput(f"{field_name} is too large, got {len(digits)} digits")
        number = int(digits or "0")
    else:
        raise InvalidInput(f"{field_name} must be a whole number, got {value!r}")

    if number < 1:
        raise InvalidInput(f"{field_name} must be at least 1, got {number}")
    if number >= 10 ** MAX_DIGITS:
        raise InvalidInput(f"{field_name} is too large, got {number}")
    return number


class SlotPlanner:
    """
    Plans visit slots for a single day of a schedule.

    Algorithm:
    1. Validate the requested date, window, duration and capacity
    2. Walk the window in steps of the slot duration
    3. Truncate the last slot so it ends exactly at the window end
    4. Split the candidates into clean ones and ones that overlap
       existing, non-skipped slots on the same date
    """

    def __init__(self, timezone: str = "America/Sao_Paulo"):
        self.timezone = timezone

    def generate_slots(
        self,
        day_start: DateTime,
        day_end: DateTime,
        slot_duration_minutes: Any,
        capacity_per_slot: Any,
    ) -> List[SlotCandidate]:
        """
        Partition [day_start, day_end) into consecutive candidate slots.

        Args:
            day_start: First instant of the window
            day_end: End of the window (exclusive)
            slot_duration_minutes: Length of each slot, possibly as text
            capacity_per_slot: Party-size cap applied to every slot

        Returns:
            Chronological, gapless and non-overlapping candidates

        Raises:
            InvalidInput: If the window is empty or a number is invalid
        """
        if day_end <= day_start:
            raise InvalidInput("End time must be after start time.")

        duration = parse_positive_int(slot_duration_minutes, "Slot duration")
        capacity = parse_positive_int(capacity_per_slot, "Maximum people")

        candidates: List[SlotCandidate] = []
        cursor = day_start

        while cursor < day_end:
            slot_end = cursor.add(minutes=duration)
            actual_end = min(slot_end, day_end)
            # Round half up to whole minutes
            actual_duration = math.floor((actual_end - cursor).total_seconds() / 60 + 0.5)

            if actual_duration > 0:
                candidates.append(
                    SlotCandidate(
                        start=cursor,
                        duration_minutes=actual_duration,
                        max_people=capacity,
                    )
                )

            cursor = slot_end

        return candidates

    def detect_conflicts(
        self,
        candidates: Iterable[SlotCandidate],
        existing_slots: Iterable[VisitSlot],
        exclude_slot_id: Optional[str] = None,
    ) -> List[SlotCandidate]:
        """
        Return the candidates that overlap an existing slot on the same date.

        Skipped slots and the slot identified by exclude_slot_id (the one
        being edited) never count as conflicts.
        """
        relevant = [
            slot for slot in existing_slots
            if not slot.is_skipped and slot.id != exclude_slot_id
        ]

        return [
            candidate for candidate in candidates
            if self._overlaps_any(candidate, relevant)
        ]

    def plan_day(
        self,
        schedule: VisitSchedule,
        day: date,
        start_time: time,
        end_time: time,
        slot_duration_minutes: Any,
        capacity_per_slot: Any,
        existing_slots: Sequence[VisitSlot] = (),
    ) -> SlotPlan:
        """
        Validate a caregiver's request and classify the resulting candidates.

        Raises:
            DateOutOfRange: If the day lies outside the schedule
            InvalidInput: If the window or numbers are invalid, or nothing
                could be generated
        """
        self._ensure_within_schedule(schedule, day)

        day_start = combine(day, start_time, self.timezone)
        day_end = combine(day, end_time, self.timezone)

        candidates = self.generate_slots(
            day_start, day_end, slot_duration_minutes, capacity_per_slot
        )
        if not candidates:
            raise InvalidInput("Could not create slots with the given parameters.")

        same_day = [slot for slot in existing_slots if slot.date == day]
        conflicting = self.detect_conflicts(candidates, same_day)

        return SlotPlan(
            clean=[c for c in candidates if c not in conflicting],
            conflicting=conflicting,
        )

    def check_slot_edit(
        self,
        schedule: VisitSchedule,
        slot: VisitSlot,
        existing_slots: Sequence[VisitSlot],
    ) -> VisitSlot:
        """
        Validate an edited slot against its schedule and its neighbours.

        Returns the slot with normalized integer fields.

        Raises:
            DateOutOfRange: If the new date lies outside the schedule
            InvalidInput: If duration or capacity are not positive integers
            SlotConflict: If a non-skipped slot overlaps another slot
        """
        self._ensure_within_schedule(schedule, slot.date)
        slot.duration_minutes = parse_positive_int(slot.duration_minutes, "Slot duration")
        slot.max_people = parse_positive_int(slot.max_people, "Maximum people")

        if slot.is_skipped:
            return slot

        edited = slot.time_range(self.timezone)
        overlapping = [
            other for other in existing_slots
            if other.date == slot.date
            and other.id != slot.id
            and not other.is_skipped
            and edited.overlaps(other.time_range(self.timezone))
        ]
        if overlapping:
            raise SlotConflict("This time overlaps another existing slot.", overlapping)

        return slot

    def _overlaps_any(self, candidate: SlotCandidate, slots: Sequence[VisitSlot]) -> bool:
        """Check a candidate against slots, comparing only those on its date."""
        candidate_range: TimeRange = candidate.time_range
        candidate_day = candidate.start.date()

        for slot in slots:
            if slot.date != candidate_day:
                continue
            if candidate_range.overlaps(slot.time_range(self.timezone)):
                return True
        return False

    @staticmethod
    def _ensure_within_schedule(schedule: VisitSchedule, day: date) -> None:
        if not schedule.contains(day):
            raise DateOutOfRange(
                f"Slot date {day.isoformat()} must be within the schedule period "
                f"{schedule.start_date.isoformat()} - {schedule.end_date.isoformat()}."
            )
