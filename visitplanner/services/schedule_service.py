"""
Application service for the caregiver's schedules and slots.

This is the trusted path: only the schedule owner reaches it (through the
CLI), and it is the only code that creates, edits or removes slots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..domain.exceptions import InvalidInput, NotFound, PlanLimitExceeded, SlotConflict
from ..domain.models import (
    Entity,
    SlotOccupancy,
    SlotPlan,
    VisitBooking,
    VisitSchedule,
    VisitSlot,
    parse_date,
    parse_time,
)
from ..domain.slot_planner import SlotPlanner
from .store import EntitlementProvider, VisitStore

logger = logging.getLogger(__name__)

SLOT_ORDER = ("date", "start_time")


@dataclass
class PublicSchedule:
    """What a visitor sees when opening the sharing link."""
    schedule: VisitSchedule
    slots: List[SlotOccupancy] = field(default_factory=list)


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class ScheduleService:
    """
    Orchestrates schedule bookkeeping and slot planning.

    Slot generation and conflict detection are delegated to the domain-level
    ``SlotPlanner``; this class loads what the planner needs and persists
    its output.
    """

    def __init__(
        self,
        store: VisitStore,
        planner: SlotPlanner,
        entitlements: EntitlementProvider,
    ) -> None:
        self._store = store
        self._planner = planner
        self._entitlements = entitlements

    # =========================================================================
    # Schedules
    # =========================================================================

    def create_schedule(
        self,
        *,
        user_id: str,
        start_date: Any,
        end_date: Any,
        name: Optional[str] = None,
        custom_message: Optional[str] = None,
    ) -> VisitSchedule:
        """Create a visiting window. Free accounts are limited to one day."""
        start, end = self._parse_range(start_date, end_date)
        self._ensure_plan_allows(user_id, start, end)

        record = self._store.insert(
            Entity.SCHEDULE,
            {
                "user_id": user_id,
                "name": _clean_optional(name),
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "custom_message": _clean_optional(custom_message),
            },
        )
        logger.info("Created schedule %s for %s", record["id"], user_id)
        return VisitSchedule.from_record(record)

    def get_schedule(self, schedule_id: str) -> VisitSchedule:
        record = self._store.find_one(Entity.SCHEDULE, {"id": schedule_id})
        if record is None:
            raise NotFound("Schedule not found.")
        return VisitSchedule.from_record(record)

    def list_schedules(self, user_id: str) -> List[VisitSchedule]:
        """The owner's schedules, newest first."""
        records = self._store.find(Entity.SCHEDULE, {"user_id": user_id}, order_by=("created_at",))
        return [VisitSchedule.from_record(record) for record in reversed(records)]

    def update_schedule(self, schedule_id: str, **changes: Any) -> VisitSchedule:
        """
        Change a schedule's name, message or dates.

        Narrowing the dates is refused while slots exist outside the new range.
        """
        with self._store.transaction():
            current = self.get_schedule(schedule_id)
            start, end = self._parse_range(
                changes.get("start_date", current.start_date),
                changes.get("end_date", current.end_date),
            )
            self._ensure_plan_allows(current.user_id, start, end)

            stranded = [
                slot for slot in self.list_slots(schedule_id)
                if not start <= slot.date <= end
            ]
            if stranded:
                raise InvalidInput(
                    f"{len(stranded)} slot(s) fall outside {start.isoformat()} - {end.isoformat()}."
                )

            patch: Dict[str, Any] = {"start_date": start.isoformat(), "end_date": end.isoformat()}
            for key in ("name", "custom_message"):
                if key in changes:
                    patch[key] = _clean_optional(changes[key])

            self._store.update(Entity.SCHEDULE, schedule_id, patch)
            return self.get_schedule(schedule_id)

    def delete_schedule(self, schedule_id: str) -> None:
        """Delete a schedule together with its slots and their bookings."""
        if not self._store.delete(Entity.SCHEDULE, {"id": schedule_id}):
            raise NotFound("Schedule not found.")
        logger.info("Deleted schedule %s", schedule_id)

    # =========================================================================
    # Slots
    # =========================================================================

    def list_slots(self, schedule_id: str) -> List[VisitSlot]:
        records = self._store.find(Entity.SLOT, {"schedule_id": schedule_id}, order_by=SLOT_ORDER)
        return [VisitSlot.from_record(record) for record in records]

    def plan_slots(
        self,
        schedule_id: str,
        *,
        day: Any,
        start_time: Any,
        end_time: Any,
        duration_minutes: Any,
        max_people: Any,
    ) -> SlotPlan:
        """Preview the slots a request would create, without writing anything."""
        schedule = self.get_schedule(schedule_id)
        return self._plan(schedule, day, start_time, end_time, duration_minutes, max_people)

    def add_slots(
        self,
        schedule_id: str,
        *,
        day: Any,
        start_time: Any,
        end_time: Any,
        duration_minutes: Any,
        max_people: Any,
        skip_conflicts: bool = False,
    ) -> List[VisitSlot]:
        """
        Generate and store slots for one day.

        Args:
            skip_conflicts: Create only the candidates that do not overlap
                existing slots instead of refusing the whole request

        Raises:
            SlotConflict: If candidates overlap and skip_conflicts is False
        """
        with self._store.transaction():
            schedule = self.get_schedule(schedule_id)
            plan = self._plan(schedule, day, start_time, end_time, duration_minutes, max_people)

            if plan.has_conflicts and not skip_conflicts:
                raise SlotConflict(
                    "These times conflict with existing slots: "
                    + ", ".join(plan.conflict_labels()),
                    plan.conflicting,
                )

            if not plan.clean:
                logger.warning("No slot created for %s: every candidate conflicts", schedule_id)
                return []

            records = self._store.insert_many(
                Entity.SLOT, [candidate.to_record(schedule_id) for candidate in plan.clean]
            )

        logger.info("Created %s slot(s) for schedule %s", len(records), schedule_id)
        return [VisitSlot.from_record(record) for record in records]

    def update_slot(self, slot_id: str, **changes: Any) -> VisitSlot:
        """
        Edit one slot's date, start, duration, capacity or skipped flag.

        The slot is checked against its neighbours but never against itself,
        and capacity cannot drop below the people already booked.
        """
        with self._store.transaction():
            slot = self._get_slot(slot_id)
            schedule = self.get_schedule(slot.schedule_id)

            if "date" in changes:
                slot.date = self._parse(parse_date, changes["date"], "date")
            if "start_time" in changes:
                slot.start_time = self._parse(parse_time, changes["start_time"], "start time")
            for key in ("duration_minutes", "max_people", "is_skipped"):
                if key in changes:
                    setattr(slot, key, changes[key])
            slot.is_skipped = bool(slot.is_skipped)

            slot = self._planner.check_slot_edit(schedule, slot, self.list_slots(schedule.id))

            booked = sum(b.number_of_people for b in self._bookings_for([slot.id]))
            if slot.max_people < booked:
                raise InvalidInput(
                    f"{booked} people are already booked on this slot; "
                    f"capacity cannot drop to {slot.max_people}."
                )

            self._store.update(Entity.SLOT, slot.id, slot.to_record())
            return self._get_slot(slot.id)

    def delete_slot(self, slot_id: str) -> None:
        """Delete a slot and its bookings."""
        if not self._store.delete(Entity.SLOT, {"id": slot_id}):
            raise NotFound("Slot not found.")

    # =========================================================================
    # Views
    # =========================================================================

    def public_view(self, code: str) -> PublicSchedule:
        """The bookable slots of a schedule with remaining spots, by sharing code."""
        schedule = self.get_schedule(code)
        open_slots = [slot for slot in self.list_slots(schedule.id) if not slot.is_skipped]
        return PublicSchedule(schedule=schedule, slots=self._occupancies(open_slots))

    def visits(self, schedule_id: str) -> List[SlotOccupancy]:
        """Every slot, skipped ones included, with its bookings."""
        self.get_schedule(schedule_id)
        return self._occupancies(self.list_slots(schedule_id))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _plan(
        self,
        schedule: VisitSchedule,
        day: Any,
        start_time: Any,
        end_time: Any,
        duration_minutes: Any,
        max_people: Any,
    ) -> SlotPlan:
        return self._planner.plan_day(
            schedule,
            self._parse(parse_date, day, "date"),
            self._parse(parse_time, start_time, "start time"),
            self._parse(parse_time, end_time, "end time"),
            duration_minutes,
            max_people,
            existing_slots=self.list_slots(schedule.id),
        )

    def _get_slot(self, slot_id: str) -> VisitSlot:
        record = self._store.find_one(Entity.SLOT, {"id": slot_id})
        if record is None:
            raise NotFound("Slot not found.")
        return VisitSlot.from_record(record)

    def _bookings_for(self, slot_ids: Sequence[str]) -> List[VisitBooking]:
        records = self._store.find(Entity.BOOKING, {"slot_id": list(slot_ids)}, order_by=("created_at",))
        return [VisitBooking.from_record(record) for record in records]

    def _occupancies(self, slots: List[VisitSlot]) -> List[SlotOccupancy]:
        by_slot: Dict[str, List[VisitBooking]] = {slot.id: [] for slot in slots}
        for booking in self._bookings_for(list(by_slot)):
            by_slot[booking.slot_id].append(booking)
        return [SlotOccupancy(slot=slot, bookings=by_slot[slot.id]) for slot in slots]

    def _parse_range(self, start_value: Any, end_value: Any):
        start = self._parse(parse_date, start_value, "start date")
        end = self._parse(parse_date, end_value, "end date")
        if start > end:
            raise InvalidInput("The start date must not be after the end date.")
        return start, end

    def _ensure_plan_allows(self, user_id: str, start: date, end: date) -> None:
        if start != end and not self._entitlements.is_premium(user_id):
            raise PlanLimitExceeded(
                "Free plan schedules can only cover a single day. "
                "Upgrade to create schedules spanning several days."
            )

    @staticmethod
    def _parse(parser, value: Any, label: str):
        try:
            return parser(value)
        except ValueError as exc:
            raise InvalidInput(f"Invalid {label}: {value!r}") from exc
