"""
Tests for slot planner.
"""

import pendulum
import pytest

from visitplanner.domain.exceptions import DateOutOfRange, InvalidInput, SlotConflict
from visitplanner.domain.models import (
    SlotCandidate,
    VisitSchedule,
    VisitSlot,
    parse_date,
    parse_time,
)
from visitplanner.domain.slot_planner import SlotPlanner, parse_positive_int

TZ = "America/Sao_Paulo"


def at(clock: str) -> pendulum.DateTime:
    return pendulum.parse(f"2025-03-01 {clock}", tz=TZ)


def make_slot(slot_id, start, duration, skipped=False, day="2025-03-01"):
    return VisitSlot(
        id=slot_id,
        schedule_id="s1",
        date=parse_date(day),
        start_time=parse_time(start),
        duration_minutes=duration,
        max_people=2,
        is_skipped=skipped,
    )


@pytest.fixture
def planner():
    return SlotPlanner(timezone=TZ)


@pytest.fixture
def schedule():
    return VisitSchedule(
        id="s1",
        user_id="u1",
        start_date=parse_date("2025-03-01"),
        end_date=parse_date("2025-03-02"),
    )


class TestParsePositiveInt:
    """Tests for parsing user-typed counts."""

    def test_accepts_numbers_and_digit_strings(self):
        assert parse_positive_int(60, "Duration") == 60
        assert parse_positive_int(" 45 ", "Duration") == 45
        assert parse_positive_int(2.0, "Duration") == 2
        assert parse_positive_int("0000000000007", "Duration") == 7

    @pytest.mark.parametrize(
        "value",
        ["abc", "", "1.5", 0, -3, "0", 2.5, True, None, float("nan"), "²", "٣", "9" * 5000, 10 ** 12],
    )
    def test_rejects_invalid_values(self, value):
        with pytest.raises(InvalidInput):
            parse_positive_int(value, "Duration")


class TestGenerateSlots:
    """Tests for splitting a window into slots."""

    def test_exact_hour_gives_one_slot(self, planner):
        """09:00-10:00 with 60 minute slots is a single full slot."""
        slots = planner.generate_slots(at("09:00"), at("10:00"), 60, 1)

        assert len(slots) == 1
        assert slots[0].start == at("09:00")
        assert slots[0].duration_minutes == 60

    def test_last_slot_is_truncated(self, planner):
        """09:00-09:50 with 60 minute slots gives one 50 minute slot."""
        slots = planner.generate_slots(at("09:00"), at("09:50"), 60, 1)

        assert len(slots) == 1
        assert slots[0].start == at("09:00")
        assert slots[0].duration_minutes == 50

    def test_empty_window_is_rejected(self, planner):
        with pytest.raises(InvalidInput, match="End time must be after start time"):
            planner.generate_slots(at("09:00"), at("09:00"), 60, 1)

    def test_reversed_window_is_rejected(self, planner):
        with pytest.raises(InvalidInput):
            planner.generate_slots(at("10:00"), at("09:00"), 60, 1)

    @pytest.mark.parametrize("duration", ["abc", "0", -15, ""])
    def test_invalid_duration_is_not_coerced(self, planner, duration):
        with pytest.raises(InvalidInput):
            planner.generate_slots(at("09:00"), at("10:00"), duration, 1)

    def test_invalid_capacity_is_rejected(self, planner):
        with pytest.raises(InvalidInput, match="Maximum people"):
            planner.generate_slots(at("09:00"), at("10:00"), 30, "0")

    def test_capacity_and_text_duration_are_applied(self, planner):
        slots = planner.generate_slots(at("14:00"), at("15:30"), "30", "4")

        assert [s.start_time_label() for s in slots] == ["14:00", "14:30", "15:00"]
        assert all(s.max_people == 4 for s in slots)

    def test_sub_minute_remainder_is_dropped(self, planner):
        """A final piece that rounds to zero minutes is never emitted."""
        end = at("10:00").add(seconds=20)

        slots = planner.generate_slots(at("09:00"), end, 60, 1)

        assert len(slots) == 1
        assert slots[0].duration_minutes == 60

    @pytest.mark.parametrize(
        "start, end, duration",
        [
            ("09:00", "17:00", 60),
            ("09:00", "17:00", 45),
            ("08:15", "12:40", 25),
            ("13:00", "13:07", 30),
            ("00:00", "23:59", 7),
        ],
    )
    def test_output_is_gapless_and_non_overlapping(self, planner, start, end, duration):
        slots = planner.generate_slots(at(start), at(end), duration, 1)

        assert slots[0].start == at(start)
        for previous, current in zip(slots, slots[1:]):
            assert previous.time_range.end == current.start
            assert not previous.time_range.overlaps(current.time_range)
        assert slots[-1].time_range.end == at(end)

    def test_output_is_deterministic(self, planner):
        first = planner.generate_slots(at("09:00"), at("12:10"), 40, 2)
        second = planner.generate_slots(at("09:00"), at("12:10"), 40, 2)

        assert first == second


class TestDetectConflicts:
    """Tests for overlap detection against existing slots."""

    def test_adjacent_slots_do_not_conflict(self, planner):
        candidates = planner.generate_slots(at("09:30"), at("10:00"), 30, 1)
        existing = [make_slot("a", "09:00", 30)]

        assert planner.detect_conflicts(candidates, existing) == []

    def test_overlapping_candidates_are_returned(self, planner):
        candidates = planner.generate_slots(at("09:00"), at("11:00"), 30, 1)
        existing = [make_slot("a", "09:45", 30)]

        conflicts = planner.detect_conflicts(candidates, existing)

        assert [c.start_time_label() for c in conflicts] == ["09:30", "10:00"]

    def test_conflicts_are_symmetric(self, planner):
        """A conflicts with B exactly when B conflicts with A."""
        pairs = [
            (("09:00", 30), ("09:15", 30)),
            (("09:00", 30), ("09:30", 30)),
            (("09:00", 120), ("09:30", 15)),
            (("11:00", 30), ("09:00", 30)),
        ]

        for (a_start, a_len), (b_start, b_len) in pairs:
            a_slot, b_slot = make_slot("a", a_start, a_len), make_slot("b", b_start, b_len)
            a_candidate = SlotCandidate(start=at(a_start), duration_minutes=a_len, max_people=1)
            b_candidate = SlotCandidate(start=at(b_start), duration_minutes=b_len, max_people=1)

            a_hits_b = bool(planner.detect_conflicts([a_candidate], [b_slot]))
            b_hits_a = bool(planner.detect_conflicts([b_candidate], [a_slot]))

            assert a_hits_b == b_hits_a

    def test_skipped_slots_are_ignored(self, planner):
        candidates = planner.generate_slots(at("12:00"), at("13:00"), 60, 1)
        existing = [make_slot("lunch", "12:00", 60, skipped=True)]

        assert planner.detect_conflicts(candidates, existing) == []

    def test_edited_slot_is_excluded(self, planner):
        candidates = planner.generate_slots(at("09:00"), at("10:00"), 60, 1)
        existing = [make_slot("self", "09:00", 60)]

        assert planner.detect_conflicts(candidates, existing, exclude_slot_id="self") == []

    def test_other_dates_are_ignored(self, planner):
        candidates = planner.generate_slots(at("09:00"), at("10:00"), 60, 1)
        existing = [make_slot("a", "09:00", 60, day="2025-03-02")]

        assert planner.detect_conflicts(candidates, existing) == []


class TestPlanDay:
    """Tests for validating and classifying a caregiver's request."""

    def test_plan_splits_clean_and_conflicting(self, planner, schedule):
        existing = [make_slot("a", "10:00", 60)]

        plan = planner.plan_day(
            schedule, parse_date("2025-03-01"), parse_time("09:00"), parse_time("12:00"),
            60, 2, existing,
        )

        assert plan.has_conflicts
        assert plan.conflict_labels() == ["10:00"]
        assert [c.start_time_label() for c in plan.clean] == ["09:00", "11:00"]

    def test_date_outside_schedule_is_rejected(self, planner, schedule):
        with pytest.raises(DateOutOfRange, match="2025-03-05"):
            planner.plan_day(
                schedule, parse_date("2025-03-05"), parse_time("09:00"), parse_time("10:00"), 60, 1
            )

    def test_end_before_start_is_rejected(self, planner, schedule):
        with pytest.raises(InvalidInput):
            planner.plan_day(
                schedule, parse_date("2025-03-01"), parse_time("10:00"), parse_time("09:00"), 60, 1
            )


class TestCheckSlotEdit:
    """Tests for editing a single slot."""

    def test_edit_may_keep_its_own_interval(self, planner, schedule):
        slot = make_slot("self", "09:00", 60)
        slot.duration_minutes = "90"

        edited = planner.check_slot_edit(schedule, slot, [make_slot("self", "09:00", 60)])

        assert edited.duration_minutes == 90

    def test_edit_into_neighbour_conflicts(self, planner, schedule):
        slot = make_slot("self", "09:00", 90)
        neighbour = make_slot("other", "10:00", 60)

        with pytest.raises(SlotConflict) as excinfo:
            planner.check_slot_edit(schedule, slot, [slot, neighbour])

        assert excinfo.value.conflicts == [neighbour]

    def test_skipped_edit_skips_overlap_check(self, planner, schedule):
        slot = make_slot("self", "09:00", 90, skipped=True)
        neighbour = make_slot("other", "10:00", 60)

        assert planner.check_slot_edit(schedule, slot, [neighbour]) is slot

    def test_edit_outside_schedule_is_rejected(self, planner, schedule):
        slot = make_slot("self", "09:00", 60, day="2025-04-01")

        with pytest.raises(DateOutOfRange):
            planner.check_slot_edit(schedule, slot, [])
