"""
Tests for domain models.
"""

import pendulum
import pytest

from visitplanner.domain.models import (
    SlotOccupancy,
    TimeRange,
    VisitBooking,
    VisitSchedule,
    VisitSlot,
    parse_date,
    parse_time,
)


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = pendulum.parse("2025-03-01 09:00", tz="America/Sao_Paulo")
        end = pendulum.parse("2025-03-01 17:00", tz="America/Sao_Paulo")

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end
        assert tr.duration_minutes() == 480  # 8 hours

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        start = pendulum.parse("2025-03-01 17:00", tz="America/Sao_Paulo")
        end = pendulum.parse("2025-03-01 09:00", tz="America/Sao_Paulo")

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=start, end=end)

    def test_overlaps_is_half_open(self):
        """Touching ranges do not overlap, intersecting ones do."""
        tr1 = TimeRange(
            start=pendulum.parse("2025-03-01 09:00", tz="America/Sao_Paulo"),
            end=pendulum.parse("2025-03-01 09:30", tz="America/Sao_Paulo")
        )
        tr2 = TimeRange(
            start=pendulum.parse("2025-03-01 09:30", tz="America/Sao_Paulo"),
            end=pendulum.parse("2025-03-01 10:00", tz="America/Sao_Paulo")
        )
        tr3 = TimeRange(
            start=pendulum.parse("2025-03-01 09:15", tz="America/Sao_Paulo"),
            end=pendulum.parse("2025-03-01 09:45", tz="America/Sao_Paulo")
        )

        assert not tr1.overlaps(tr2)
        assert not tr2.overlaps(tr1)
        assert tr1.overlaps(tr3)
        assert tr3.overlaps(tr1)


class TestParsing:
    """Tests for date and time coercion helpers."""

    def test_parse_date_from_string(self):
        day = parse_date("2025-03-01")

        assert (day.year, day.month, day.day) == (2025, 3, 1)

    def test_parse_time_accepts_minutes_and_seconds(self):
        assert parse_time("09:30") == parse_time("09:30:00")
        assert parse_time("14:05:10").second == 10

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("tomorrow")
        with pytest.raises(ValueError):
            parse_time("noon")


class TestVisitSchedule:
    """Tests for VisitSchedule model."""

    def test_contains_is_inclusive(self):
        schedule = VisitSchedule(
            id="s1",
            user_id="u1",
            start_date=parse_date("2025-03-01"),
            end_date=parse_date("2025-03-03"),
        )

        assert schedule.contains(parse_date("2025-03-01"))
        assert schedule.contains(parse_date("2025-03-03"))
        assert not schedule.contains(parse_date("2025-03-04"))
        assert schedule.day_count() == 3

    def test_start_after_end_raises_error(self):
        with pytest.raises(ValueError, match="must not be after"):
            VisitSchedule(
                id="s1",
                user_id="u1",
                start_date=parse_date("2025-03-02"),
                end_date=parse_date("2025-03-01"),
            )


class TestVisitSlotAndBooking:
    """Tests for slot, booking and occupancy records."""

    def test_slot_round_trips_through_record(self):
        record = {
            "id": "slot-1",
            "schedule_id": "s1",
            "date": "2025-03-01",
            "start_time": "14:00:00",
            "duration_minutes": 45,
            "max_people": 3,
            "is_skipped": 0,
        }

        slot = VisitSlot.from_record(record)

        assert slot.is_skipped is False
        assert slot.end_time().strftime("%H:%M") == "14:45"
        assert slot.to_record()["start_time"] == "14:00:00"
        assert slot.time_range("America/Sao_Paulo").duration_minutes() == 45

    def test_booking_name_match_ignores_case_and_spaces(self):
        booking = VisitBooking(id="b1", slot_id="slot-1", visitor_name="Ana Souza", number_of_people=2)

        assert booking.is_for("  ana souza ")
        assert not booking.is_for("Ana")

    def test_occupancy_never_reports_negative_spots(self):
        slot = VisitSlot(
            id="slot-1",
            schedule_id="s1",
            date=parse_date("2025-03-01"),
            start_time=parse_time("14:00"),
            duration_minutes=60,
            max_people=2,
        )
        bookings = [
            VisitBooking(id="b1", slot_id="slot-1", visitor_name="Ana", number_of_people=2),
            VisitBooking(id="b2", slot_id="slot-1", visitor_name="Rui", number_of_people=1),
        ]

        occupancy = SlotOccupancy(slot=slot, bookings=bookings)

        assert occupancy.total_people == 3
        assert occupancy.remaining_spots == 0
