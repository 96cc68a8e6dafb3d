"""
Shared fixtures: an in-memory store and the services built on it.
"""

import pytest

from visitplanner.adapters.entitlements import StaticEntitlements
from visitplanner.adapters.sqlite_store import SQLiteVisitStore
from visitplanner.domain.slot_planner import SlotPlanner
from visitplanner.services.booking_service import BookingService
from visitplanner.services.schedule_service import ScheduleService

TZ = "America/Sao_Paulo"
PREMIUM_USER = "premium-caregiver"
FREE_USER = "free-caregiver"


@pytest.fixture
def store():
    """Create in-memory database for testing."""
    database = SQLiteVisitStore(":memory:")
    database.init_schema()
    yield database
    database.close()


@pytest.fixture
def schedule_service(store):
    return ScheduleService(
        store,
        SlotPlanner(timezone=TZ),
        StaticEntitlements([PREMIUM_USER]),
    )


@pytest.fixture
def booking_service(store):
    return BookingService(store)


@pytest.fixture
def schedule(schedule_service):
    """A two-day schedule owned by a premium caregiver."""
    return schedule_service.create_schedule(
        user_id=PREMIUM_USER,
        start_date="2025-03-01",
        end_date="2025-03-02",
        name="Meet Lara",
        custom_message="Please wash your hands",
    )


@pytest.fixture
def make_slots(schedule_service, schedule):
    """Factory adding slots to the shared schedule."""

    def _make(start="14:00", end="15:00", duration=60, max_people=1, day="2025-03-01"):
        return schedule_service.add_slots(
            schedule.id,
            day=day,
            start_time=start,
            end_time=end,
            duration_minutes=duration,
            max_people=max_people,
        )

    return _make
