"""
Domain models for schedules, slots and bookings.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import Date, DateTime, Time


class Entity(str, Enum):
    """Record types kept by the persistence collaborator, named by table."""
    PROFILE = "profiles"
    BABY = "babies"
    SCHEDULE = "visit_schedules"
    SLOT = "visit_slots"
    BOOKING = "visit_bookings"


def parse_date(value: Any) -> Date:
    """Coerce a 'YYYY-MM-DD' string or date object into a pendulum Date."""
    if isinstance(value, DateTime):
        return value.date()
    if isinstance(value, date):
        return Date(value.year, value.month, value.day)
    try:
        parsed = pendulum.from_format(str(value).strip(), "YYYY-MM-DD")
    except ValueError as exc:
        raise ValueError(f"Not a calendar date: {value!r}") from exc
    return parsed.date()


def parse_time(value: Any) -> Time:
    """Coerce an 'HH:mm[:ss]' string or time object into a pendulum Time."""
    if isinstance(value, DateTime):
        return Time(value.hour, value.minute, value.second)
    if isinstance(value, time):
        return Time(value.hour, value.minute, value.second)
    text = str(value).strip()
    fmt = "H:mm" if text.count(":") == 1 else "H:mm:ss"
    try:
        parsed = pendulum.from_format(text, fmt)
    except ValueError as exc:
        raise ValueError(f"Not a time of day: {value!r}") from exc
    return Time(parsed.hour, parsed.minute, parsed.second)


def combine(day: date, at: time, tz: str) -> DateTime:
    """Build a timezone-aware datetime from a date and a time of day."""
    return pendulum.datetime(
        day.year, day.month, day.day, at.hour, at.minute, at.second, tz=tz
    )


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range [start, end).

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ends do not."""
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class Profile:
    """A caregiver account."""
    id: str
    email: str

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Profile":
        return cls(id=record["id"], email=record["email"])


@dataclass
class Baby:
    """The baby being visited. Display-only."""
    id: str
    user_id: str
    name: Optional[str] = None
    gender: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Baby":
        return cls(
            id=record["id"],
            user_id=record["user_id"],
            name=record.get("name"),
            gender=record.get("gender"),
        )


@dataclass
class VisitSchedule:
    """
    A caregiver-defined visiting window.

    The id doubles as the public sharing code. Both dates are inclusive.
    """
    id: str
    user_id: str
    start_date: Date
    end_date: Date
    name: Optional[str] = None
    custom_message: Optional[str] = None

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValueError(
                f"Schedule start {self.start_date} must not be after end {self.end_date}"
            )

    def contains(self, day: date) -> bool:
        """Check whether a calendar date falls inside the schedule."""
        return self.start_date <= day <= self.end_date

    def day_count(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "VisitSchedule":
        return cls(
            id=record["id"],
            user_id=record["user_id"],
            start_date=parse_date(record["start_date"]),
            end_date=parse_date(record["end_date"]),
            name=record.get("name"),
            custom_message=record.get("custom_message"),
        )


@dataclass
class VisitSlot:
    """
    A bookable (or skipped) interval on one day of a schedule.

    Skipped slots are placeholders such as a lunch break: they are shown to
    the caregiver but never bookable and never take part in conflict checks.
    """
    id: str
    schedule_id: str
    date: Date
    start_time: Time
    duration_minutes: int
    max_people: int
    is_skipped: bool = False

    def time_range(self, tz: str) -> TimeRange:
        start = combine(self.date, self.start_time, tz)
        return TimeRange(start=start, end=start.add(minutes=self.duration_minutes))

    def end_time(self) -> Time:
        end = combine(self.date, self.start_time, "UTC").add(minutes=self.duration_minutes)
        return Time(end.hour, end.minute, end.second)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "VisitSlot":
        return cls(
            id=record["id"],
            schedule_id=record["schedule_id"],
            date=parse_date(record["date"]),
            start_time=parse_time(record["start_time"]),
            duration_minutes=int(record["duration_minutes"]),
            max_people=int(record["max_people"]),
            is_skipped=bool(record.get("is_skipped", False)),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M:%S"),
            "duration_minutes": self.duration_minutes,
            "max_people": self.max_people,
            "is_skipped": self.is_skipped,
        }


@dataclass
class VisitBooking:
    """A visitor's reservation of a party against a slot."""
    id: str
    slot_id: str
    visitor_name: str
    number_of_people: int

    def is_for(self, visitor_name: str) -> bool:
        """Names match case-insensitively, ignoring surrounding whitespace."""
        return self.visitor_name.strip().casefold() == visitor_name.strip().casefold()

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "VisitBooking":
        return cls(
            id=record["id"],
            slot_id=record["slot_id"],
            visitor_name=record["visitor_name"],
            number_of_people=int(record["number_of_people"]),
        )


@dataclass(frozen=True)
class SlotCandidate:
    """A slot the planner proposes to create."""
    start: DateTime
    duration_minutes: int
    max_people: int

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.start.add(minutes=self.duration_minutes))

    def start_time_label(self) -> str:
        return self.start.format("HH:mm")

    def to_record(self, schedule_id: str) -> Dict[str, Any]:
        return {
            "schedule_id": schedule_id,
            "date": self.start.date().isoformat(),
            "start_time": self.start.format("HH:mm:ss"),
            "duration_minutes": self.duration_minutes,
            "max_people": self.max_people,
            "is_skipped": False,
        }


@dataclass
class SlotPlan:
    """Candidates for one day, split by whether they clash with existing slots."""
    clean: List[SlotCandidate] = field(default_factory=list)
    conflicting: List[SlotCandidate] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicting)

    def conflict_labels(self) -> List[str]:
        return [candidate.start_time_label() for candidate in self.conflicting]


@dataclass(frozen=True)
class BookingRequest:
    """An incoming booking exactly as the visitor submitted it."""
    slot_id: Any
    visitor_name: Any
    number_of_people: Any
    replace_existing: bool = False


@dataclass
class SlotOccupancy:
    """A slot together with its bookings and derived head count."""
    slot: VisitSlot
    bookings: List[VisitBooking] = field(default_factory=list)

    @property
    def total_people(self) -> int:
        return sum(booking.number_of_people for booking in self.bookings)

    @property
    def remaining_spots(self) -> int:
        return max(0, self.slot.max_people - self.total_people)
