"""
SQLite persistence for caregivers, schedules, slots and bookings.

Provides generic find/insert/update/delete over the record tables plus a
serializable write transaction used by the booking path.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import pendulum

from ..domain.exceptions import SlotFull, StoreError
from ..domain.models import Entity

logger = logging.getLogger(__name__)


CAPACITY_EXCEEDED = "slot capacity exceeded"
SLOT_SKIPPED = "slot is skipped"

SCHEMA = f"""
    -- Caregivers
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- Babies (display only)
    CREATE TABLE IF NOT EXISTS babies (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        name TEXT,
        gender TEXT CHECK(gender IN ('male', 'female')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- Schedules
    CREATE TABLE IF NOT EXISTS visit_schedules (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        custom_message TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        CHECK(start_date <= end_date)
    );

    -- Slots
    CREATE TABLE IF NOT EXISTS visit_slots (
        id TEXT PRIMARY KEY,
        schedule_id TEXT NOT NULL REFERENCES visit_schedules(id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        duration_minutes INTEGER NOT NULL CHECK(duration_minutes > 0),
        max_people INTEGER NOT NULL CHECK(max_people >= 1),
        is_skipped INTEGER NOT NULL DEFAULT 0 CHECK(is_skipped IN (0, 1)),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_visit_slots_schedule_date
        ON visit_slots(schedule_id, date, start_time);

    -- Bookings
    CREATE TABLE IF NOT EXISTS visit_bookings (
        id TEXT PRIMARY KEY,
        slot_id TEXT NOT NULL REFERENCES visit_slots(id) ON DELETE CASCADE,
        visitor_name TEXT NOT NULL,
        number_of_people INTEGER NOT NULL CHECK(number_of_people >= 1),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_visit_bookings_slot
        ON visit_bookings(slot_id);

    -- Capacity is re-validated at write time
    CREATE TRIGGER IF NOT EXISTS visit_bookings_capacity
    BEFORE INSERT ON visit_bookings
    WHEN (
        SELECT COALESCE(SUM(number_of_people), 0)
        FROM visit_bookings WHERE slot_id = NEW.slot_id
    ) + NEW.number_of_people > (
        SELECT max_people FROM visit_slots WHERE id = NEW.slot_id
    )
    BEGIN
        SELECT RAISE(ABORT, '{CAPACITY_EXCEEDED}');
    END;

    CREATE TRIGGER IF NOT EXISTS visit_bookings_skipped
    BEFORE INSERT ON visit_bookings
    WHEN (SELECT is_skipped FROM visit_slots WHERE id = NEW.slot_id) = 1
    BEGIN
        SELECT RAISE(ABORT, '{SLOT_SKIPPED}');
    END;
"""

COLUMNS: Dict[Entity, Sequence[str]] = {
    Entity.PROFILE: ("id", "email", "created_at", "updated_at"),
    Entity.BABY: ("id", "user_id", "name", "gender", "created_at", "updated_at"),
    Entity.SCHEDULE: (
        "id", "user_id", "name", "start_date", "end_date", "custom_message",
        "created_at", "updated_at",
    ),
    Entity.SLOT: (
        "id", "schedule_id", "date", "start_time", "duration_minutes",
        "max_people", "is_skipped", "created_at", "updated_at",
    ),
    Entity.BOOKING: (
        "id", "slot_id", "visitor_name", "number_of_people",
        "created_at", "updated_at",
    ),
}


def generate_id() -> str:
    """Generate an opaque record id. Schedule ids double as sharing codes."""
    return str(uuid.uuid4())


def _now() -> str:
    return pendulum.now("UTC").to_iso8601_string()


class SQLiteVisitStore:
    """
    SQLite database for visit records.

    A single connection is shared by all callers and guarded by a re-entrant
    lock. Write transactions open with BEGIN IMMEDIATE so other processes on
    the same file wait for the write lock instead of reading stale occupancy.
    """

    def __init__(self, db_path: str | None = None, timeout: float = 30.0):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory.
                     Defaults to VISITPLANNER_DB_PATH env var or "./visitplanner.db"
            timeout: Seconds to wait for another writer's lock
        """
        self.db_path = db_path or os.environ.get("VISITPLANNER_DB_PATH", "./visitplanner.db")
        self._lock = threading.RLock()
        self._depth = 0

        try:
            self.conn = sqlite3.connect(
                self.db_path,
                timeout=timeout,
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open database {self.db_path}: {exc}") from exc

        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

    def init_schema(self) -> None:
        """Create tables and triggers if they don't exist."""
        with self._lock, self._translate_errors("init schema"):
            self.conn.executescript(SCHEMA)

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run the enclosed operations as one serializable unit.

        Nested use joins the outer transaction. Any exception rolls back
        every write made inside the block and is re-raised.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            with self._translate_errors("begin transaction"):
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth = 1

            try:
                yield
            except BaseException:
                self._depth = 0
                self._rollback()
                raise

            self._depth = 0
            try:
                with self._translate_errors("commit transaction"):
                    self.conn.execute("COMMIT")
            except StoreError:
                self._rollback()
                raise

    # =========================================================================
    # Generic record operations
    # =========================================================================

    def find(
        self,
        entity: Entity,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        """List records matching every filter, optionally ordered."""
        where, params = self._where(entity, filters)
        query = f"SELECT * FROM {entity.value}{where}"

        if order_by:
            self._check_columns(entity, order_by)
            query += " ORDER BY " + ", ".join(order_by)

        with self._lock, self._translate_errors(f"find {entity.value}"):
            rows = self.conn.execute(query, params).fetchall()

        return [dict(row) for row in rows]

    def find_one(
        self,
        entity: Entity,
        filters: Mapping[str, Any] | None = None,
    ) -> Optional[Dict[str, Any]]:
        """Get the first record matching the filters, or None."""
        where, params = self._where(entity, filters)

        with self._lock, self._translate_errors(f"find {entity.value}"):
            row = self.conn.execute(
                f"SELECT * FROM {entity.value}{where} LIMIT 1", params
            ).fetchone()

        return dict(row) if row is not None else None

    def insert(self, entity: Entity, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a record, assigning id and timestamps. Returns the stored record."""
        now = _now()
        values = {key: self._to_sql(value) for key, value in record.items()}
        values.setdefault("id", generate_id())
        values["created_at"] = now
        values["updated_at"] = now
        self._check_columns(entity, values)

        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)

        with self._lock, self._translate_errors(f"insert into {entity.value}"):
            self.conn.execute(
                f"INSERT INTO {entity.value} ({columns}) VALUES ({placeholders})",
                list(values.values()),
            )

        return values

    def insert_many(self, entity: Entity, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Insert several records atomically."""
        with self.transaction():
            return [self.insert(entity, record) for record in records]

    def update(self, entity: Entity, record_id: str, patch: Mapping[str, Any]) -> bool:
        """Apply a partial update. Returns True if the record existed."""
        values = {key: self._to_sql(value) for key, value in patch.items() if key != "id"}
        values["updated_at"] = _now()
        self._check_columns(entity, values)

        assignments = ", ".join(f"{column} = ?" for column in values)

        with self._lock, self._translate_errors(f"update {entity.value}"):
            cursor = self.conn.execute(
                f"UPDATE {entity.value} SET {assignments} WHERE id = ?",
                [*values.values(), record_id],
            )

        return cursor.rowcount > 0

    def delete(self, entity: Entity, filters: Mapping[str, Any]) -> int:
        """Delete records matching the filters. Returns the number removed."""
        if not filters:
            raise ValueError(f"Refusing to delete every row of {entity.value}")

        where, params = self._where(entity, filters)

        with self._lock, self._translate_errors(f"delete from {entity.value}"):
            cursor = self.conn.execute(f"DELETE FROM {entity.value}{where}", params)

        return cursor.rowcount

    # =========================================================================
    # Helpers
    # =========================================================================

    def _where(self, entity: Entity, filters: Mapping[str, Any] | None):
        if not filters:
            return "", []

        self._check_columns(entity, filters)
        clauses: List[str] = []
        params: List[Any] = []

        for column, value in filters.items():
            if isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    # Membership in an empty set matches nothing
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(self._to_sql(v) for v in values)
            elif value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(self._to_sql(value))

        return " WHERE " + " AND ".join(clauses), params

    @staticmethod
    def _check_columns(entity: Entity, columns) -> None:
        unknown = [column for column in columns if column not in COLUMNS[entity]]
        if unknown:
            raise ValueError(f"Unknown column(s) for {entity.value}: {unknown}")

    @staticmethod
    def _to_sql(value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        return value

    def _rollback(self) -> None:
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("Rollback failed")

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        """Map sqlite errors onto the domain's error types."""
        try:
            yield
        except sqlite3.IntegrityError as exc:
            message = str(exc)
            if CAPACITY_EXCEEDED in message:
                raise SlotFull(
                    "This time does not have enough room for the number of people given."
                ) from exc
            if SLOT_SKIPPED in message:
                raise SlotFull("This time is not open for visits.") from exc
            logger.exception("Integrity error during %s", action)
            raise StoreError(f"Could not {action}: {message}") from exc
        except sqlite3.Error as exc:
            logger.exception("Database error during %s", action)
            raise StoreError(f"Could not {action}: {exc}") from exc
