"""SQLite-backed Storage Port."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from dayplanner.config import Settings, get_settings
from dayplanner.loaders import rule_set_from_dict, rule_set_to_dict
from dayplanner.logger import get_logger
from dayplanner.storage import AdmissionCheck, StoragePort, date_range_window
from dayplanner.types import (
    ACTIVE_STATUSES,
    Assignment,
    AssignmentFilter,
    AssignmentRole,
    Booking,
    BookingStatus,
    Commitment,
    ConcurrentConflict,
    Resource,
    Window,
)


logger = get_logger(__name__)


def _ts(dt: datetime) -> str:
    # Fixed width so text comparison in SQL matches datetime order.
    return dt.isoformat(timespec="microseconds")


def _parse_ts(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw is not None else None


def _row_to_assignment(row: sqlite3.Row) -> Assignment:
    return Assignment(
        id=str(row["id"]),
        booking_id=str(row["booking_id"]),
        resource_id=str(row["resource_id"]),
        start=datetime.fromisoformat(row["start_at"]),
        end=datetime.fromisoformat(row["end_at"]),
        participant_count=int(row["participant_count"]),
        role=AssignmentRole(row["role"]),
        created_at=_parse_ts(row["created_at"]),
        voided_at=_parse_ts(row["voided_at"]),
    )


def _row_to_booking(row: sqlite3.Row) -> Booking:
    return Booking(
        id=str(row["id"]),
        status=BookingStatus(row["status"]),
        start=datetime.fromisoformat(row["start_at"]),
        end=datetime.fromisoformat(row["end_at"]),
        customer_id=str(row["customer_id"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SQLiteStorage(StoragePort):
    """Encapsulates SQLite access so the scheduler stays storage-agnostic.

    One connection per call; every write runs in a BEGIN IMMEDIATE
    transaction so it is atomic against other connections.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.lock_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")

    def initialize_database(self) -> None:
        """Create all tables and indexes; safe to call repeatedly."""
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Resources (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL DEFAULT '',
                        capacity INTEGER CHECK (capacity IS NULL OR capacity > 0),
                        timezone TEXT NOT NULL,
                        rules_json TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        status TEXT NOT NULL
                            CHECK (status IN ('draft', 'confirmed', 'cancelled')),
                        start_at TEXT NOT NULL,
                        end_at TEXT NOT NULL,
                        customer_id TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Assignments (
                        id TEXT PRIMARY KEY,
                        booking_id TEXT NOT NULL,
                        resource_id TEXT NOT NULL,
                        start_at TEXT NOT NULL,
                        end_at TEXT NOT NULL,
                        participant_count INTEGER NOT NULL
                            CHECK (participant_count >= 1),
                        role TEXT NOT NULL DEFAULT 'primary',
                        created_at TEXT,
                        voided_at TEXT,
                        FOREIGN KEY (booking_id) REFERENCES Bookings(id),
                        FOREIGN KEY (resource_id) REFERENCES Resources(id)
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_assignments_resource_start
                    ON Assignments(resource_id, start_at);
                    """
                )
                conn.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_assignments_booking
                    ON Assignments(booking_id);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    # -- administrative writes ------------------------------------------------

    def save_resource(self, resource: Resource) -> Resource:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO Resources (id, title, capacity, timezone, rules_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    capacity = excluded.capacity,
                    timezone = excluded.timezone,
                    rules_json = excluded.rules_json;
                """,
                (
                    resource.id,
                    resource.title,
                    resource.capacity,
                    resource.timezone,
                    json.dumps(rule_set_to_dict(resource.rule_set)),
                ),
            )
        return resource

    def save_booking(self, booking: Booking) -> Booking:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO Bookings (id, status, start_at, end_at, customer_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    start_at = excluded.start_at,
                    end_at = excluded.end_at,
                    customer_id = excluded.customer_id;
                """,
                (
                    booking.id,
                    booking.status.value,
                    _ts(booking.start),
                    _ts(booking.end),
                    booking.customer_id,
                    _ts(booking.created_at),
                ),
            )
        return booking

    def set_booking_status(self, booking_id: str, status: BookingStatus) -> Booking:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE Bookings SET status = ? WHERE id = ?;",
                (status.value, booking_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(booking_id)
            row = conn.execute(
                "SELECT * FROM Bookings WHERE id = ?;", (booking_id,)
            ).fetchone()
        return _row_to_booking(row)

    # -- StoragePort ----------------------------------------------------------

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM Resources WHERE id = ?;", (resource_id,)
            ).fetchone()
        if row is None:
            return None
        return Resource(
            id=str(row["id"]),
            capacity=row["capacity"],
            timezone=str(row["timezone"]),
            rule_set=rule_set_from_dict(json.loads(row["rules_json"]), subject=str(row["id"])),
            title=str(row["title"]),
        )

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM Bookings WHERE id = ?;", (booking_id,)
            ).fetchone()
        return _row_to_booking(row) if row is not None else None

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM Assignments WHERE id = ?;", (assignment_id,)
            ).fetchone()
        return _row_to_assignment(row) if row is not None else None

    def insert_assignment(self, assignment: Assignment) -> Assignment:
        with self._transaction() as conn:
            self._insert_assignment(conn, assignment)
        return assignment

    def insert_assignment_checked(
        self, assignment: Assignment, admit: AdmissionCheck
    ) -> Assignment:
        window = Window(assignment.start, assignment.end)
        try:
            # BEGIN IMMEDIATE takes the write lock before the read, so no
            # other connection can insert between the check and the insert.
            with self._transaction() as conn:
                commitments = self._select_commitments(
                    conn, assignment.resource_id, window, active_statuses_only=True
                )
                if not admit(commitments):
                    raise ConcurrentConflict(assignment.resource_id, "capacity_taken")
                self._insert_assignment(conn, assignment)
        except sqlite3.OperationalError as exc:
            if "locked" not in str(exc):
                raise
            logger.warning(
                "Database write lock on %s not acquired within %.2fs",
                self._db_path,
                self._settings.lock_timeout_seconds,
            )
            raise ConcurrentConflict(assignment.resource_id, "lock_timeout") from exc
        return assignment

    def void_assignment(self, assignment_id: str, voided_at: datetime) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE Assignments SET voided_at = ?
                WHERE id = ? AND voided_at IS NULL;
                """,
                (_ts(voided_at), assignment_id),
            )
            return cursor.rowcount > 0

    def query_assignments(
        self,
        resource_id: str,
        window: Window,
        active_statuses_only: bool = True,
    ) -> list[Commitment]:
        with closing(self._connect()) as conn:
            return self._select_commitments(
                conn, resource_id, window, active_statuses_only
            )

    @staticmethod
    def _insert_assignment(conn: sqlite3.Connection, assignment: Assignment) -> None:
        conn.execute(
            """
            INSERT INTO Assignments (
                id, booking_id, resource_id, start_at, end_at,
                participant_count, role, created_at, voided_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                assignment.id,
                assignment.booking_id,
                assignment.resource_id,
                _ts(assignment.start),
                _ts(assignment.end),
                assignment.participant_count,
                assignment.role.value,
                _ts(assignment.created_at) if assignment.created_at else None,
                _ts(assignment.voided_at) if assignment.voided_at else None,
            ),
        )

    @staticmethod
    def _select_commitments(
        conn: sqlite3.Connection,
        resource_id: str,
        window: Window,
        active_statuses_only: bool,
    ) -> list[Commitment]:
        query = """
            SELECT a.*, b.status AS booking_status, b.created_at AS booking_created_at
            FROM Assignments AS a
            INNER JOIN Bookings AS b ON b.id = a.booking_id
            WHERE a.resource_id = ?
              AND a.voided_at IS NULL
              AND a.start_at < ?
              AND a.end_at > ?
        """
        params: list = [resource_id, _ts(window.end), _ts(window.start)]
        if active_statuses_only:
            statuses = sorted(s.value for s in ACTIVE_STATUSES)
            query += f" AND b.status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)
        query += " ORDER BY a.start_at ASC, a.id ASC;"

        rows = conn.execute(query, params).fetchall()
        return [
            Commitment(
                assignment=_row_to_assignment(row),
                booking_status=BookingStatus(row["booking_status"]),
                booking_created_at=datetime.fromisoformat(row["booking_created_at"]),
            )
            for row in rows
        ]

    def list_assignments(self, flt: AssignmentFilter) -> list[Assignment]:
        clauses: list[str] = []
        params: list = []
        if flt.resource_id is not None:
            clauses.append("resource_id = ?")
            params.append(flt.resource_id)
        if flt.booking_id is not None:
            clauses.append("booking_id = ?")
            params.append(flt.booking_id)
        if not flt.include_voided:
            clauses.append("voided_at IS NULL")
        if flt.date_range is not None:
            span = date_range_window(flt.date_range)
            clauses.append("start_at < ? AND end_at > ?")
            params.extend([_ts(span.end), _ts(span.start)])

        query = "SELECT * FROM Assignments"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY start_at ASC, id ASC;"

        with closing(self._connect()) as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_assignment(row) for row in rows]
