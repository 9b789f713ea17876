from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from careertrack.core.errors import (
    ConcurrentModificationError,
    ConstraintViolationError,
    NotFoundError,
    PersistenceError,
    TrackerError,
)
from careertrack.core.models import (
    Application,
    ApplicationStatus,
    FollowUp,
    Note,
    SuggestionAction,
    SuggestionActionType,
    _iso_utc,
    _parse_iso,
    _utc_now,
)
from careertrack.tracker.event_schema import (
    ApplicationEvent,
    EnrichedEvent,
    from_legacy_slots,
    to_legacy_slots,
)

log = logging.getLogger("storage")

_STATUS_CHECK = ", ".join(f"'{s.value}'" for s in ApplicationStatus)

_APPLICATION_COLUMNS = (
    "id",
    "user_id",
    "company",
    "role",
    "platform",
    "status",
    "applied_date",
    "deadline_date",
    "reminder_enabled",
    "created_at",
    "updated_at",
)

_UPDATABLE_COLUMNS = frozenset(
    {"company", "role", "platform", "status", "applied_date", "deadline_date", "reminder_enabled", "updated_at"}
)


def _to_db(value: Any) -> Any:
    if isinstance(value, ApplicationStatus):
        return value.value
    if isinstance(value, datetime):
        return _iso_utc(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _opt_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _opt_dt(value: Optional[str]) -> Optional[datetime]:
    return _parse_iso(value) if value else None


class _SqliteBase:
    """Shared connection handling and schema for the SQLite stores."""

    def __init__(self, db_path: str | Path) -> None:
        """
        Description: Initialize sqlite DB at db_path (parent dirs are created).
        Layer: L0
        Input: db_path
        Output: store bound to the database file
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        con = sqlite3.connect(self._db_path)
        con.row_factory = sqlite3.Row
        try:
            with con:
                yield con
        except TrackerError:
            raise
        except sqlite3.IntegrityError as e:
            raise ConstraintViolationError(str(e)) from e
        except sqlite3.Error as e:
            log.error("SQLite failure on %s: %s", self._db_path, e)
            raise PersistenceError(str(e)) from e
        finally:
            con.close()

    def _init_schema(self) -> None:
        """
        Description: Create tables if they do not exist.
        Layer: L0
        Input: None
        Output: SQLite schema initialized
        """
        with self._connect() as con:
            con.execute(
                f"""
                CREATE TABLE IF NOT EXISTS applications (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    company TEXT NOT NULL,
                    role TEXT NOT NULL,
                    platform TEXT,
                    status TEXT NOT NULL CHECK (status IN ({_STATUS_CHECK})),
                    applied_date TEXT NOT NULL,
                    deadline_date TEXT,
                    reminder_enabled INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS ix_applications_user ON applications(user_id)")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS application_events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    application_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    old_value TEXT,
                    new_value TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            con.execute(
                "CREATE INDEX IF NOT EXISTS ix_events_app ON application_events(application_id, created_at)"
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS application_notes (
                    id TEXT PRIMARY KEY,
                    application_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS follow_ups (
                    id TEXT PRIMARY KEY,
                    application_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    note TEXT,
                    followed_up_at TEXT NOT NULL,
                    next_follow_up_date TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS suggestion_actions (
                    user_id TEXT NOT NULL,
                    suggestion_key TEXT NOT NULL,
                    action_type TEXT NOT NULL CHECK (action_type IN ('dismissed', 'snoozed')),
                    snooze_until TEXT,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, suggestion_key)
                )
                """
            )


class SqliteTrackerStore(_SqliteBase):
    """
    Description: Local-first persistence for applications, events, notes and
    follow-ups using SQLite.
    Layer: L8
    Input: domain models scoped by user_id
    Output: durable rows + ordered replays
    """

    # ── applications ─────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_application(row: sqlite3.Row) -> Application:
        return Application(
            id=row["id"],
            user_id=row["user_id"],
            company=row["company"],
            role=row["role"],
            platform=row["platform"],
            status=ApplicationStatus(row["status"]),
            applied_date=date.fromisoformat(row["applied_date"]),
            deadline_date=_opt_date(row["deadline_date"]),
            reminder_enabled=bool(row["reminder_enabled"]),
            created_at=_parse_iso(row["created_at"]),
            updated_at=_parse_iso(row["updated_at"]),
        )

    def create(self, application: Application) -> Application:
        data = application.model_dump()
        values = tuple(_to_db(data[c]) for c in _APPLICATION_COLUMNS)
        placeholders = ",".join("?" for _ in _APPLICATION_COLUMNS)
        with self._connect() as con:
            con.execute(
                f"INSERT INTO applications({','.join(_APPLICATION_COLUMNS)}) VALUES({placeholders})",
                values,
            )
        return application

    def update(
        self,
        user_id: str,
        application_id: str,
        changes: Dict[str, Any],
        *,
        expected_status: Optional[str] = None,
    ) -> Application:
        """
        Description: Apply column changes; when expected_status is given the write
        only succeeds if the row still holds that status (compare-and-swap).
        Layer: L8
        Input: user_id + application_id + changes + optional expected_status
        Output: updated Application
        """
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ConstraintViolationError(f"Columns not updatable: {sorted(unknown)}")
        if not changes:
            found = self.get(user_id, application_id)
            if found is None:
                raise NotFoundError("Application", application_id)
            return found

        assignments = ", ".join(f"{c}=?" for c in changes)
        params: List[Any] = [_to_db(v) for v in changes.values()]
        where = "id=? AND user_id=?"
        params += [application_id, user_id]
        if expected_status is not None:
            where += " AND status=?"
            params.append(_to_db(expected_status))

        with self._connect() as con:
            cur = con.execute(f"UPDATE applications SET {assignments} WHERE {where}", params)
            if cur.rowcount == 0:
                exists = con.execute(
                    "SELECT 1 FROM applications WHERE id=? AND user_id=?", (application_id, user_id)
                ).fetchone()
                if not exists:
                    raise NotFoundError("Application", application_id)
                raise ConcurrentModificationError(application_id, str(_to_db(expected_status)))
            row = con.execute(
                "SELECT * FROM applications WHERE id=? AND user_id=?", (application_id, user_id)
            ).fetchone()
        return self._row_to_application(row)

    def delete(self, user_id: str, application_id: str) -> None:
        """Delete an application and cascade its events, notes and follow-ups."""
        with self._connect() as con:
            cur = con.execute("DELETE FROM applications WHERE id=? AND user_id=?", (application_id, user_id))
            if cur.rowcount == 0:
                raise NotFoundError("Application", application_id)
            for table in ("application_events", "application_notes", "follow_ups"):
                con.execute(f"DELETE FROM {table} WHERE application_id=? AND user_id=?", (application_id, user_id))

    def get(self, user_id: str, application_id: str) -> Optional[Application]:
        with self._connect() as con:
            row = con.execute(
                "SELECT * FROM applications WHERE id=? AND user_id=?", (application_id, user_id)
            ).fetchone()
        return self._row_to_application(row) if row else None

    def list(self, user_id: str) -> List[Application]:
        with self._connect() as con:
            rows = con.execute(
                "SELECT * FROM applications WHERE user_id=? ORDER BY applied_date DESC, created_at DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_application(r) for r in rows]

    # ── events ───────────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> ApplicationEvent:
        return from_legacy_slots(
            event_type=row["event_type"],
            old_value=row["old_value"],
            new_value=row["new_value"],
            base={
                "id": row["id"],
                "application_id": row["application_id"],
                "user_id": row["user_id"],
                "created_at": _parse_iso(row["created_at"]),
                "seq": row["seq"],
            },
        )

    def append(self, event: ApplicationEvent) -> None:
        old_value, new_value = to_legacy_slots(event)
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO application_events(id, application_id, user_id, event_type, old_value, new_value, created_at)
                VALUES(?,?,?,?,?,?,?)
                """,
                (
                    event.id,
                    event.application_id,
                    event.user_id,
                    event.event_type,
                    old_value,
                    new_value,
                    _iso_utc(event.created_at),
                ),
            )

    def list_by_application(self, user_id: str, application_id: str) -> List[ApplicationEvent]:
        """Events for one application, oldest first."""
        with self._connect() as con:
            rows = con.execute(
                """
                SELECT * FROM application_events
                WHERE user_id=? AND application_id=?
                ORDER BY created_at ASC, seq ASC
                """,
                (user_id, application_id),
            ).fetchall()
        return [self._row_to_event(r) for r in rows]

    def list_by_user(self, user_id: str) -> List[EnrichedEvent]:
        """All events for a user, oldest first, joined with platform/role."""
        with self._connect() as con:
            rows = con.execute(
                """
                SELECT e.*, a.platform AS app_platform, a.role AS app_role
                FROM application_events e
                LEFT JOIN applications a ON a.id = e.application_id AND a.user_id = e.user_id
                WHERE e.user_id=?
                ORDER BY e.created_at ASC, e.seq ASC
                """,
                (user_id,),
            ).fetchall()
        return [
            EnrichedEvent(event=self._row_to_event(r), platform=r["app_platform"], role=r["app_role"])
            for r in rows
        ]

    # ── notes / follow-ups ───────────────────────────────────────────────────

    def add_note(self, note: Note) -> Note:
        with self._connect() as con:
            con.execute(
                "INSERT INTO application_notes(id, application_id, user_id, content, created_at) VALUES(?,?,?,?,?)",
                (note.id, note.application_id, note.user_id, note.content, _iso_utc(note.created_at)),
            )
        return note

    def list_notes(self, user_id: str, application_id: str) -> List[Note]:
        with self._connect() as con:
            rows = con.execute(
                """
                SELECT * FROM application_notes
                WHERE user_id=? AND application_id=?
                ORDER BY created_at DESC
                """,
                (user_id, application_id),
            ).fetchall()
        return [
            Note(
                id=r["id"],
                application_id=r["application_id"],
                user_id=r["user_id"],
                content=r["content"],
                created_at=_parse_iso(r["created_at"]),
            )
            for r in rows
        ]

    def add_follow_up(self, follow_up: FollowUp) -> FollowUp:
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO follow_ups(id, application_id, user_id, note, followed_up_at, next_follow_up_date, created_at)
                VALUES(?,?,?,?,?,?,?)
                """,
                (
                    follow_up.id,
                    follow_up.application_id,
                    follow_up.user_id,
                    follow_up.note,
                    _iso_utc(follow_up.followed_up_at),
                    _to_db(follow_up.next_follow_up_date),
                    _iso_utc(follow_up.created_at),
                ),
            )
        return follow_up

    def list_follow_ups(self, user_id: str, application_id: Optional[str] = None) -> List[FollowUp]:
        sql = "SELECT * FROM follow_ups WHERE user_id=?"
        params: List[Any] = [user_id]
        if application_id is not None:
            sql += " AND application_id=?"
            params.append(application_id)
        sql += " ORDER BY followed_up_at DESC"
        with self._connect() as con:
            rows = con.execute(sql, params).fetchall()
        return [
            FollowUp(
                id=r["id"],
                application_id=r["application_id"],
                user_id=r["user_id"],
                note=r["note"],
                followed_up_at=_parse_iso(r["followed_up_at"]),
                next_follow_up_date=_opt_date(r["next_follow_up_date"]),
                created_at=_parse_iso(r["created_at"]),
            )
            for r in rows
        ]


class SqliteSuggestionActionStore(_SqliteBase):
    """
    Description: Per-user dismiss/snooze ledger backed by the same SQLite file.
    Layer: L9
    Input: user_id + suggestion_key + action
    Output: last-write-wins ledger rows
    """

    def upsert(
        self,
        user_id: str,
        suggestion_key: str,
        action_type: SuggestionActionType,
        snooze_until: Optional[datetime] = None,
    ) -> None:
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO suggestion_actions(user_id, suggestion_key, action_type, snooze_until, created_at)
                VALUES(?,?,?,?,?)
                ON CONFLICT(user_id, suggestion_key) DO UPDATE SET
                    action_type=excluded.action_type,
                    snooze_until=excluded.snooze_until,
                    created_at=excluded.created_at
                """,
                (
                    user_id,
                    suggestion_key,
                    action_type,
                    _iso_utc(snooze_until) if snooze_until else None,
                    _iso_utc(_utc_now()),
                ),
            )

    def list_for_user(self, user_id: str) -> List[SuggestionAction]:
        with self._connect() as con:
            rows = con.execute("SELECT * FROM suggestion_actions WHERE user_id=?", (user_id,)).fetchall()
        return [
            SuggestionAction(
                user_id=r["user_id"],
                suggestion_key=r["suggestion_key"],
                action_type=r["action_type"],
                snooze_until=_opt_dt(r["snooze_until"]),
                created_at=_parse_iso(r["created_at"]),
            )
            for r in rows
        ]

    def delete(self, user_id: str, suggestion_key: str) -> None:
        with self._connect() as con:
            con.execute(
                "DELETE FROM suggestion_actions WHERE user_id=? AND suggestion_key=?", (user_id, suggestion_key)
            )
