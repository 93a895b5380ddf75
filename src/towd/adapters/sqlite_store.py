"""SQLite adapter - implements the Store port."""

import logging
import sqlite3
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from towd.core.auth import SessionToken, User
from towd.core.calendar import Calendar, Event
from towd.core.errors import PersistenceError
from towd.core.kanban import KanbanGroup, KanbanItem
from towd.metrics import database_gauge

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS calendars (
    channel_id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS external_calendars (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL,
    hash TEXT NOT NULL DEFAULT '',
    channel_id TEXT NOT NULL,
    UNIQUE (url, channel_id)
);
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    summary TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL DEFAULT '',
    organizer TEXT NOT NULL DEFAULT '',
    start_date INTEGER NOT NULL,
    end_date INTEGER NOT NULL,
    is_whole_day INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    updated_at INTEGER,
    sequence INTEGER NOT NULL DEFAULT 0,
    calendar_id TEXT NOT NULL,
    channel_id TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS events_channel_start ON events (channel_id, start_date);
CREATE TABLE IF NOT EXISTS attendees (
    event_id TEXT NOT NULL,
    data TEXT NOT NULL,
    PRIMARY KEY (event_id, data)
);
CREATE TABLE IF NOT EXISTS kanban_groups (
    name TEXT NOT NULL,
    channel_id TEXT NOT NULL,
    PRIMARY KEY (name, channel_id)
);
CREATE TABLE IF NOT EXISTS kanban_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content TEXT NOT NULL,
    group_name TEXT NOT NULL,
    channel_id TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    totp_secret TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS session_tokens (
    secret TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    ip_address TEXT NOT NULL DEFAULT '',
    user_agent TEXT NOT NULL DEFAULT ''
);
"""


def _to_unix(dt: datetime | None) -> int | None:
    return int(dt.timestamp()) if dt is not None else None


def _from_unix(ts: int | None) -> datetime | None:
    return datetime.fromtimestamp(ts, timezone.utc) if ts is not None else None


class SQLiteStore:
    """
    Single-connection SQLite store.

    All access goes through one re-entrant lock, so the database is serialized
    for the whole process. `transaction()` nests: only the outermost block
    commits.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0

    def init_schema(self) -> None:
        with self._lock:
            try:
                self._conn.executescript(SCHEMA)
            except sqlite3.Error as e:
                raise PersistenceError("Can't create database schema", cause=e) from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            self._execute("BEGIN")
            self._depth = 1
            try:
                yield
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback()
                raise PersistenceError("Transaction failed", cause=e) from e
            except BaseException:
                self._rollback()
                raise
            finally:
                self._depth = 0

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed: {e}")

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        gauge = database_gauge(sql)
        with self._lock, (gauge.time() if gauge else nullcontext()):
            try:
                return self._conn.execute(sql, params)
            except sqlite3.Error as e:
                raise PersistenceError(f"Database error on {sql.split()[0].lower()}", cause=e) from e

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._execute(sql, params).fetchall()

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._execute(sql, params).fetchone()

    # ---- events ----

    def _event_from_row(self, row: sqlite3.Row) -> Event:
        attendees = [
            r["data"]
            for r in self._fetchall("SELECT data FROM attendees WHERE event_id = ? ORDER BY rowid", (row["id"],))
        ]
        return Event(
            id=row["id"],
            summary=row["summary"],
            description=row["description"],
            location=row["location"],
            url=row["url"],
            organizer=row["organizer"],
            start=_from_unix(row["start_date"]),
            end=_from_unix(row["end_date"]),
            whole_day=bool(row["is_whole_day"]),
            created_at=_from_unix(row["created_at"]),
            updated_at=_from_unix(row["updated_at"]),
            sequence=row["sequence"],
            calendar_id=row["calendar_id"],
            channel_id=row["channel_id"],
            attendees=attendees,
        )

    def get_event(self, event_id: str, channel_id: str) -> Event | None:
        row = self._fetchone("SELECT * FROM events WHERE id = ? AND channel_id = ?", (event_id, channel_id))
        return self._event_from_row(row) if row else None

    def list_events(self, channel_id: str, start: datetime, end: datetime) -> list[Event]:
        rows = self._fetchall(
            "SELECT * FROM events WHERE channel_id = ? AND start_date >= ? AND start_date <= ? ORDER BY start_date",
            (channel_id, _to_unix(start), _to_unix(end)),
        )
        return [self._event_from_row(row) for row in rows]

    def _write_attendees(self, event: Event) -> None:
        self._execute("DELETE FROM attendees WHERE event_id = ?", (event.id,))
        for attendee in dict.fromkeys(event.attendees):
            self._execute("INSERT INTO attendees (event_id, data) VALUES (?, ?)", (event.id, attendee))

    def insert_event(self, event: Event) -> None:
        created = event.created_at or datetime.now(timezone.utc)
        with self.transaction():
            self._execute(
                """INSERT INTO events (id, summary, description, location, url, organizer, start_date,
                end_date, is_whole_day, created_at, updated_at, sequence, calendar_id, channel_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event.id,
                    event.summary,
                    event.description,
                    event.location,
                    event.url,
                    event.organizer,
                    _to_unix(event.start),
                    _to_unix(event.end),
                    int(event.whole_day),
                    _to_unix(created),
                    _to_unix(event.updated_at),
                    event.sequence,
                    event.calendar_id,
                    event.channel_id,
                ),
            )
            self._write_attendees(event)

    def update_event(self, event: Event) -> None:
        with self.transaction():
            self._execute(
                """UPDATE events SET summary = ?, description = ?, location = ?, url = ?, start_date = ?,
                end_date = ?, is_whole_day = ?, updated_at = ?, sequence = sequence + 1
                WHERE id = ? AND channel_id = ?""",
                (
                    event.summary,
                    event.description,
                    event.location,
                    event.url,
                    _to_unix(event.start),
                    _to_unix(event.end),
                    int(event.whole_day),
                    _to_unix(datetime.now(timezone.utc)),
                    event.id,
                    event.channel_id,
                ),
            )
            self._write_attendees(event)

    def delete_event(self, event_id: str, channel_id: str) -> None:
        with self.transaction():
            self._execute("DELETE FROM events WHERE id = ? AND channel_id = ?", (event_id, channel_id))
            self._execute("DELETE FROM attendees WHERE event_id = ?", (event_id,))

    # ---- calendars ----

    def ensure_channel_calendar(self, channel_id: str, name: str) -> None:
        self._execute("INSERT OR IGNORE INTO calendars (channel_id, name) VALUES (?, ?)", (channel_id, name))

    def get_calendar(self, calendar_id: str, channel_id: str) -> Calendar | None:
        row = self._fetchone(
            "SELECT * FROM external_calendars WHERE id = ? AND channel_id = ?", (calendar_id, channel_id)
        )
        if row is None:
            return None
        return Calendar(
            id=row["id"],
            name=row["name"],
            channel_id=row["channel_id"],
            url=row["url"],
            description=row["description"],
            hash=row["hash"],
        )

    def calendar_url_exists(self, url: str, channel_id: str) -> bool:
        row = self._fetchone("SELECT 1 FROM external_calendars WHERE url = ? AND channel_id = ?", (url, channel_id))
        return row is not None

    def insert_calendar(self, calendar: Calendar, events: list[Event]) -> None:
        with self.transaction():
            self._execute(
                "INSERT INTO external_calendars (id, name, description, url, hash, channel_id) VALUES (?, ?, ?, ?, ?, ?)",
                (calendar.id, calendar.name, calendar.description, calendar.url, calendar.hash, calendar.channel_id),
            )
            for event in events:
                self.insert_event(event)

    def delete_calendar(self, calendar_id: str, channel_id: str) -> int:
        with self.transaction():
            self._execute(
                "DELETE FROM attendees WHERE event_id IN "
                "(SELECT id FROM events WHERE calendar_id = ? AND channel_id = ?)",
                (calendar_id, channel_id),
            )
            removed = self._execute(
                "DELETE FROM events WHERE calendar_id = ? AND channel_id = ?", (calendar_id, channel_id)
            ).rowcount
            self._execute("DELETE FROM external_calendars WHERE id = ? AND channel_id = ?", (calendar_id, channel_id))
        return removed

    # ---- kanban ----

    def list_groups(self, channel_id: str) -> list[KanbanGroup]:
        rows = self._fetchall("SELECT * FROM kanban_groups WHERE channel_id = ? ORDER BY rowid", (channel_id,))
        return [KanbanGroup(name=row["name"], channel_id=row["channel_id"]) for row in rows]

    def get_group(self, name: str, channel_id: str) -> KanbanGroup | None:
        row = self._fetchone("SELECT * FROM kanban_groups WHERE name = ? AND channel_id = ?", (name, channel_id))
        return KanbanGroup(name=row["name"], channel_id=row["channel_id"]) if row else None

    def insert_group(self, group: KanbanGroup) -> None:
        self._execute("INSERT INTO kanban_groups (name, channel_id) VALUES (?, ?)", (group.name, group.channel_id))

    def _item_from_row(self, row: sqlite3.Row) -> KanbanItem:
        return KanbanItem(
            id=row["id"], content=row["content"], group_name=row["group_name"], channel_id=row["channel_id"]
        )

    def list_items(self, channel_id: str) -> list[KanbanItem]:
        rows = self._fetchall("SELECT * FROM kanban_items WHERE channel_id = ? ORDER BY id", (channel_id,))
        return [self._item_from_row(row) for row in rows]

    def get_item(self, item_id: int, channel_id: str) -> KanbanItem | None:
        row = self._fetchone("SELECT * FROM kanban_items WHERE id = ? AND channel_id = ?", (item_id, channel_id))
        return self._item_from_row(row) if row else None

    def insert_item(self, content: str, group_name: str, channel_id: str) -> KanbanItem:
        cursor = self._execute(
            "INSERT INTO kanban_items (content, group_name, channel_id) VALUES (?, ?, ?)",
            (content, group_name, channel_id),
        )
        return KanbanItem(id=cursor.lastrowid, content=content, group_name=group_name, channel_id=channel_id)

    def move_item(self, item_id: int, group_name: str, channel_id: str) -> None:
        self._execute(
            "UPDATE kanban_items SET group_name = ? WHERE id = ? AND channel_id = ?", (group_name, item_id, channel_id)
        )

    def delete_item(self, item_id: int, channel_id: str) -> None:
        self._execute("DELETE FROM kanban_items WHERE id = ? AND channel_id = ?", (item_id, channel_id))

    # ---- auth ----

    def get_user(self, user_id: str) -> User | None:
        row = self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return User(id=row["id"], totp_secret=row["totp_secret"]) if row else None

    def set_totp_secret(self, user_id: str, secret: str) -> None:
        self._execute(
            "INSERT INTO users (id, totp_secret) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET totp_secret = excluded.totp_secret",
            (user_id, secret),
        )

    def list_sessions(self, user_id: str) -> list[SessionToken]:
        rows = self._fetchall("SELECT * FROM session_tokens WHERE user_id = ? ORDER BY created_at", (user_id,))
        return [
            SessionToken(
                secret=row["secret"],
                user_id=row["user_id"],
                created_at=_from_unix(row["created_at"]),
                ip_address=row["ip_address"],
                user_agent=row["user_agent"],
            )
            for row in rows
        ]

    def insert_session(self, token: SessionToken) -> None:
        """Used by the dashboard service when a login completes."""
        self._execute(
            "INSERT INTO session_tokens (secret, user_id, created_at, ip_address, user_agent) VALUES (?, ?, ?, ?, ?)",
            (token.secret, token.user_id, _to_unix(token.created_at), token.ip_address, token.user_agent),
        )

    def delete_session(self, secret: str) -> None:
        self._execute("DELETE FROM session_tokens WHERE secret = ?", (secret,))

    def count(self, table: str, **where: Any) -> int:
        """Row count helper for diagnostics."""
        if table not in {"events", "kanban_items", "kanban_groups", "external_calendars", "session_tokens"}:
            raise ValueError(f"Unknown table: {table}")
        if not all(column.isidentifier() for column in where):
            raise ValueError(f"Bad column in {list(where)}")
        clause = " AND ".join(f"{column} = ?" for column in where) or "1 = 1"
        row = self._fetchone(f"SELECT COUNT(*) FROM {table} WHERE {clause}", tuple(where.values()))
        return row[0]
