"""
SQLite implementation of the repositories.

Rows are stored in the snake_case wire format; JSON columns hold the
(snake_case) parameters and message content. One SqliteDatabase owns the
connection and is shared by the job store, user store, conversation log and
lease table.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
import logging
import os
import sqlite3
import threading
from typing import Any, Dict, List, Mapping, Optional

from dateutil.tz import tzutc
import simplejson as json

from jobpoller.adapters import (
    decode_job,
    decode_message,
    decode_user,
    encode_job,
    encode_message,
    encode_user,
)
from jobpoller.domain import Job, JobInsert, Message, MessageRole, User
from jobpoller.errors import NotFoundError

from .interface import ConversationLog, JobLeases, JobStore, UserStore, clean_job_update
from .memory_repository import new_id

LOG = logging.getLogger(__name__)

SCHEMA_VERSION = "1"


def _now() -> datetime:
    return datetime.now(tzutc())


class SqliteDatabase:
    """
    Owns the SQLite connection and schema.

    The connection may be used from several scheduler worker threads, so
    every statement runs under a single lock.
    """

    def __init__(self, db_path: str):
        """
        Initialize database.

        Args:
            db_path: Path to SQLite database file (":memory:" is allowed)
        """
        self.db_path = db_path
        self.lock = threading.RLock()
        self._ensure_db_dir()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_schema()

    def _ensure_db_dir(self):
        """Create database directory if it doesn't exist."""
        if self.db_path == ":memory:":
            return
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @property
    def conn(self) -> sqlite3.Connection:
        """Get database connection, creating if needed."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self):
        """Create database schema if it doesn't exist."""
        with self.lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    parameters_json TEXT,
                    user_id TEXT,
                    schedule TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_jobs_status "
                "ON jobs(status)")
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_jobs_status_create "
                "ON jobs(status, created_at)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    messaging_handle TEXT,
                    display_name TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content_json TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_user "
                "ON messages(user_id, created_at)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS job_leases (
                    job_id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            cursor.execute(
                "INSERT OR IGNORE INTO metadata (key, value) VALUES (?, ?)",
                ("schema_version", SCHEMA_VERSION))

            self.conn.commit()

    def close(self) -> None:
        """Close database connection."""
        with self.lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


class SqliteJobStore(JobStore):
    """SQLite-based job store."""

    def __init__(self, db: SqliteDatabase):
        self.db = db

    @staticmethod
    def _job_to_row(job: Job) -> tuple:
        wire = encode_job(job)
        return (
            wire["id"],
            wire["type"],
            wire["status"],
            json.dumps(wire["parameters"]),
            wire["user_id"],
            wire["schedule"],
            wire["created_at"],
        )

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        return decode_job({
            "id": row["id"],
            "type": row["type"],
            "status": row["status"],
            "parameters": json.loads(row["parameters_json"])
            if row["parameters_json"] else {},
            "user_id": row["user_id"],
            "schedule": row["schedule"],
            "created_at": row["created_at"],
        })

    def _decode_rows(self, rows) -> List[Job]:
        jobs = []
        for row in rows:
            try:
                jobs.append(self._row_to_job(row))
            except ValueError as error:
                LOG.error("skipping undecodable job row %s: %s", row["id"], error)
        return jobs

    def list_all(self) -> List[Job]:
        with self.db.lock:
            cursor = self.db.conn.execute("SELECT * FROM jobs ORDER BY created_at, rowid")
            return self._decode_rows(cursor.fetchall())

    def list_pending(self) -> List[Job]:
        with self.db.lock:
            cursor = self.db.conn.execute(
                "SELECT * FROM jobs WHERE status = ? ORDER BY created_at, rowid",
                ("pending",))
            return self._decode_rows(cursor.fetchall())

    def get(self, job_id: str) -> Job:
        with self.db.lock:
            cursor = self.db.conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("job", job_id)
        return self._row_to_job(row)

    def _save(self, job: Job) -> None:
        self.db.conn.execute("""
            INSERT OR REPLACE INTO jobs (
                id, type, status, parameters_json, user_id, schedule, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """, self._job_to_row(job))
        self.db.conn.commit()

    def create(self, insert: JobInsert) -> Job:
        job = insert.build(new_id(), _now())
        with self.db.lock:
            self._save(job)
        LOG.debug("created job %s", job)
        return job

    def update_by_id(self, job_id: str, update: Mapping[str, Any]) -> Job:
        update = clean_job_update(update)
        with self.db.lock:
            job = replace(self.get(job_id), **update)
            self._save(job)
        LOG.debug("updated job %s: %r", job_id, update)
        return job

    def close(self) -> None:
        self.db.close()


class SqliteUserStore(UserStore):
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def get(self, user_id: str) -> User:
        with self.db.lock:
            cursor = self.db.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("user", user_id)
        return decode_user(dict(row))

    def save(self, user: User) -> None:
        wire = encode_user(user)
        with self.db.lock:
            self.db.conn.execute(
                "INSERT OR REPLACE INTO users (id, messaging_handle, display_name) "
                "VALUES (?, ?, ?)",
                (wire["id"], wire["messaging_handle"], wire["display_name"]))
            self.db.conn.commit()


class SqliteConversationLog(ConversationLog):
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def append(self, user_id: str, role: MessageRole,
               content: List[Dict[str, Any]]) -> Message:
        message = Message(
            id=new_id(), user_id=user_id, role=role, content=content,
            created_at=_now())
        wire = encode_message(message)
        with self.db.lock:
            self.db.conn.execute(
                "INSERT INTO messages (id, user_id, role, content_json, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (wire["id"], wire["user_id"], wire["role"],
                 json.dumps(wire["content"]), wire["created_at"]))
            self.db.conn.commit()
        return message

    def list_for_user(self, user_id: str) -> List[Message]:
        with self.db.lock:
            cursor = self.db.conn.execute(
                "SELECT * FROM messages WHERE user_id = ? ORDER BY created_at, rowid",
                (user_id,))
            rows = cursor.fetchall()
        return [
            decode_message({
                "id": row["id"],
                "user_id": row["user_id"],
                "role": row["role"],
                "content": json.loads(row["content_json"]),
                "created_at": row["created_at"],
            })
            for row in rows
        ]


class SqliteJobLeases(JobLeases):
    """
    Lease table shared by every scheduler process using the same file.

    The claim is a single upsert so that two processes cannot both win it.
    """

    def __init__(self, db: SqliteDatabase):
        self.db = db

    def claim(self, job_id: str, owner: str, now: datetime, ttl: timedelta) -> bool:
        with self.db.lock:
            cursor = self.db.conn.execute("""
                INSERT INTO job_leases (job_id, owner, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(job_id) DO UPDATE SET
                    owner = excluded.owner,
                    expires_at = excluded.expires_at
                WHERE job_leases.owner = excluded.owner
                    OR job_leases.expires_at <= ?
            """, (job_id, owner, (now + ttl).timestamp(), now.timestamp()))
            self.db.conn.commit()
            return cursor.rowcount > 0

    def release(self, job_id: str, owner: str) -> None:
        with self.db.lock:
            self.db.conn.execute(
                "DELETE FROM job_leases WHERE job_id = ? AND owner = ?",
                (job_id, owner))
            self.db.conn.commit()
