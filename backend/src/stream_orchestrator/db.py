"""SQLite layer for chat history and users DBs."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .config import HISTORY_DB_PATH, USERS_DB_PATH
from .models import Message, UserPreferences


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _conn(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


# ---------------------------------------------------------------------------
# History DB
# ---------------------------------------------------------------------------

_HISTORY_LOCK = threading.Lock()


def _init_history(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chat_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            user_id TEXT,
            role TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_chat_history_session ON chat_history (session_id, id)"
    )
    conn.commit()


def save_message(
    session_id: str,
    role: str,
    content: str,
    user_id: str | None = None,
    path: Path = HISTORY_DB_PATH,
) -> None:
    """Append one turn to the session's history."""
    with _HISTORY_LOCK:
        conn = _conn(path)
        _init_history(conn)
        conn.execute(
            "INSERT INTO chat_history (session_id, user_id, role, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (session_id, user_id, role, content, _iso_now()),
        )
        conn.commit()
        conn.close()


def get_chat_history(
    session_id: str,
    user_id: str | None = None,
    path: Path = HISTORY_DB_PATH,
) -> list[Message]:
    """Return the session's turns, oldest first."""
    query = "SELECT role, content FROM chat_history WHERE session_id = ?"
    params: tuple[Any, ...] = (session_id,)
    if user_id is not None:
        query += " AND user_id = ?"
        params += (user_id,)
    with _HISTORY_LOCK:
        conn = _conn(path)
        _init_history(conn)
        rows = conn.execute(query + " ORDER BY id ASC", params).fetchall()
        conn.close()
    return [Message(role=r[0], content=r[1]) for r in rows]


class Persistence(Protocol):
    """Collaborator the orchestrator hands completed turns to."""

    def save(self, role: str, content: str, session_id: str) -> None:
        ...


class ChatHistoryStore:
    """SQLite-backed Persistence bound to one (optional) user identity."""

    def __init__(self, user_id: str | None = None, path: Path = HISTORY_DB_PATH) -> None:
        self.user_id = user_id
        self.path = path

    def save(self, role: str, content: str, session_id: str) -> None:
        save_message(session_id, role, content, user_id=self.user_id, path=self.path)

    def history(self, session_id: str) -> list[Message]:
        return get_chat_history(session_id, user_id=self.user_id, path=self.path)


# ---------------------------------------------------------------------------
# Users DB
# ---------------------------------------------------------------------------

_USERS_LOCK = threading.Lock()


def _init_users(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            user_id TEXT PRIMARY KEY,
            metadata_json TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.commit()


def upsert_user(
    user_id: str,
    metadata: dict[str, Any] | None = None,
    path: Path = USERS_DB_PATH,
) -> None:
    """Insert or update a user row."""
    now = _iso_now()
    meta_json = json.dumps(metadata) if metadata else None
    with _USERS_LOCK:
        conn = _conn(path)
        _init_users(conn)
        conn.execute(
            """
            INSERT INTO users (user_id, metadata_json, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                metadata_json = excluded.metadata_json,
                updated_at = excluded.updated_at
            """,
            (user_id, meta_json, now, now),
        )
        conn.commit()
        conn.close()


def get_user(user_id: str, path: Path = USERS_DB_PATH) -> dict[str, Any] | None:
    """Return one user row or None."""
    with _USERS_LOCK:
        conn = _conn(path)
        _init_users(conn)
        row = conn.execute(
            "SELECT user_id, metadata_json, created_at, updated_at FROM users WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        conn.close()
    if not row:
        return None
    return {
        "user_id": row[0],
        "metadata": json.loads(row[1]) if row[1] else {},
        "created_at": row[2],
        "updated_at": row[3],
    }


def update_user_profile(
    user_id: str,
    profile_data: dict[str, Any],
    path: Path = USERS_DB_PATH,
) -> dict[str, Any]:
    """Merge ``profile_data`` into the user's stored profile and return the result."""
    row = get_user(user_id, path=path)
    metadata = row["metadata"] if row else {}
    profile = dict(metadata.get("profile") or {})
    profile.update(profile_data)
    metadata["profile"] = profile
    upsert_user(user_id, metadata, path=path)
    return profile


def get_user_preferences(user_id: str, path: Path = USERS_DB_PATH) -> UserPreferences | None:
    """Preferences stored under the user's metadata, or None if never set."""
    row = get_user(user_id, path=path)
    if row is None or not row["metadata"].get("preferences"):
        return None
    return UserPreferences(**row["metadata"]["preferences"])


def set_user_preferences(
    user_id: str,
    preferences: UserPreferences,
    path: Path = USERS_DB_PATH,
) -> None:
    row = get_user(user_id, path=path)
    metadata = row["metadata"] if row else {}
    metadata["preferences"] = preferences.model_dump()
    upsert_user(user_id, metadata, path=path)
