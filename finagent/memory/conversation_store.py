"""
SQLite-backed conversation store for cross-session persistent memory.

Persists the user/assistant turns of a conversation thread so a console
session can be resumed later (``finagent chat --session <id>``).

Schema
------
sessions  : session_id TEXT PK, created_at TEXT
messages  : id INTEGER PK, session_id TEXT FK, role TEXT,
            content TEXT, agent TEXT, timestamp TEXT

Usage
-----
    store = ConversationStore()          # opens/creates data/conversations.db
    store.save_turn(sid, "user q", "assistant a", "FinancialAnalysisAgent")
    history = store.get_history(sid)     # [{"role": ..., "content": ...}, ...]
    thread = store.load_thread(sid, agent.id)
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from finagent.core.thread import ConversationThread

# Store the DB next to the package in a sibling data/ directory
_DEFAULT_DB = Path(__file__).resolve().parents[2] / "data" / "conversations.db"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConversationStore:
    """SQLite conversation store; one connection per call."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path or _DEFAULT_DB)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ── schema ────────────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")  # safe for concurrent reads
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id  TEXT PRIMARY KEY,
                    created_at  TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS messages (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id  TEXT    NOT NULL REFERENCES sessions(session_id),
                    role        TEXT    NOT NULL CHECK(role IN ('user', 'assistant')),
                    content     TEXT    NOT NULL,
                    agent       TEXT,
                    timestamp   TEXT    NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_messages_session
                    ON messages(session_id, id);
            """)

    # ── public API ────────────────────────────────────────────────────────────

    def ensure_session(self, session_id: str) -> None:
        """Create the session row if it does not exist."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO sessions (session_id, created_at) VALUES (?, ?)",
                (session_id, _now()),
            )

    def save_turn(
        self,
        session_id: str,
        user_msg: str,
        assistant_msg: str,
        agent_name: str = "unknown",
    ) -> None:
        """
        Persist a user/assistant exchange as two message rows.
        Creates the session automatically if it doesn't exist.
        """
        self.ensure_session(session_id)
        now = _now()
        with self._connect() as conn:
            conn.executemany(
                "INSERT INTO messages (session_id, role, content, agent, timestamp) VALUES (?,?,?,?,?)",
                [
                    (session_id, "user",      user_msg,      agent_name, now),
                    (session_id, "assistant", assistant_msg, agent_name, now),
                ],
            )

    def get_history(
        self,
        session_id: str,
        last_n: int = 10,
    ) -> List[Dict[str, str]]:
        """
        Return the last *last_n* messages for *session_id* as a list of
        ``{"role": str, "content": str}`` dicts, oldest first.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT role, content FROM messages
                WHERE session_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (session_id, last_n),
            ).fetchall()
        # Reverse so oldest first (chronological order for model context)
        return [{"role": r["role"], "content": r["content"]} for r in reversed(rows)]

    def load_thread(self, session_id: str, agent_id: str, last_n: int = 50) -> ConversationThread:
        """Rebuild a conversation thread for *agent_id* from the stored turns."""
        history = self.get_history(session_id, last_n=last_n)
        # never start a thread on a dangling assistant reply
        if history and history[0]["role"] == "assistant":
            history = history[1:]
        return ConversationThread.from_history(history, agent_id=agent_id)

    def get_turn_count(self, session_id: str) -> int:
        """Return number of user messages in the session (= number of turns)."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM messages WHERE session_id = ? AND role = 'user'",
                (session_id,),
            ).fetchone()
        return row["cnt"] if row else 0

    def list_sessions(self) -> List[str]:
        """Return all known session IDs, most recent first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT session_id FROM sessions ORDER BY created_at DESC"
            ).fetchall()
        return [r["session_id"] for r in rows]

    @staticmethod
    def new_session_id() -> str:
        """Generate a fresh UUID4 session identifier."""
        return str(uuid.uuid4())
