import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from kodo.session.models import ApprovalPolicy, ConversationHistory, Message, SessionState

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    started_at TEXT NOT NULL,
    last_activity TEXT NOT NULL,
    name TEXT,
    history TEXT NOT NULL DEFAULT '[]',
    approval TEXT
);

CREATE TABLE IF NOT EXISTS messages (
    uuid TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    parent_uuid TEXT,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_activity ON sessions(last_activity);
CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id);
"""

SQL_CREATE_SESSION = """
INSERT OR IGNORE INTO sessions (session_id, started_at, last_activity, name, history, approval)
VALUES (?, ?, ?, ?, '[]', NULL)
"""

SQL_INSERT_NODE = """
INSERT OR IGNORE INTO messages (uuid, session_id, parent_uuid, data, created_at)
VALUES (?, ?, ?, ?, ?)
"""

SQL_REPLACE_HISTORY = """
UPDATE sessions SET history = ?, last_activity = ? WHERE session_id = ?
"""

SQL_LIST_SESSIONS = """
SELECT session_id, started_at, last_activity, name,
       json_array_length(history) AS message_count
FROM sessions
ORDER BY last_activity DESC
LIMIT ?
"""


@dataclass
class SessionData:
    state: SessionState
    history: ConversationHistory


def _parse_dt(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


class SessionStore:
    """Branch-capable session history plus the persisted approval policy."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL;")
        await self._conn.execute("PRAGMA synchronous=NORMAL;")
        await self._conn.execute("PRAGMA busy_timeout=30000;")
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Session store not connected")
        return self._conn

    async def create_session(self, state: SessionState) -> None:
        await self.conn.execute(
            SQL_CREATE_SESSION,
            (state.session_id, state.started_at.isoformat(), state.last_activity.isoformat(), state.name),
        )
        await self.conn.commit()

    async def load_session(self, session_id: str) -> SessionData | None:
        rows = await self.conn.execute_fetchall("SELECT * FROM sessions WHERE session_id = ?", (session_id,))
        if not rows:
            return None
        row = rows[0]
        state = SessionState(
            session_id=row["session_id"],
            started_at=_parse_dt(row["started_at"]),
            last_activity=_parse_dt(row["last_activity"]),
            name=row["name"],
        )
        messages = [Message.from_dict(m) for m in json.loads(row["history"] or "[]")]
        node_rows = await self.conn.execute_fetchall(
            "SELECT data FROM messages WHERE session_id = ?",
            (session_id,),
        )
        nodes = [Message.from_dict(json.loads(r["data"])) for r in node_rows]
        return SessionData(state=state, history=ConversationHistory(messages, nodes=nodes))

    async def replace_history(self, session_id: str, messages: list[Message]) -> None:
        """Swap the committed path in a single transaction.

        Stored nodes are immutable: unseen ones are inserted, known ones are left alone.
        """
        now = datetime.now(UTC).isoformat()
        try:
            await self.conn.execute("BEGIN")
            await self.conn.executemany(
                SQL_INSERT_NODE,
                [(m.uuid, session_id, m.parent_uuid, json.dumps(m.to_dict(), default=str), now) for m in messages],
            )
            cursor = await self.conn.execute(
                SQL_REPLACE_HISTORY,
                (json.dumps([m.to_dict() for m in messages], default=str), now, session_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(session_id)
            await self.conn.commit()
        except BaseException:
            await self.conn.rollback()
            raise

    async def get_approval_policy(self, session_id: str) -> ApprovalPolicy:
        rows = await self.conn.execute_fetchall("SELECT approval FROM sessions WHERE session_id = ?", (session_id,))
        if not rows or not rows[0]["approval"]:
            return ApprovalPolicy()
        return ApprovalPolicy.from_dict(json.loads(rows[0]["approval"]))

    async def save_approval_policy(self, session_id: str, policy: ApprovalPolicy) -> bool:
        cursor = await self.conn.execute(
            "UPDATE sessions SET approval = ? WHERE session_id = ?",
            (json.dumps(policy.to_dict()), session_id),
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    async def list_sessions(self, limit: int = 20) -> list[dict]:
        rows = await self.conn.execute_fetchall(SQL_LIST_SESSIONS, (limit,))
        return [
            {
                "session_id": row["session_id"],
                "started_at": row["started_at"],
                "last_activity": row["last_activity"],
                "name": row["name"],
                "message_count": row["message_count"],
            }
            for row in rows
        ]
