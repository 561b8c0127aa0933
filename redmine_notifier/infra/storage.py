"""SQLite persistence for the poll state."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict, Protocol

from ..engine.detector import PollState
from ..engine.parser import format_timestamp, parse_timestamp


class StateStore(Protocol):
    def load(self) -> PollState: ...

    def save(self, state: PollState) -> None: ...


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS poll_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                watermark TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS boundary_ids (
                issue_id INTEGER PRIMARY KEY
            )
            """
        )
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class SQLiteStateStore:
    """``StateStore`` keeping the watermark and boundary ids in one database."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()

    def load(self) -> PollState:
        conn = self.manager.connect(self.db_path)
        with self._lock:
            row = conn.execute("SELECT watermark FROM poll_state WHERE id = 1").fetchone()
            ids = conn.execute("SELECT issue_id FROM boundary_ids").fetchall()
        watermark = parse_timestamp(row["watermark"]) if row is not None else None
        if watermark is None:
            return PollState()
        return PollState(watermark=watermark, boundary=frozenset(int(r["issue_id"]) for r in ids))

    def save(self, state: PollState) -> None:
        conn = self.manager.connect(self.db_path)
        watermark = format_timestamp(state.watermark) if state.watermark is not None else None
        with self._lock, conn:
            conn.execute(
                "INSERT OR REPLACE INTO poll_state(id, watermark) VALUES (1, ?)",
                (watermark,),
            )
            conn.execute("DELETE FROM boundary_ids")
            conn.executemany(
                "INSERT INTO boundary_ids(issue_id) VALUES (?)",
                [(issue_id,) for issue_id in sorted(state.boundary)],
            )

    def reset(self) -> None:
        self.manager.reset(self.db_path)


__all__ = ["SQLiteManager", "SQLiteStateStore", "StateStore"]
