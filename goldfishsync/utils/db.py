"""Database utilities for tracking sync passes."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)


class SyncStateDB:
    """
    Manages the SQLite database that records sync passes.

    The local index itself is never persisted (it is rebuilt from the notes
    folder); this database only keeps the history of passes and the last
    successful pull, which the push-back path compares file mtimes against.
    """

    def __init__(self, db_path: Path):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    async def initialize(self) -> None:
        """Initialize database schema if it doesn't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    mode TEXT,
                    started_at TEXT NOT NULL,
                    finished_at TEXT NOT NULL,
                    status TEXT NOT NULL,
                    stats TEXT NOT NULL DEFAULT '{}',
                    error TEXT
                )
                """
            )
            await db.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_sync_runs_kind
                ON sync_runs(kind, finished_at)
                """
            )
            await db.commit()
            logger.debug(f"Database initialized at {self.db_path}")

    async def record_run(
        self,
        kind: str,
        started_at: datetime,
        status: str,
        stats: dict[str, int] | None = None,
        mode: str | None = None,
        error: str | None = None,
    ) -> None:
        """
        Record one pass.

        Args:
            kind: "pull" or "push"
            started_at: When the pass started
            status: "success" or "failed"
            stats: Per-action counts
            mode: Sync mode used for pulls
            error: Error message for failed passes
        """
        finished_at = datetime.now(timezone.utc)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO sync_runs (kind, mode, started_at, finished_at, status, stats, error)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    kind,
                    mode,
                    started_at.isoformat(),
                    finished_at.isoformat(),
                    status,
                    json.dumps(stats or {}, sort_keys=True),
                    error,
                ),
            )
            await db.commit()
        logger.debug(f"Recorded {status} {kind} pass")

    async def last_success(self, kind: str = "pull") -> datetime | None:
        """Finish time of the most recent successful pass of ``kind``."""
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                """
                SELECT finished_at FROM sync_runs
                WHERE kind = ? AND status = 'success'
                ORDER BY id DESC LIMIT 1
                """,
                (kind,),
            ) as cursor:
                row = await cursor.fetchone()
        return datetime.fromisoformat(row[0]) if row else None

    async def recent_runs(self, limit: int = 10) -> list[dict]:
        """Most recent passes, newest first."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?",
                (limit,),
            ) as cursor:
                rows = await cursor.fetchall()
        runs = []
        for row in rows:
            run = dict(row)
            run["stats"] = json.loads(run["stats"] or "{}")
            runs.append(run)
        return runs

    async def clear(self) -> None:
        """Forget all recorded passes."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM sync_runs")
            await db.commit()
            logger.info("Sync history cleared from database")
