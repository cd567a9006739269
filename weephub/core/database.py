"""
Activity Log Database

SQLite database with WAL mode for crash resistance.
Async operations via aiosqlite. Holds the append-only activity log of device
actions issued by the API and by routines.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite

from .models import ActivityEntry, now_ms
from ..config import settings

logger = logging.getLogger(__name__)

MAX_DEVICE_LENGTH = 200
MAX_ACTION_LENGTH = 50


# =============================================================================
# Database Schema
# =============================================================================

SCHEMA = """
-- Device actions, newest rows have the highest id
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device TEXT NOT NULL,
    action TEXT NOT NULL,
    timestamp INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_activity_log_timestamp ON activity_log(timestamp DESC);
"""


# =============================================================================
# Database Class
# =============================================================================

class Database:
    """Async SQLite database manager with WAL mode"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = Path(db_path or settings.activity_db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Connect to database and initialize schema"""
        if self._connection is not None:
            return

        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Connecting to database: {self.db_path}")

        self._connection = await aiosqlite.connect(
            self.db_path,
            isolation_level=None  # Auto-commit mode
        )

        # Enable WAL mode for crash resistance
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        # Row factory for dict-like access
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

        logger.info("Database connected and initialized")

    async def close(self) -> None:
        """Close database connection"""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def execute(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False,
        fetch_all: bool = False
    ) -> Any:
        """Execute a query with optional fetch"""
        async with self._lock:
            cursor = await self._connection.execute(query, params)

            if fetch_one:
                return await cursor.fetchone()
            elif fetch_all:
                return await cursor.fetchall()
            else:
                await self._connection.commit()
                return cursor.lastrowid

    # =========================================================================
    # Integrity & Maintenance
    # =========================================================================

    async def check_integrity(self) -> bool:
        """Check database integrity"""
        result = await self.execute(
            "PRAGMA integrity_check",
            fetch_one=True
        )
        return result[0] == "ok" if result else False

    # =========================================================================
    # Activity Log Operations
    # =========================================================================

    async def add_activity(
        self,
        device: str,
        action: str,
        timestamp: Optional[int] = None
    ) -> ActivityEntry:
        """Append an activity entry"""
        entry = ActivityEntry(
            device=str(device or "Unknown")[:MAX_DEVICE_LENGTH],
            action=str(action or "unknown")[:MAX_ACTION_LENGTH],
            timestamp=int(timestamp) if timestamp is not None else now_ms()
        )
        await self.execute(
            "INSERT INTO activity_log (device, action, timestamp) VALUES (?, ?, ?)",
            (entry.device, entry.action, entry.timestamp)
        )
        return entry

    async def get_recent_activity(self, limit: int = 120) -> List[ActivityEntry]:
        """Most recent entries, newest first"""
        rows = await self.execute(
            "SELECT device, action, timestamp FROM activity_log ORDER BY id DESC LIMIT ?",
            (limit,),
            fetch_all=True
        )
        return [ActivityEntry(**dict(row)) for row in rows]

    async def clear_activity(self) -> int:
        """Delete every activity entry"""
        async with self._lock:
            cursor = await self._connection.execute("DELETE FROM activity_log")
            await self._connection.commit()
        logger.info(f"Cleared {cursor.rowcount} activity entries")
        return cursor.rowcount


class ActivityLogger:
    """
    Append-only sink used by dispatch paths.

    Write failures are logged and never propagate into the caller.
    """

    def __init__(self, db: Database):
        self.db = db

    async def record(self, device: str, action: str) -> None:
        try:
            await self.db.add_activity(device, action)
        except Exception as e:
            logger.error(f"Failed to write activity log entry ({device}: {action}): {e}")
