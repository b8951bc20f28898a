import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

DB_FILENAME = "app.db"

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS ANALYSIS_EVENT (
        id TEXT PRIMARY KEY,
        analysis_type TEXT NOT NULL,
        status TEXT NOT NULL,
        status_text TEXT,
        error_message TEXT,
        video_url TEXT,
        image_urls TEXT,
        original_filename TEXT,
        content_type TEXT,
        image_count INTEGER DEFAULT 0,
        analysis_report TEXT,
        created_at INTEGER,
        updated_at INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_analysis_event_created_at ON ANALYSIS_EVENT(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_analysis_event_status ON ANALYSIS_EVENT(status)",
)


def _resolve_db_dir(db_dir: Optional[Path | str]) -> Path:
    """Pick the database directory and make sure it can hold the SQLite file."""
    raw = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")
    if raw is None or not raw.strip():
        raise RuntimeError(
            "DATABASE_DIR environment variable must be set to a writable "
            "directory path where the SQLite database file will be stored."
        )

    path = Path(raw).expanduser()
    if path.exists() and not path.is_dir():
        raise RuntimeError(f"DATABASE_DIR={raw!r} points to a file, not a directory ({path}).")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Failed to create or access database directory at {path}") from exc
    return path


class AsyncDatabaseInitializer:
    """
    Owns the SQLite file backing analysis jobs: <DATABASE_DIR>/app.db.

    - `db_dir` overrides DATABASE_DIR (tests pass a temporary directory).
    - The schema is created lazily and existing rows are kept, so job history
      survives restarts.
    - `connection()` yields a fresh `aiosqlite.Connection` per use.
    """

    def __init__(self, db_dir: Optional[Path | str] = None) -> None:
        self.db_dir = _resolve_db_dir(db_dir)
        self.db_path = self.db_dir / DB_FILENAME
        self._initialized = False

    async def ensure_database(self) -> None:
        """Create the schema once per instance."""
        if self._initialized:
            return

        attempts = 3
        for attempt in range(1, attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    for statement in SCHEMA_STATEMENTS:
                        await db.execute(statement)
                    await db.commit()
                break
            except FileNotFoundError:
                # Transient on some filesystems right after the directory is created.
                if attempt == attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
