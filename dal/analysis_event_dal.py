"""Async Data Access Layer for the ANALYSIS_EVENT table.

Provides AnalysisEventDAL with the create/get/update operations used by
the analysis job endpoints and the background job runner.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

from models.analysis_event import STATUS_COMPLETED, AnalysisEvent
from utils.database_init import AsyncDatabaseInitializer


class AnalysisEventDAL:
    """Data access layer for analysis job records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "analysis_type",
        "status",
        "status_text",
        "error_message",
        "video_url",
        "image_urls",
        "original_filename",
        "content_type",
        "image_count",
        "analysis_report",
        "created_at",
        "updated_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_event(self, event: AnalysisEvent) -> AnalysisEvent:
        """Insert a new ANALYSIS_EVENT row and return it with id and timestamps set."""
        now = int(time.time())
        event.id = event.id or uuid.uuid4().hex
        event.created_at = event.created_at or now
        event.updated_at = now

        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO ANALYSIS_EVENT ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS})",
                (
                    event.id,
                    event.analysis_type,
                    event.status,
                    event.status_text,
                    event.error_message,
                    event.video_url,
                    json.dumps(event.image_urls),
                    event.original_filename,
                    event.content_type,
                    event.image_count,
                    json.dumps(event.analysis_report) if event.analysis_report is not None else None,
                    event.created_at,
                    event.updated_at,
                ),
            )
            await conn.commit()
        return event

    async def get_event_by_id(self, event_id: str) -> Optional[AnalysisEvent]:
        """Return the AnalysisEvent for `event_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM ANALYSIS_EVENT WHERE id = ?",
                (event_id,),
            )
            row = await cur.fetchone()
            return self._row_to_event(row) if row else None

    async def list_events(self, limit: int = 10) -> List[AnalysisEvent]:
        """Return the most recent events, newest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM ANALYSIS_EVENT ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            )
            rows = await cur.fetchall()
            return [self._row_to_event(r) for r in rows]

    async def update_status(
        self,
        event_id: str,
        status: str,
        *,
        error_message: Optional[str] = None,
        status_text: Optional[str] = None,
    ) -> bool:
        """Set status, status text and error message. Passing no error clears it.

        Returns True if a row was changed.
        """
        return await self._update(
            event_id,
            status=status,
            status_text=status_text,
            error_message=error_message,
        )

    async def complete_event(self, event_id: str, report: Dict[str, Any]) -> bool:
        """Store the analysis report and mark the event completed."""
        return await self._update(
            event_id,
            status=STATUS_COMPLETED,
            status_text="Analysis completed.",
            analysis_report=json.dumps(report),
        )

    async def _update(self, event_id: str, **values: Any) -> bool:
        values["updated_at"] = int(time.time())
        assignments = ", ".join(f"{col} = ?" for col in values)
        params = [*values.values(), event_id]

        async with self._db.connection() as conn:
            await conn.execute(f"UPDATE ANALYSIS_EVENT SET {assignments} WHERE id = ?", tuple(params))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _row_to_event(row: Sequence[Any]) -> AnalysisEvent:
        """Convert a DB row tuple into an AnalysisEvent."""
        return AnalysisEvent(
            id=row[0],
            analysis_type=row[1],
            status=row[2],
            status_text=row[3],
            error_message=row[4],
            video_url=row[5],
            image_urls=json.loads(row[6]) if row[6] else [],
            original_filename=row[7],
            content_type=row[8],
            image_count=row[9] or 0,
            analysis_report=json.loads(row[10]) if row[10] else None,
            created_at=row[11],
            updated_at=row[12],
        )
