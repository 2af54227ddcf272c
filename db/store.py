import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

import aiosqlite

from config import settings
from core.listing import ListingRecord
from db.models import SCHEMA, EnrichmentJob, JobStatus

log = logging.getLogger(__name__)


class JobStoreUnavailable(RuntimeError):
    """The job store cannot be reached."""


class JobStore:
    def __init__(self, db_path: Path | str | None = None, ttl_seconds: int | None = None):
        path = db_path or settings.database_path
        self.db_path = Path(path) if isinstance(path, str) else path
        self.ttl = timedelta(seconds=ttl_seconds or settings.job_ttl_seconds)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._connection:
            raise JobStoreUnavailable("Job store not connected")
        return self._connection

    def _stamps(self) -> tuple[str, str]:
        now = datetime.utcnow()
        return now.isoformat(), (now + self.ttl).isoformat()

    async def _update(self, job_id: str, **fields) -> bool:
        now, expires = self._stamps()
        fields.update(updated_at=now, expires_at=expires)
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        cursor = await self.conn.execute(
            f"UPDATE jobs SET {set_clause} WHERE id = ?",
            [*fields.values(), job_id],
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    # === Writes ===

    async def create_job(self, job_id: str, total: int) -> None:
        now, expires = self._stamps()
        await self.conn.execute(
            """
            INSERT INTO jobs (id, status, total, processed, created_at, updated_at, expires_at)
            VALUES (?, ?, ?, 0, ?, ?, ?)
            """,
            (job_id, JobStatus.PENDING.value, total, now, now, expires),
        )
        await self.conn.commit()

    async def mark_active(self, job_id: str) -> bool:
        return await self._update(job_id, status=JobStatus.ACTIVE.value)

    async def update_progress(self, job_id: str, processed: int, total: int) -> bool:
        return await self._update(job_id, processed=processed, total=total)

    async def save_result(self, job_id: str, results: list[ListingRecord]) -> bool:
        return await self._update(
            job_id,
            status=JobStatus.COMPLETED.value,
            results=json.dumps([r.to_dict() for r in results], ensure_ascii=False),
        )

    async def mark_failed(self, job_id: str, error_message: str) -> bool:
        return await self._update(
            job_id,
            status=JobStatus.FAILED.value,
            error_message=error_message,
        )

    # === Reads ===

    async def get_job(self, job_id: str) -> EnrichmentJob | None:
        """Job by id, or ``None`` when unknown or expired."""
        try:
            cursor = await self.conn.execute(
                "SELECT * FROM jobs WHERE id = ? AND expires_at > ?",
                (job_id, datetime.utcnow().isoformat()),
            )
            row = await cursor.fetchone()
        except (sqlite3.Error, ValueError) as e:
            raise JobStoreUnavailable(f"Job store read failed: {e}") from e
        return self._row_to_job(row) if row else None

    async def cleanup_expired(self) -> int:
        cursor = await self.conn.execute(
            "DELETE FROM jobs WHERE expires_at <= ?",
            (datetime.utcnow().isoformat(),),
        )
        await self.conn.commit()
        return cursor.rowcount

    def _row_to_job(self, row: aiosqlite.Row) -> EnrichmentJob:
        return EnrichmentJob(
            id=row["id"],
            status=JobStatus(row["status"]),
            total=row["total"],
            processed=row["processed"],
            results=[ListingRecord.from_dict(r) for r in json.loads(row["results"])],
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )
