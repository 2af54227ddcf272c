from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from core.listing import ListingRecord


class JobStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class EnrichmentJob:
    id: str
    status: JobStatus
    total: int
    processed: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    results: list[ListingRecord] = field(default_factory=list)
    error_message: str | None = None

    @property
    def progress(self) -> int:
        """Completion percentage."""
        if not self.total:
            return 100 if self.status.terminal else 0
        return round(self.processed / self.total * 100)


SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'pending',
    total INTEGER NOT NULL DEFAULT 0,
    processed INTEGER NOT NULL DEFAULT 0,
    results TEXT NOT NULL DEFAULT '[]',
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_expires_at ON jobs(expires_at);
"""
