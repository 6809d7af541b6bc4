"""Build queue backed by SQLite.

This is the local implementation of the scheduler contract the trigger
submitter talks to: accept a job, a quiet period and an ordered list of
causes, and hand back a queue item (or None when nothing could be queued).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol, Sequence

import aiosqlite

from buildrelay.errors import ConfigUnavailable, PersistenceFailure
from buildrelay.models import Cause, UserIdCause, cause_from_dict
from buildrelay.store.jobs import JobStore
from buildrelay.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    job_name TEXT NOT NULL COLLATE NOCASE,
    causes TEXT NOT NULL,
    not_before TEXT NOT NULL,
    state TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL
);
"""


@dataclass
class QueueItem:
    id: int
    job_name: str
    causes: list[Cause] = field(default_factory=list)
    not_before: datetime | None = None
    state: str = "pending"

    @property
    def url(self) -> str:
        return f"queue/item/{self.id}/"

    @property
    def started_by(self) -> str:
        for cause in self.causes:
            if isinstance(cause, UserIdCause) and cause.user_id:
                return cause.user_id
        return ""


class Scheduler(Protocol):
    async def schedule(
        self, job_name: str, delay_seconds: float, causes: Sequence[Cause]
    ) -> QueueItem | None: ...


class BuildQueue:
    def __init__(self, jobs: JobStore, data_dir: Path) -> None:
        self._jobs = jobs
        self._data_dir = data_dir
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._data_dir / "queue.db"))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        log.info("build_queue_started")

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise ConfigUnavailable("Build queue is not started")
        return self._db

    async def schedule(
        self, job_name: str, delay_seconds: float, causes: Sequence[Cause]
    ) -> QueueItem | None:
        """Queue a build. Returns None for a disabled job."""
        db = self._conn()
        job = await self._jobs.get_job(job_name)
        if job is None or job.disabled:
            log.info("build_not_queued", job=job_name, reason="missing" if job is None else "disabled")
            return None

        encoded = json.dumps([c.to_dict() for c in causes], sort_keys=True)

        # Fold identical pending requests into the existing item
        cursor = await db.execute(
            "SELECT id, not_before FROM queue "
            "WHERE job_name = ? AND causes = ? AND state = 'pending' "
            "ORDER BY id LIMIT 1",
            (job.name, encoded),
        )
        row = await cursor.fetchone()
        if row is not None:
            log.info("build_already_queued", job=job.name, item=row[0])
            return QueueItem(
                id=row[0],
                job_name=job.name,
                causes=list(causes),
                not_before=datetime.fromisoformat(row[1]),
            )

        now = datetime.now(timezone.utc)
        not_before = now + timedelta(seconds=max(delay_seconds, 0))
        try:
            cursor = await db.execute(
                "INSERT INTO queue (job_name, causes, not_before, created_at) VALUES (?, ?, ?, ?)",
                (job.name, encoded, not_before.isoformat(), now.isoformat()),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceFailure(f"Cannot queue build for {job.name}: {exc}") from exc

        item = QueueItem(
            id=cursor.lastrowid or 0,
            job_name=job.name,
            causes=list(causes),
            not_before=not_before,
        )
        log.info("build_queued", job=job.name, item=item.id, delay=delay_seconds)
        return item

    async def get_item(self, item_id: int) -> QueueItem | None:
        db = self._conn()
        cursor = await db.execute(
            "SELECT id, job_name, causes, not_before, state FROM queue WHERE id = ?",
            (item_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_item(row)

    async def pending(self, job_name: str) -> list[QueueItem]:
        db = self._conn()
        cursor = await db.execute(
            "SELECT id, job_name, causes, not_before, state FROM queue "
            "WHERE job_name = ? AND state = 'pending' ORDER BY id",
            (job_name,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_item(row) for row in rows]

    async def mark_completed(self, item_id: int) -> bool:
        db = self._conn()
        cursor = await db.execute(
            "UPDATE queue SET state = 'completed' WHERE id = ?", (item_id,)
        )
        await db.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_item(row: tuple) -> QueueItem:
        return QueueItem(
            id=row[0],
            job_name=row[1],
            causes=[cause_from_dict(c) for c in json.loads(row[2])],
            not_before=datetime.fromisoformat(row[3]),
            state=row[4],
        )
