"""Persistent job store with SQLite backend.

Each job owns an ordered list of typed action records. Webhook bindings are
one kind of record; anything else stored on a job is carried through
untouched.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from buildrelay.errors import ConfigUnavailable, InvalidInput, PersistenceFailure
from buildrelay.models import ActionRecord, Job
from buildrelay.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    name TEXT PRIMARY KEY COLLATE NOCASE,
    disabled INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS job_actions (
    job_name TEXT NOT NULL COLLATE NOCASE,
    position INTEGER NOT NULL,
    kind TEXT NOT NULL,
    data TEXT NOT NULL,
    PRIMARY KEY (job_name, position)
);
"""


class JobStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    @property
    def available(self) -> bool:
        return self._db is not None

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise ConfigUnavailable("Job store is not loaded")
        return self._db

    async def add_job(self, name: str, disabled: bool = False) -> Job:
        """Create a job, or return the existing one with the same name."""
        if not name or not name.strip():
            raise InvalidInput("Job name is empty", field="name")
        existing = await self.get_job(name)
        if existing is not None:
            return existing
        db = self._conn()
        now = datetime.now(timezone.utc).isoformat()
        try:
            await db.execute(
                "INSERT INTO jobs (name, disabled, created_at) VALUES (?, ?, ?)",
                (name, int(disabled), now),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceFailure(f"Cannot create job {name}: {exc}") from exc
        log.info("job_created", job=name)
        return Job(name=name, disabled=disabled)

    async def set_disabled(self, name: str, disabled: bool) -> bool:
        db = self._conn()
        try:
            cursor = await db.execute(
                "UPDATE jobs SET disabled = ? WHERE name = ?", (int(disabled), name)
            )
            await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceFailure(f"Cannot update job {name}: {exc}") from exc
        return cursor.rowcount > 0

    async def get_job(self, name: str) -> Job | None:
        """Look up a job by case-insensitive name, with its actions loaded."""
        db = self._conn()
        cursor = await db.execute(
            "SELECT name, disabled FROM jobs WHERE name = ?",
            (name,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        job = Job(name=row[0], disabled=bool(row[1]))
        job.actions = await self.load_actions(job.name)
        return job

    async def list_jobs(self) -> list[Job]:
        db = self._conn()
        cursor = await db.execute("SELECT name, disabled FROM jobs ORDER BY name")
        rows = await cursor.fetchall()
        jobs = []
        for row in rows:
            job = Job(name=row[0], disabled=bool(row[1]))
            job.actions = await self.load_actions(job.name)
            jobs.append(job)
        return jobs

    async def load_actions(self, job_name: str) -> list[ActionRecord]:
        db = self._conn()
        cursor = await db.execute(
            "SELECT kind, data FROM job_actions WHERE job_name = ? ORDER BY position",
            (job_name,),
        )
        rows = await cursor.fetchall()
        return [ActionRecord(kind=row[0], data=json.loads(row[1])) for row in rows]

    async def save_actions(self, job_name: str, actions: list[ActionRecord]) -> None:
        """Replace a job's action list in a single transaction."""
        db = self._conn()
        try:
            await db.execute("DELETE FROM job_actions WHERE job_name = ?", (job_name,))
            await db.executemany(
                "INSERT INTO job_actions (job_name, position, kind, data) VALUES (?, ?, ?, ?)",
                [
                    (job_name, position, action.kind, json.dumps(action.data, sort_keys=True))
                    for position, action in enumerate(actions)
                ],
            )
            await db.commit()
        except aiosqlite.Error as exc:
            await db.rollback()
            raise PersistenceFailure(f"Cannot save job {job_name}: {exc}") from exc
