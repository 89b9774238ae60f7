"""In-memory job record store."""

import asyncio

from services.bulk_jobs.errors import JobNotFoundError
from shared.models import JobRecord


class JobStore:
    """Job table keyed by job id, with one mutation lock per job.

    Records are kept for the lifetime of the process; nothing is evicted.
    Every write to a record must happen while holding ``lock(job_id)``.
    Reads are lock-free.
    """

    def __init__(self) -> None:
        self._records: dict[str, JobRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: JobRecord) -> None:
        if record.id in self._records:
            raise ValueError(f"Job {record.id} already exists")
        self._records[record.id] = record
        self._locks[record.id] = asyncio.Lock()
        self._cancel_events[record.id] = asyncio.Event()

    def get(self, job_id: str) -> JobRecord | None:
        return self._records.get(job_id)

    def require(self, job_id: str) -> JobRecord:
        record = self._records.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def snapshot(self, job_id: str) -> JobRecord:
        """Deep copy of a record, safe to hand out to callers."""
        return self.require(job_id).model_copy(deep=True)

    def records(self) -> list[JobRecord]:
        return list(self._records.values())

    def lock(self, job_id: str) -> asyncio.Lock:
        self.require(job_id)
        return self._locks[job_id]

    def cancel_event(self, job_id: str) -> asyncio.Event:
        self.require(job_id)
        return self._cancel_events[job_id]

    def attach_task(self, job_id: str, task: asyncio.Task) -> None:
        self.require(job_id)
        self._tasks[job_id] = task

    def task(self, job_id: str) -> asyncio.Task | None:
        return self._tasks.get(job_id)

    def pending_tasks(self) -> list[asyncio.Task]:
        return [task for task in self._tasks.values() if not task.done()]
