"""In-process background job queue for analysis runs.

One message per enqueue, consumed by a fixed pool of asyncio worker tasks.
Jobs are not persisted and are never retried.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from ulid import ULID

from riskaudit.errors import JobQueueClosedError
from riskaudit.models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisJob:
    inspection_id: str
    photo_ids: tuple[str, ...]
    acting_user_id: str
    job_id: str = field(default_factory=lambda: str(ULID()))


class JobState(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class JobRecord:
    job: AnalysisJob
    state: JobState = JobState.QUEUED
    enqueued_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    result: Any = None
    error: str | None = None


JobHandler = Callable[[str, list[str], str], Awaitable[Any]]


class JobQueue(ABC):
    @abstractmethod
    async def enqueue(self, inspection_id: str, photo_ids: list[str], acting_user_id: str) -> str:
        """Queue an analysis job and return its id."""
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> JobRecord | None:
        ...


class InProcessJobQueue(JobQueue):
    """asyncio.Queue with ``worker_count`` consumers calling ``handler`` once per job.

    A job that has started is never cancelled by ``stop``; it always runs to
    the end so the inspection reaches a terminal status.
    """

    def __init__(self, handler: JobHandler, worker_count: int = 2, history_size: int = 1000):
        self.handler = handler
        self.worker_count = max(1, worker_count)
        self.history_size = history_size
        self._queue: asyncio.Queue[AnalysisJob | None] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._records: OrderedDict[str, JobRecord] = OrderedDict()
        self._closed = False

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._closed = False
        for i in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._worker(i), name=f"analysis-worker-{i}"))
        logger.info("Job queue started with %d workers", self.worker_count)

    async def enqueue(self, inspection_id: str, photo_ids: list[str], acting_user_id: str) -> str:
        if self._closed:
            raise JobQueueClosedError("Job queue is shutting down")
        job = AnalysisJob(inspection_id, tuple(photo_ids), acting_user_id)
        self._remember(JobRecord(job=job))
        await self._queue.put(job)
        logger.info(
            "Enqueued job %s for inspection %s (%d photos)", job.job_id, inspection_id, len(photo_ids),
        )
        return job.job_id

    def get_job(self, job_id: str) -> JobRecord | None:
        return self._records.get(job_id)

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """Close intake and stop the workers once their current job is done.

        With ``drain`` every queued job is processed first. Without it, jobs
        that have not started are discarded and recorded as failed.
        """
        self._closed = True
        if not self._workers:
            return
        if not drain:
            self._discard_queued()
        # Sentinels queue up behind any remaining jobs.
        for _ in self._workers:
            await self._queue.put(None)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Job queue stopped")

    def _discard_queued(self) -> None:
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            if job is not None:
                record = self._records.get(job.job_id)
                if record is not None:
                    record.state = JobState.FAILED
                    record.error = "discarded at shutdown"
                    record.finished_at = utcnow()
                logger.warning("Discarded job %s for inspection %s at shutdown", job.job_id, job.inspection_id)
            self._queue.task_done()

    def _remember(self, record: JobRecord) -> None:
        self._records[record.job.job_id] = record
        while len(self._records) > self.history_size:
            self._records.popitem(last=False)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: AnalysisJob) -> None:
        record = self._records.get(job.job_id) or JobRecord(job=job)
        record.state = JobState.RUNNING
        try:
            record.result = await self.handler(job.inspection_id, list(job.photo_ids), job.acting_user_id)
            record.state = JobState.SUCCEEDED
            logger.info("Job %s finished: %s", job.job_id, record.result)
        except asyncio.CancelledError:
            record.state = JobState.FAILED
            record.error = "cancelled"
            raise
        except Exception as e:
            # Handler failures are recorded, not retried.
            record.state = JobState.FAILED
            record.error = str(e)
            logger.exception("Job %s failed", job.job_id)
        finally:
            record.finished_at = utcnow()
