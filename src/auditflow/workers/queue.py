"""In-process audit job queue with a fixed pool of workers.

Jobs wait in a single FIFO and are picked up by ``concurrency`` worker tasks.
Each job runs through ``queued -> running -> completed|failed`` and produces
exactly one terminal event on the bus. Nothing is persisted here: a process
crash loses whatever is still queued or running.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from auditflow.config import settings
from auditflow.errors.exceptions import AuditTimeoutError, PersistenceError
from auditflow.events.bus import TerminalEventBus
from auditflow.logging_config import bind_job_context, clear_job_context
from auditflow.models.enums import AuditStatus
from auditflow.models.events import AuditCompleted, AuditFailed, TerminalEvent
from auditflow.storage.gateway import StorageGateway
from auditflow.workers.executor import AuditExecutor

logger = logging.getLogger(__name__)


@dataclass
class AuditJob:
    audit_id: str
    user_id: str
    url: str
    client_name: str = "Default"
    options: dict[str, Any] = field(default_factory=dict)
    status: AuditStatus = AuditStatus.QUEUED
    started_at: datetime | None = None
    finished_at: datetime | None = None


class AuditJobQueue:
    def __init__(
        self,
        executor: AuditExecutor,
        bus: TerminalEventBus,
        storage: StorageGateway | None = None,
        concurrency: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._executor = executor
        self._bus = bus
        self._storage = storage
        self.concurrency = settings.queue_concurrency if concurrency is None else concurrency
        self.timeout_ms = settings.queue_timeout_ms if timeout_ms is None else timeout_ms
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.timeout_ms < 1:
            raise ValueError("timeout_ms must be positive")

        self._pending: asyncio.Queue[AuditJob] = asyncio.Queue()
        self._jobs: dict[str, AuditJob] = {}
        self._workers: list[asyncio.Task] = []
        self._leaked: set[asyncio.Task] = set()
        self._accepting = True

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"audit-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(
            "Audit queue started (concurrency=%d, timeout_ms=%d)",
            self.concurrency, self.timeout_ms,
        )

    def submit(self, job: AuditJob) -> str:
        """Enqueue an admitted job and return its audit id. Never blocks."""
        if not self._accepting:
            raise RuntimeError("audit queue is closed")
        if job.audit_id in self._jobs:
            raise ValueError(f"audit {job.audit_id} already submitted")
        job.status = AuditStatus.QUEUED
        self._jobs[job.audit_id] = job
        self._pending.put_nowait(job)
        logger.info("Audit %s queued (user=%s, depth=%d)", job.audit_id, job.user_id, self._pending.qsize())
        return job.audit_id

    def get(self, audit_id: str) -> AuditJob | None:
        return self._jobs.get(audit_id)

    def status(self, audit_id: str) -> AuditStatus | None:
        job = self._jobs.get(audit_id)
        return job.status if job else None

    @property
    def depth(self) -> int:
        """Jobs waiting for a worker."""
        return self._pending.qsize()

    @property
    def running(self) -> int:
        return sum(1 for j in self._jobs.values() if j.status == AuditStatus.RUNNING)

    async def join(self) -> None:
        """Wait until every submitted job has reached a terminal state."""
        await self._pending.join()

    async def close(self, drain: bool = True, timeout: float | None = None) -> None:
        """Stop accepting jobs, optionally wait for the backlog, then stop workers."""
        self._accepting = False
        if drain and self._workers:
            try:
                await asyncio.wait_for(self.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Audit queue drain timed out with %d jobs waiting", self.depth)
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        for task in list(self._leaked):
            task.cancel()
        logger.info("Audit queue stopped")

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._pending.get()
            try:
                await self._run(job)
            except Exception:
                logger.exception("Worker %d crashed on audit %s", index, job.audit_id)
            finally:
                self._jobs.pop(job.audit_id, None)
                self._pending.task_done()

    async def _run(self, job: AuditJob) -> None:
        bind_job_context(job.audit_id, job.user_id)
        try:
            job.status = AuditStatus.RUNNING
            job.started_at = datetime.now(timezone.utc)
            await self._mark_running(job)
            logger.info("Audit %s started: %s", job.audit_id, job.url)

            event = await self._execute(job)

            job.status = event.status
            job.finished_at = event.occurred_at
            if isinstance(event, AuditCompleted):
                logger.info("Audit %s completed", job.audit_id)
            else:
                logger.warning("Audit %s failed: %s", job.audit_id, event.error)
            self._bus.publish(event)
        finally:
            clear_job_context()

    async def _execute(self, job: AuditJob) -> TerminalEvent:
        task = asyncio.ensure_future(self._executor(job.url, dict(job.options)))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            # Best-effort cancellation; an executor that ignores it keeps running
            # detached but no longer holds this worker.
            task.cancel()
            self._leaked.add(task)
            task.add_done_callback(self._reap)
            error = AuditTimeoutError(self.timeout_ms)
            return AuditFailed(
                audit_id=job.audit_id,
                user_id=job.user_id,
                url=job.url,
                error=error.message,
                timed_out=True,
            )

        if task.cancelled():
            return AuditFailed(
                audit_id=job.audit_id,
                user_id=job.user_id,
                url=job.url,
                error="Audit executor was cancelled",
            )

        exc = task.exception()
        if exc is not None:
            logger.debug("Executor raised for %s", job.audit_id, exc_info=exc)
            return AuditFailed(
                audit_id=job.audit_id,
                user_id=job.user_id,
                url=job.url,
                error=str(exc) or exc.__class__.__name__,
            )

        results = task.result()
        if not isinstance(results, dict):
            return AuditFailed(
                audit_id=job.audit_id,
                user_id=job.user_id,
                url=job.url,
                error=f"Executor returned {type(results).__name__}, expected a results object",
            )
        return AuditCompleted(
            audit_id=job.audit_id,
            user_id=job.user_id,
            url=job.url,
            results=results,
        )

    async def _mark_running(self, job: AuditJob) -> None:
        if self._storage is None:
            return
        try:
            await self._storage.update_audit(job.audit_id, status=AuditStatus.RUNNING)
        except PersistenceError as exc:
            logger.error("Could not mark audit %s running: %s", job.audit_id, exc)

    def _reap(self, task: asyncio.Task) -> None:
        self._leaked.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Timed-out executor finished with error: %s", task.exception())
