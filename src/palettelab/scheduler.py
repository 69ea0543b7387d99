"""Job scheduler with a global concurrency ceiling and per-submitter exclusivity.

At most ``MAX_CONCURRENT_JOBS`` jobs run at once. A submission that finds no
free slot waits in a FIFO queue; it is never dropped and ``submit`` never
blocks. Each submitter may own one queued or running job at a time.

When a running job finishes its slot is handed straight to the oldest queued
job, or released if the queue is empty, so the ceiling holds at every point.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .config import DEFAULT_SCHEDULER_CONFIG, SchedulerConfig
from .error_handling import (
    AlreadyRunningError,
    InternalFailureError,
    JobCancelledError,
    PaletteLabError,
    QueueFullError,
    SchedulerClosedError,
    handle_error,
)
from .job import CompletionEvent, Job, JobHandle, JobState
from .pipeline import FramePipeline
from .request import ProcessingRequest
from .variants import execute_request

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[CompletionEvent], None]


@dataclass
class SchedulerStats:
    """Point-in-time counters for monitoring."""

    running: int = 0
    queued: int = 0
    submitted: int = 0
    rejected: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    max_concurrent_jobs: int = 0


class Scheduler:
    """Admits, queues, runs and reports processing jobs."""

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        pipeline: FramePipeline | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        config = config or DEFAULT_SCHEDULER_CONFIG
        # Read once; later config changes do not affect a live scheduler
        self.max_concurrent_jobs = config.MAX_CONCURRENT_JOBS
        self.job_timeout_seconds = config.JOB_TIMEOUT_SECONDS
        self.max_queue_size = config.MAX_QUEUE_SIZE

        self._pipeline = pipeline or FramePipeline()
        self._on_complete = on_complete

        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(self.max_concurrent_jobs)
        self._queue: deque[Job] = deque()
        self._active: dict[str, Job] = {}
        self._running: dict[str, Job] = {}
        self._closed = False
        self._stats = SchedulerStats(max_concurrent_jobs=self.max_concurrent_jobs)

        self._pool = ThreadPoolExecutor(
            max_workers=self.max_concurrent_jobs, thread_name_prefix="palettelab-job"
        )

        logger.info(
            f"🚀 Scheduler started: max_concurrent_jobs={self.max_concurrent_jobs}, "
            f"timeout={self.job_timeout_seconds}, max_queue_size={self.max_queue_size or 'unbounded'}"
        )

    def __enter__(self) -> "Scheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

    # Admission

    def submit(self, request: ProcessingRequest) -> JobHandle:
        """Admit ``request``: run it now if a slot is free, otherwise queue it.

        Raises:
            AlreadyRunningError: If the submitter already has a queued or running job
            QueueFullError: If a bounded queue is at capacity
            SchedulerClosedError: If the scheduler has been shut down
        """
        with self._lock:
            if self._closed:
                raise SchedulerClosedError("Scheduler is shut down")

            submitter_id = request.submitter_id
            existing = self._active.get(submitter_id)
            if existing is not None and existing.is_active:
                self._stats.rejected += 1
                logger.info(f"⛔ Rejected submission from {submitter_id}: {existing!r} still active")
                raise AlreadyRunningError(
                    f"Submitter {submitter_id} already has job {existing.job_id} {existing.state.value}",
                    context={"submitter_id": submitter_id, "job_id": existing.job_id},
                )

            job = Job(request)
            if self._slots.acquire(blocking=False):
                self._active[submitter_id] = job
                self._start(job)
            else:
                if self.max_queue_size and len(self._queue) >= self.max_queue_size:
                    self._stats.rejected += 1
                    raise QueueFullError(
                        f"Queue is full ({self.max_queue_size} waiting)",
                        context={"submitter_id": submitter_id, "queued": len(self._queue)},
                    )
                self._active[submitter_id] = job
                self._queue.append(job)
                logger.info(f"⏳ Queued {job!r} at position {len(self._queue)}")

            self._stats.submitted += 1
            return JobHandle(job, self)

    def _start(self, job: Job) -> None:
        # Caller holds the lock and owns a slot for this job
        job.mark_running()
        job.cancel_token.set_deadline(self.job_timeout_seconds)
        self._running[job.job_id] = job
        logger.info(f"▶️  Running {job!r} ({len(self._running)}/{self.max_concurrent_jobs} slots)")
        self._pool.submit(self._run, job)

    # Execution

    def _run(self, job: Job) -> None:
        try:
            result = execute_request(
                job.request, self._pipeline, job.cancel_token, job.update_progress
            )
            job.complete(result)
        except JobCancelledError as e:
            logger.info(f"🛑 {job!r} stopped: {e.reason}")
            job.mark_cancelled(e)
        except InternalFailureError as e:
            logger.error(f"🚨 {job!r} failed internally: {e}", exc_info=True)
            job.fail(e)
        except PaletteLabError as e:
            logger.warning(f"❌ {job!r} failed: {e}")
            job.fail(e)
        except Exception as e:
            error = handle_error(
                e,
                "run job",
                InternalFailureError,
                context={"job_id": job.job_id, "submitter_id": job.submitter_id},
                logger=logger,
                reraise=False,
                exc_info=True,
            )
            job.fail(error)
        finally:
            self._finish(job)
            self._deliver(job)

    def _finish(self, job: Job) -> None:
        """Drop the job's bookkeeping and pass its slot on exactly once."""
        with self._lock:
            self._running.pop(job.job_id, None)
            if self._active.get(job.submitter_id) is job:
                del self._active[job.submitter_id]
            self._count_outcome(job)

            next_job = self._queue.popleft() if self._queue else None
            if next_job is not None:
                self._start(next_job)
            else:
                self._slots.release()

    def _count_outcome(self, job: Job) -> None:
        # Caller holds the lock
        if job.state is JobState.COMPLETED:
            self._stats.completed += 1
        elif job.state is JobState.FAILED:
            self._stats.failed += 1
        elif job.state is JobState.CANCELLED:
            self._stats.cancelled += 1

    def _deliver(self, job: Job) -> None:
        if self._on_complete is None:
            return
        try:
            self._on_complete(CompletionEvent.from_job(job))
        except Exception as e:
            logger.error(f"🚨 Completion callback failed for {job!r}: {e}", exc_info=True)

    # Cancellation and queries

    def cancel(self, submitter_id: str) -> bool:
        """Cancel the submitter's job. Returns False if they have none."""
        with self._lock:
            job = self._active.get(submitter_id)
        if job is None:
            return False
        return self.cancel_job(job)

    def cancel_job(self, job: Job, reason: str = "user") -> bool:
        """Cancel ``job`` if it is still queued or running.

        A queued job is finished as CANCELLED immediately and never reaches
        the pipeline. A running job is signalled and stops at its next frame
        boundary.
        """
        with self._lock:
            if self._active.get(job.submitter_id) is not job or not job.is_active:
                return False
            job.cancel_token.cancel(reason)
            if job.state is not JobState.QUEUED:
                logger.info(f"🛑 Cancellation requested for running {job!r}")
                return True
            self._queue.remove(job)
            del self._active[job.submitter_id]
            job.mark_cancelled()
            self._count_outcome(job)

        logger.info(f"🛑 Cancelled queued {job!r}")
        self._deliver(job)
        return True

    def position(self, submitter_id: str) -> int | None:
        """1-based queue position, 0 while running, None when the submitter is idle."""
        with self._lock:
            job = self._active.get(submitter_id)
            return self._position_locked(job) if job is not None else None

    def position_of(self, job: Job) -> int | None:
        with self._lock:
            if self._active.get(job.submitter_id) is not job or not job.is_active:
                return None
            return self._position_locked(job)

    def _position_locked(self, job: Job) -> int | None:
        if job.state is JobState.RUNNING:
            return 0
        try:
            return self._queue.index(job) + 1
        except ValueError:
            return None

    def active_job(self, submitter_id: str) -> JobHandle | None:
        with self._lock:
            job = self._active.get(submitter_id)
        return JobHandle(job, self) if job is not None and job.is_active else None

    def running_count(self) -> int:
        with self._lock:
            return len(self._running)

    def queued_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def stats(self) -> SchedulerStats:
        with self._lock:
            snapshot = SchedulerStats(**vars(self._stats))
            snapshot.running = len(self._running)
            snapshot.queued = len(self._queue)
            return snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    # Shutdown

    def shutdown(self, wait: bool = True, cancel_pending: bool = True) -> None:
        """Stop accepting work.

        Queued jobs are cancelled and running jobs signalled. With
        ``cancel_pending=False`` and ``wait=True`` queued and running jobs
        are allowed to finish instead.
        """
        drain = wait and not cancel_pending
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = [] if drain else list(self._queue)
            if not drain:
                self._queue.clear()
                for job in pending:
                    del self._active[job.submitter_id]
            running = list(self._running.values())

        logger.info(f"🧹 Scheduler shutting down: {len(running)} running, {len(pending)} queued")

        for job in pending:
            job.cancel_token.cancel("shutdown")
            job.mark_cancelled(JobCancelledError("Scheduler shut down", reason="shutdown"))
            with self._lock:
                self._count_outcome(job)
            self._deliver(job)

        if drain:
            while True:
                with self._lock:
                    remaining = list(self._active.values())
                if not remaining:
                    break
                for job in remaining:
                    job.wait()
        else:
            for job in running:
                job.cancel_token.cancel("shutdown")

        self._pool.shutdown(wait=wait)
