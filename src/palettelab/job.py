"""Job lifecycle, cooperative cancellation and completion events.

A job moves QUEUED -> RUNNING -> one of COMPLETED, FAILED, CANCELLED, or
straight from QUEUED to CANCELLED. Terminal states are final: the result or
error is recorded once and every further transition is rejected.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from .error_handling import InvalidTransitionError, JobCancelledError, user_message

if TYPE_CHECKING:
    from .scheduler import Scheduler
    from .request import ProcessingRequest


class JobState(Enum):
    """Lifecycle states of a job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED})


class CancelToken:
    """Shared cancellation flag checked by the pipeline at frame boundaries.

    A deadline, once armed, makes the token read as cancelled with reason
    ``"timeout"`` after it passes.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._deadline: float | None = None

    def cancel(self, reason: str = "user") -> None:
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    def set_deadline(self, seconds: float | None) -> None:
        """Arm a wall-clock budget measured from now (None disarms)."""
        with self._lock:
            self._deadline = None if seconds is None else time.monotonic() + seconds

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        deadline = self._deadline
        if deadline is not None and time.monotonic() >= deadline:
            self.cancel("timeout")
            return True
        return False

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self, context: dict | None = None) -> None:
        if self.cancelled:
            reason = self._reason or "user"
            message = "Job timed out" if reason == "timeout" else "Job cancelled"
            raise JobCancelledError(message, reason=reason, context=context)


class Job:
    """One submitter's in-flight request."""

    def __init__(self, request: "ProcessingRequest") -> None:
        self.job_id = uuid.uuid4().hex
        self.submitter_id = request.submitter_id
        self.request = request
        self.created_at = datetime.now()
        self.cancel_token = CancelToken()

        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None
        self.result: Any = None
        self.error: BaseException | None = None
        self.frames_done = 0
        self.frames_total = 0

        self._state = JobState.QUEUED
        self._lock = threading.Lock()
        self._done = threading.Event()

    def __repr__(self) -> str:
        return f"Job({self.job_id[:8]}, submitter={self.submitter_id!r}, state={self._state.value})"

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (JobState.QUEUED, JobState.RUNNING)

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    def _transition(self, allowed_from: set[JobState], target: JobState) -> None:
        # Caller holds the lock
        if self._state.is_terminal or self._state not in allowed_from:
            raise InvalidTransitionError(
                f"Cannot move job {self.job_id} from {self._state.value} to {target.value}",
                context={"job_id": self.job_id, "from": self._state.value, "to": target.value},
            )
        self._state = target

    def mark_running(self) -> None:
        with self._lock:
            self._transition({JobState.QUEUED}, JobState.RUNNING)
            self.started_at = datetime.now()

    def complete(self, result: Any) -> None:
        with self._lock:
            self._transition({JobState.RUNNING}, JobState.COMPLETED)
            self.result = result
            self._finish()

    def fail(self, error: BaseException) -> None:
        with self._lock:
            self._transition({JobState.RUNNING}, JobState.FAILED)
            self.error = error
            self._finish()

    def mark_cancelled(self, error: JobCancelledError | None = None) -> None:
        with self._lock:
            self._transition({JobState.QUEUED, JobState.RUNNING}, JobState.CANCELLED)
            if error is None:
                reason = self.cancel_token.reason or "user"
                error = JobCancelledError(reason=reason, context={"job_id": self.job_id})
            self.error = error
            self._finish()

    def _finish(self) -> None:
        self.finished_at = datetime.now()
        self._done.set()

    def update_progress(self, frames_done: int, frames_total: int) -> None:
        self.frames_done = frames_done
        self.frames_total = frames_total

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()


@dataclass
class CompletionEvent:
    """Terminal outcome delivered to the boundary."""

    job_id: str
    submitter_id: str
    state: JobState
    result: Any = None
    error: BaseException | None = None
    message: str = ""
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.COMPLETED

    @classmethod
    def from_job(cls, job: Job) -> "CompletionEvent":
        if job.state is JobState.COMPLETED:
            message = "Done"
        else:
            message = user_message(job.error) if job.error is not None else ""
        return cls(
            job_id=job.job_id,
            submitter_id=job.submitter_id,
            state=job.state,
            result=job.result,
            error=job.error,
            message=message,
            elapsed_seconds=job.elapsed_seconds,
        )


class JobHandle:
    """Caller-side view of a submitted job."""

    def __init__(self, job: Job, scheduler: "Scheduler") -> None:
        self._job = job
        self._scheduler = scheduler

    def __repr__(self) -> str:
        return f"JobHandle({self._job!r})"

    @property
    def job_id(self) -> str:
        return self._job.job_id

    @property
    def submitter_id(self) -> str:
        return self._job.submitter_id

    @property
    def state(self) -> JobState:
        return self._job.state

    @property
    def progress(self) -> tuple[int, int]:
        return self._job.frames_done, self._job.frames_total

    def position(self) -> Optional[int]:
        """1-based queue position, 0 while running, None once finished."""
        return self._scheduler.position_of(self._job)

    def cancel(self) -> bool:
        return self._scheduler.cancel_job(self._job)

    def done(self) -> bool:
        return self._job.is_done

    def wait(self, timeout: float | None = None) -> bool:
        return self._job.wait(timeout)

    def result(self, timeout: float | None = None) -> Any:
        """Block until terminal; return the result or raise the recorded error."""
        if not self._job.wait(timeout):
            raise TimeoutError(f"Job {self.job_id} still {self.state.value} after {timeout}s")
        if self._job.state is JobState.COMPLETED:
            return self._job.result
        raise self._job.error
