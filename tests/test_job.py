"""Tests for job lifecycle and cancellation tokens."""

import threading

import pytest

from palettelab.error_handling import InvalidTransitionError, JobCancelledError
from palettelab.job import CancelToken, CompletionEvent, Job, JobState
from palettelab.request import ProcessingRequest


@pytest.fixture
def job():
    return Job(ProcessingRequest(submitter_id="alice", sources=(b"data",)))


class TestCancelToken:
    """Tests for CancelToken."""

    def test_starts_clear(self):
        token = CancelToken()
        assert not token.cancelled
        assert token.reason is None
        token.raise_if_cancelled()

    def test_cancel_records_first_reason(self):
        token = CancelToken()
        token.cancel("user")
        token.cancel("timeout")
        assert token.cancelled
        assert token.reason == "user"

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.cancel()
        with pytest.raises(JobCancelledError) as exc_info:
            token.raise_if_cancelled({"frame": 3})
        assert exc_info.value.context == {"frame": 3}

    def test_deadline(self):
        token = CancelToken()
        token.set_deadline(60)
        assert not token.cancelled
        token.set_deadline(0)
        assert token.cancelled
        assert token.reason == "timeout"

    def test_disarmed_deadline(self):
        token = CancelToken()
        token.set_deadline(None)
        assert not token.cancelled


class TestJobTransitions:
    """Tests for the job state machine."""

    def test_initial_state(self, job):
        assert job.state is JobState.QUEUED
        assert job.submitter_id == "alice"
        assert len(job.job_id) == 32
        assert job.is_active
        assert not job.is_done

    def test_happy_path(self, job):
        job.mark_running()
        assert job.started_at is not None
        job.complete("result")

        assert job.state is JobState.COMPLETED
        assert job.result == "result"
        assert job.is_done
        assert job.wait(timeout=0)

    def test_failure(self, job):
        job.mark_running()
        error = RuntimeError("bad")
        job.fail(error)
        assert job.state is JobState.FAILED
        assert job.error is error

    def test_cancel_from_queue(self, job):
        job.cancel_token.cancel()
        job.mark_cancelled()
        assert job.state is JobState.CANCELLED
        assert isinstance(job.error, JobCancelledError)

    @pytest.mark.parametrize("finish", ["complete", "fail", "cancel"])
    def test_terminal_states_are_final(self, job, finish):
        job.mark_running()
        if finish == "complete":
            job.complete(1)
        elif finish == "fail":
            job.fail(RuntimeError("x"))
        else:
            job.mark_cancelled()

        with pytest.raises(InvalidTransitionError):
            job.complete(2)
        with pytest.raises(InvalidTransitionError):
            job.mark_cancelled()
        with pytest.raises(InvalidTransitionError):
            job.mark_running()

    def test_cannot_complete_from_queue(self, job):
        with pytest.raises(InvalidTransitionError):
            job.complete(1)

    def test_single_winner_under_contention(self, job):
        job.mark_running()
        outcomes = []

        def finish(value):
            try:
                job.complete(value)
                outcomes.append(value)
            except InvalidTransitionError:
                pass

        threads = [threading.Thread(target=finish, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(outcomes) == 1
        assert job.result == outcomes[0]


class TestCompletionEvent:
    """Tests for CompletionEvent."""

    def test_completed_event(self, job):
        job.mark_running()
        job.complete("ok")
        event = CompletionEvent.from_job(job)
        assert event.succeeded
        assert event.result == "ok"

    def test_timeout_message(self, job):
        job.mark_running()
        job.mark_cancelled(JobCancelledError("Job timed out", reason="timeout"))
        event = CompletionEvent.from_job(job)
        assert not event.succeeded
        assert event.message == "Your job took too long and was stopped."
