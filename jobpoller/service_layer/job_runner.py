"""
Run a job and decide what happens to it afterwards.

The post-execution behavior depends on the job kind and lives behind the
RecurrencePolicy interface:

- recurring jobs are marked completed (or failed) and a fresh pending copy
  is created either way, so the job recurs unconditionally. The copy is
  eligible on the very next poll; there is no next-run timestamp.
- one-time jobs are marked completed on success. On failure nothing is
  written: the job stays pending and is retried on every poll, with no
  attempt counter, backoff or cap.

Every error stops here. It is logged and never raised to the scheduler.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import threading
from typing import Any, Dict, Optional

from jobpoller.domain import Job, JobKind, JobStatus
from jobpoller.errors import ExecutionTimeout, JobPollerError
from jobpoller.repository import JobStore

from .executor import JobExecutor

LOG = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    job_id: str
    succeeded: bool
    error: Optional[BaseException] = None
    successor: Optional[Job] = None


class RecurrencePolicy(ABC):
    """What to write to the store after a job has run."""

    def __init__(self, store: JobStore):
        self.store = store

    @abstractmethod
    def on_success(self, job: Job) -> Optional[Job]:
        """Apply the policy after a successful run; returns any successor job."""

    @abstractmethod
    def on_failure(self, job: Job, error: BaseException) -> Optional[Job]:
        """Apply the policy after a failed run; returns any successor job."""

    def _set_status(self, job: Job, status: JobStatus) -> None:
        try:
            self.store.update_by_id(job.id, {"status": status})
            LOG.info("Job %s marked %s", job.id, status.value)
        except Exception as error:  # pylint: disable=broad-except
            LOG.error("Failed to update job %s: %s", job.id, error)

    def _spawn_successor(self, job: Job) -> Optional[Job]:
        try:
            successor = self.store.create(job.to_insert())
        except Exception as error:  # pylint: disable=broad-except
            LOG.error("Failed to create successor of job %s: %s", job.id, error)
            return None
        LOG.info("Job %s recurs as %s", job.id, successor.id)
        return successor


class DuplicatingRecurrence(RecurrencePolicy):
    """Close the job with its outcome and always create a pending copy."""

    def on_success(self, job: Job) -> Optional[Job]:
        self._set_status(job, JobStatus.COMPLETED)
        return self._spawn_successor(job)

    def on_failure(self, job: Job, error: BaseException) -> Optional[Job]:
        self._set_status(job, JobStatus.FAILED)
        return self._spawn_successor(job)


class OneTimeCompletion(RecurrencePolicy):
    """Complete on success; leave the job pending on failure."""

    def on_success(self, job: Job) -> Optional[Job]:
        self._set_status(job, JobStatus.COMPLETED)
        return None

    def on_failure(self, job: Job, error: BaseException) -> Optional[Job]:
        # TODO: failed one-time jobs are retried forever; decide whether they
        # need an attempt counter and a terminal failed state.
        LOG.info("Job %s left pending for retry", job.id)
        return None


def _call_with_deadline(func, job: Job, timeout: Optional[float]) -> Any:
    """Run func(job), giving up after timeout seconds."""
    if not timeout:
        return func(job)

    result: Dict[str, Any] = {}

    def _target():
        try:
            result["value"] = func(job)
        except BaseException as error:  # pylint: disable=broad-except
            result["error"] = error

    worker = threading.Thread(
        target=_target, name="job-{}".format(job.id), daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise ExecutionTimeout(job.id, timeout)
    if "error" in result:
        raise result["error"]
    return result.get("value")


class JobRunner:
    """
    Execute jobs and apply the policy for their kind.

    Args:
        executor: Routes the job to its handler
        store: Job store written by the default policies
        timeout: Per-job execution deadline in seconds (None = no deadline)
        policies: Override the policy per job kind
    """

    def __init__(self, executor: JobExecutor, store: JobStore,
                 timeout: Optional[float] = None,
                 policies: Optional[Dict[JobKind, RecurrencePolicy]] = None):
        self.executor = executor
        self.store = store
        self.timeout = timeout
        self.policies = {
            JobKind.RECURRING: DuplicatingRecurrence(store),
            JobKind.ONE_TIME: OneTimeCompletion(store),
        }
        if policies:
            self.policies.update(policies)

    def run(self, job: Job) -> RunOutcome:
        if job.kind == JobKind.RECURRING:
            return self.run_cron_job(job)
        return self.run_one_time_job(job)

    def run_cron_job(self, job: Job) -> RunOutcome:
        return self._run(job, self.policies[JobKind.RECURRING])

    def run_one_time_job(self, job: Job) -> RunOutcome:
        return self._run(job, self.policies[JobKind.ONE_TIME])

    def _run(self, job: Job, policy: RecurrencePolicy) -> RunOutcome:
        LOG.info("Running job %s", job)
        try:
            _call_with_deadline(self.executor.execute, job, self.timeout)
        except Exception as error:  # pylint: disable=broad-except
            LOG.error("Failed to run job %s: %s", job.id, error,
                      exc_info=not isinstance(error, JobPollerError))
            successor = self._apply(policy.on_failure, job, error)
            return RunOutcome(job.id, False, error=error, successor=successor)

        successor = self._apply(policy.on_success, job)
        return RunOutcome(job.id, True, successor=successor)

    @staticmethod
    def _apply(func, *args) -> Optional[Job]:
        try:
            return func(*args)
        except Exception:  # pylint: disable=broad-except
            LOG.exception("recurrence policy failed for job %s", args[0].id)
            return None
