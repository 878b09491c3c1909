"""
The poller: on every tick, list pending jobs and feed them to the runner.

Ticks fire on wall-clock boundaries of the interval (every 5 minutes by
default: 12:00, 12:05, ...). Ticks never overlap: a tick that fires while
the previous one is still running is skipped. Each job is claimed through a
lease before it runs so that two pollers sharing one store cannot execute
the same job concurrently.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
import os
import socket
import threading
from typing import List, Optional
import uuid

from jobpoller.clock import Clock, SystemClock
from jobpoller.domain import Job
from jobpoller.repository import JobLeases, JobStore
from jobpoller.schedule import is_due
from jobpoller.service_layer import JobRunner, RunOutcome

LOG = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300


def default_owner() -> str:
    return "{}:{}:{}".format(socket.gethostname(), os.getpid(), uuid.uuid4().hex[:8])


@dataclass
class TickReport:
    started_at: datetime
    pending: int = 0
    outcomes: List[RunOutcome] = field(default_factory=list)
    not_due: List[str] = field(default_factory=list)
    leased: List[str] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    def __str__(self):
        return ("pending={} ran={} succeeded={} failed={} not_due={} leased={} stale={}"
                .format(self.pending, len(self.outcomes), self.succeeded,
                        self.failed, len(self.not_due), len(self.leased),
                        len(self.stale)))


class Scheduler:
    """
    Timer plus fan-out; no business logic of its own.

    Args:
        store: Source of pending jobs
        runner: Executes each job and applies its policy
        clock: Time source (SystemClock by default)
        interval: Seconds between ticks
        max_workers: Jobs run concurrently within a tick (1 = sequential)
        leases: Per-job claims; None disables leasing
        lease_ttl: How long a claim lasts if it is never released
        schedule_gating: Only run jobs whose schedule matches the tick time
        zone: tzinfo that job schedules are written in
    """

    def __init__(self, store: JobStore, runner: JobRunner,
                 clock: Optional[Clock] = None,
                 interval: int = DEFAULT_INTERVAL,
                 max_workers: int = 1,
                 leases: Optional[JobLeases] = None,
                 lease_ttl: timedelta = timedelta(minutes=10),
                 schedule_gating: bool = False,
                 zone=None,
                 owner: Optional[str] = None):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.store = store
        self.runner = runner
        self.clock = clock or SystemClock()
        self.interval = interval
        self.max_workers = max(1, max_workers)
        self.leases = leases
        self.lease_ttl = lease_ttl
        self.schedule_gating = schedule_gating
        self.zone = zone
        self.owner = owner or default_owner()
        self._tickLock = threading.Lock()
        self._stopped = threading.Event()

    def tick(self) -> Optional[TickReport]:
        """
        Run one poll cycle.

        Returns:
            A report of the cycle, or None if the previous cycle is still
            running and this one was skipped
        """
        if not self._tickLock.acquire(blocking=False):
            LOG.warning("Previous poll cycle still running; skipping tick")
            return None
        try:
            return self._poll()
        finally:
            self._tickLock.release()

    def _poll(self) -> TickReport:
        now = self.clock.now()
        report = TickReport(started_at=now)
        LOG.info("Poll cycle at %s", now.isoformat())

        try:
            jobs = self.store.list_pending()
        except Exception as error:  # pylint: disable=broad-except
            LOG.error("Failed to list pending jobs: %s", error)
            report.error = error
            return report
        report.pending = len(jobs)

        due = []
        for job in jobs:
            if self.schedule_gating and not is_due(job, now, self.zone):
                LOG.debug("Job %s is not scheduled to run now", job.id)
                report.not_due.append(job.id)
                continue
            due.append(job)

        if self.max_workers > 1 and len(due) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(lambda j: self._runOne(j, report), due))
        else:
            results = [self._runOne(job, report) for job in due]
        report.outcomes = [r for r in results if r is not None]

        LOG.info("Poll cycle done: %s", report)
        return report

    def _runOne(self, job: Job, report: TickReport) -> Optional[RunOutcome]:
        if self.leases is not None:
            try:
                claimed = self.leases.claim(
                    job.id, self.owner, self.clock.now(), self.lease_ttl)
            except Exception as error:  # pylint: disable=broad-except
                LOG.error("Failed to claim job %s: %s", job.id, error)
                claimed = False
            if not claimed:
                LOG.info("Job %s is claimed elsewhere; skipping", job.id)
                report.leased.append(job.id)
                return None
        try:
            if self.leases is not None:
                # the listing may predate another poller's run of this job
                fresh = self._stillPending(job)
                if fresh is None:
                    report.stale.append(job.id)
                    return None
                job = fresh
            return self.runner.run(job)
        finally:
            if self.leases is not None:
                try:
                    self.leases.release(job.id, self.owner)
                except Exception as error:  # pylint: disable=broad-except
                    LOG.error("Failed to release job %s: %s", job.id, error)

    def _stillPending(self, job: Job) -> Optional[Job]:
        try:
            fresh = self.store.get(job.id)
        except Exception as error:  # pylint: disable=broad-except
            LOG.error("Failed to re-read job %s: %s", job.id, error)
            return None
        if not fresh.is_pending():
            LOG.info("Job %s is no longer pending (%s); skipping",
                     job.id, fresh.status.value)
            return None
        return fresh

    def seconds_until_next_tick(self) -> float:
        remainder = self.clock.now().timestamp() % self.interval
        return self.interval - remainder

    def run_forever(self, max_ticks: Optional[int] = None) -> int:
        """
        Tick on every interval boundary until stop() is called.

        Args:
            max_ticks: Return after this many ticks (None = never)

        Returns:
            Number of ticks run
        """
        self._stopped.clear()
        ticks = 0
        LOG.info("Scheduler %s started, interval %ds", self.owner, self.interval)
        while not self._stopped.is_set():
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.clock.sleep(self.seconds_until_next_tick())
            if self._stopped.is_set():
                break
            self.tick()
            ticks += 1
        LOG.info("Scheduler %s stopped after %d ticks", self.owner, ticks)
        return ticks

    def stop(self) -> None:
        self._stopped.set()
        self.clock.wake()
