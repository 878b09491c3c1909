"""
Decide whether a job's schedule matches the current poll time.

Recurring jobs carry a five-field cron expression
(minute hour day-of-month month day-of-week, Sunday = 0 or 7). One-time
jobs carry a local "YYYY-MM-DD HH:MM" timestamp. Matching is done at minute
granularity in the configured time zone.
"""

from datetime import datetime
import logging

from croniter import croniter
from dateutil import tz

from jobpoller.domain import Job, JobKind

LOG = logging.getLogger(__name__)

ONE_TIME_FMT = "%Y-%m-%d %H:%M"


def _minute(when: datetime) -> datetime:
    return when.replace(second=0, microsecond=0, tzinfo=None)


def cron_matches(expr: str, when: datetime) -> bool:
    """
    True if the cron expression matches `when` (to the minute).

    Day-of-month and day-of-week must both match when both are restricted.
    An invalid expression never matches.
    """
    # croniter also takes @macros and a seconds field; only five fields are valid here
    if not isinstance(expr, str) or len(expr.split()) != 5:
        LOG.error("Invalid cron expression format: %r", expr)
        return False
    try:
        return bool(croniter.match(expr, _minute(when), day_or=False))
    except (ValueError, ZeroDivisionError) as error:
        LOG.error("Invalid cron expression %r: %s", expr, error)
        return False


def one_time_matches(schedule: str, when: datetime) -> bool:
    """True if `when` falls in the scheduled minute."""
    try:
        scheduled = datetime.strptime(schedule.strip(), ONE_TIME_FMT)
    except (AttributeError, ValueError):
        LOG.error("Invalid one-time schedule format: %r", schedule)
        return False
    return scheduled == _minute(when)


def is_due(job: Job, now: datetime, zone=None) -> bool:
    """
    True if the job should run at `now`.

    Jobs without a schedule are always due.

    Args:
        job: The job
        now: Timezone-aware current time
        zone: tzinfo the schedules are written in (default: UTC)
    """
    if not job.schedule:
        return True
    local = now.astimezone(zone or tz.tzutc())
    if job.kind == JobKind.RECURRING:
        return cron_matches(job.schedule, local)
    return one_time_matches(job.schedule, local)
