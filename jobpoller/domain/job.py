"""
Pure domain model for jobs.

This module contains the Job dataclass and its status/kind enums. It has no
coupling to the storage layer; persistence is handled by the repository
layer and the wire adapters.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from dateutil.tz import tzutc

PUSH_MESSAGE = "push-message"


class JobStatus(Enum):
    """Persisted job lifecycle states.

    There is no "running" state: only the outcome of an
    execution attempt is ever stored.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(Enum):
    """What happens to a job after it runs."""

    RECURRING = "recurring"  # always spawns a pending successor
    ONE_TIME = "one-time"  # completes once, failures stay pending


@dataclass
class Job:
    """
    A unit of scheduled work.

    `parameters` holds the tagged payload in its internal (camelCase) form,
    for example::

        {"type": "push-message", "userId": "U1", "payload": {"message": "hi"}}
    """

    id: str
    kind: JobKind = JobKind.ONE_TIME
    status: JobStatus = JobStatus.PENDING
    parameters: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    schedule: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(tzutc())

    @property
    def parameters_type(self) -> Optional[str]:
        """The `type` tag of the parameters, or None when absent or malformed."""
        if not isinstance(self.parameters, dict):
            return None
        job_type = self.parameters.get("type")
        return job_type if isinstance(job_type, str) else None

    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING

    def is_recurring(self) -> bool:
        return self.kind == JobKind.RECURRING

    def to_insert(self) -> JobInsert:
        """Full copy of this job minus its identity, ready to be re-created."""
        return JobInsert(
            kind=self.kind,
            parameters=copy.deepcopy(self.parameters),
            user_id=self.user_id,
            schedule=self.schedule,
            status=JobStatus.PENDING,
        )

    def __str__(self):
        return "{} [{}] {} {}".format(
            self.id, self.kind.value, self.status.value,
            self.parameters_type or "(no type)")


@dataclass
class JobInsert:
    """The fields a producer supplies when creating a job."""

    kind: JobKind = JobKind.ONE_TIME
    parameters: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    schedule: Optional[str] = None
    status: JobStatus = JobStatus.PENDING

    def build(self, job_id: str, created_at: datetime) -> Job:
        return Job(
            id=job_id,
            kind=self.kind,
            status=self.status,
            parameters=copy.deepcopy(self.parameters),
            user_id=self.user_id,
            schedule=self.schedule,
            created_at=created_at,
        )


@dataclass(frozen=True)
class PushMessageParameters:
    """Parameters of a `push-message` job."""

    user_id: str
    message: str

    @classmethod
    def from_job(cls, job: Job) -> "PushMessageParameters":
        """
        Read push-message parameters from a job.

        Both the nested form (`payload.message`) and the flat form
        (`message`) are accepted. The job owner is used when the
        parameters carry no `userId`.

        Raises:
            ValueError: If the user or the message cannot be determined
        """
        params = job.parameters or {}
        user_id = params.get("userId") or job.user_id
        payload = params.get("payload")
        if isinstance(payload, dict) and "message" in payload:
            message = payload["message"]
        else:
            message = params.get("message")
        if not user_id:
            raise ValueError(f"job {job.id} has no userId for push-message")
        if not isinstance(message, str):
            raise ValueError(f"job {job.id} has no message text for push-message")
        return cls(user_id=str(user_id), message=message)

    def to_parameters(self) -> Dict[str, Any]:
        return {
            "type": PUSH_MESSAGE,
            "userId": self.user_id,
            "payload": {"message": self.message},
        }
