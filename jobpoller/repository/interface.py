"""
Repository interfaces for job, user, conversation and lease persistence.

This module defines the abstract interfaces that all repository
implementations must follow. The execution and recurrence logic only ever
talks to these interfaces.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping

from jobpoller.domain import Job, JobInsert, JobKind, JobStatus, Message, MessageRole, User

# Fields of a job that update_by_id may change.
UPDATABLE_JOB_FIELDS = frozenset(
    ("kind", "status", "parameters", "user_id", "schedule"))


class JobStore(ABC):
    """
    Abstract store for jobs.

    The store owns job records. It holds no business logic: status changes
    and duplication are decided by the job runner.
    """

    @abstractmethod
    def list_all(self) -> List[Job]:
        """
        Get every job.

        Returns:
            List of jobs, sorted by created_at
        """

    @abstractmethod
    def list_pending(self) -> List[Job]:
        """
        Get jobs whose status is pending.

        Callers must not rely on the order of the result.

        Returns:
            List of pending jobs
        """

    @abstractmethod
    def get(self, job_id: str) -> Job:
        """
        Get a job by id.

        Raises:
            NotFoundError: If the job does not exist
        """

    @abstractmethod
    def create(self, insert: JobInsert) -> Job:
        """
        Persist a new job.

        Args:
            insert: The job fields; status is pending unless set otherwise

        Returns:
            The stored job with its new id and created_at
        """

    @abstractmethod
    def update_by_id(self, job_id: str, update: Mapping[str, Any]) -> Job:
        """
        Partially update a job.

        Args:
            job_id: The job id
            update: Field name to new value, limited to UPDATABLE_JOB_FIELDS

        Returns:
            The updated job

        Raises:
            NotFoundError: If the job does not exist
            ValueError: If update names a field that cannot be changed
        """

    def close(self) -> None:
        """Close the store and release resources."""


class UserStore(ABC):
    @abstractmethod
    def get(self, user_id: str) -> User:
        """
        Get a user by id.

        Raises:
            NotFoundError: If the user does not exist
        """

    @abstractmethod
    def save(self, user: User) -> None:
        """Insert or replace a user."""


class ConversationLog(ABC):
    """Append-only record of the messages exchanged with users."""

    @abstractmethod
    def append(self, user_id: str, role: MessageRole,
               content: List[Dict[str, Any]]) -> Message:
        """
        Append a message; the log assigns its id and created_at.

        Returns:
            The stored message
        """

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[Message]:
        """Get a user's messages, oldest first."""


class JobLeases(ABC):
    """
    Claim-with-expiry locks on individual jobs.

    A job claimed by one owner cannot be claimed by another owner until the
    claim is released or expires.
    """

    @abstractmethod
    def claim(self, job_id: str, owner: str, now: datetime, ttl: timedelta) -> bool:
        """
        Try to claim a job.

        Returns:
            True if the claim was granted (or renewed for the same owner)
        """

    @abstractmethod
    def release(self, job_id: str, owner: str) -> None:
        """Drop a claim held by owner; no-op if owner does not hold it."""


def clean_job_update(update: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate a partial job update and coerce enum fields.

    `status` and `kind` may be given as enum members or their stored values.

    Raises:
        ValueError: If a field cannot be changed or a value has the wrong type
    """
    unknown = set(update) - UPDATABLE_JOB_FIELDS
    if unknown:
        raise ValueError(
            "cannot update job fields: {}".format(", ".join(sorted(unknown))))
    cleaned = dict(update)
    if "status" in cleaned:
        cleaned["status"] = JobStatus(cleaned["status"])
    if "kind" in cleaned:
        cleaned["kind"] = JobKind(cleaned["kind"])
    if "parameters" in cleaned and not isinstance(cleaned["parameters"], dict):
        raise ValueError("job parameters must be a dict, not {}".format(
            type(cleaned["parameters"]).__name__))
    return cleaned
