"""
In-memory implementations of the repository interfaces.

Useful for tests and for running the scheduler without a database. All
stores are safe to share between threads.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime, timedelta
import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple
import uuid

from dateutil.tz import tzutc

from jobpoller.domain import Job, JobInsert, JobStatus, Message, MessageRole, User
from jobpoller.errors import NotFoundError

from .interface import ConversationLog, JobLeases, JobStore, UserStore, clean_job_update

LOG = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(tzutc())


class MemoryJobStore(JobStore):
    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def _sorted(self, jobs) -> List[Job]:
        return [copy.deepcopy(j) for j in sorted(jobs, key=lambda j: j.created_at)]

    def list_all(self) -> List[Job]:
        with self._lock:
            return self._sorted(self._jobs.values())

    def list_pending(self) -> List[Job]:
        with self._lock:
            return self._sorted(
                j for j in self._jobs.values() if j.status == JobStatus.PENDING)

    def get(self, job_id: str) -> Job:
        with self._lock:
            if job_id not in self._jobs:
                raise NotFoundError("job", job_id)
            return copy.deepcopy(self._jobs[job_id])

    def create(self, insert: JobInsert) -> Job:
        job = insert.build(new_id(), _now())
        with self._lock:
            self._jobs[job.id] = job
        LOG.debug("created job %s", job)
        return copy.deepcopy(job)

    def update_by_id(self, job_id: str, update: Mapping[str, Any]) -> Job:
        update = clean_job_update(update)
        with self._lock:
            if job_id not in self._jobs:
                raise NotFoundError("job", job_id)
            job = replace(self._jobs[job_id], **copy.deepcopy(update))
            self._jobs[job_id] = job
        LOG.debug("updated job %s: %r", job_id, update)
        return copy.deepcopy(job)


class MemoryUserStore(UserStore):
    def __init__(self, users=()):
        self._users: Dict[str, User] = {}
        for user in users:
            self.save(user)

    def get(self, user_id: str) -> User:
        try:
            return replace(self._users[user_id])
        except KeyError:
            raise NotFoundError("user", user_id) from None

    def save(self, user: User) -> None:
        self._users[user.id] = replace(user)


class MemoryConversationLog(ConversationLog):
    def __init__(self):
        self._messages: List[Message] = []
        self._lock = threading.Lock()

    def append(self, user_id: str, role: MessageRole,
               content: List[Dict[str, Any]]) -> Message:
        message = Message(
            id=new_id(),
            user_id=user_id,
            role=role,
            content=copy.deepcopy(content),
            created_at=_now(),
        )
        with self._lock:
            self._messages.append(message)
        return message

    def list_for_user(self, user_id: str) -> List[Message]:
        with self._lock:
            return [m for m in self._messages if m.user_id == user_id]

    def __len__(self):
        return len(self._messages)


class MemoryJobLeases(JobLeases):
    def __init__(self):
        self._leases: Dict[str, Tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def claim(self, job_id: str, owner: str, now: datetime, ttl: timedelta) -> bool:
        with self._lock:
            current: Optional[Tuple[str, datetime]] = self._leases.get(job_id)
            if current is not None:
                holder, expires = current
                if holder != owner and expires > now:
                    return False
            self._leases[job_id] = (owner, now + ttl)
            return True

    def release(self, job_id: str, owner: str) -> None:
        with self._lock:
            current = self._leases.get(job_id)
            if current is not None and current[0] == owner:
                del self._leases[job_id]
