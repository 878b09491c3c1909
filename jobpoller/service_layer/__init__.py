"""
Service layer for business logic.

This package contains the service layer which implements business
logic and orchestrates between the domain and repository layers.
"""

from .executor import JobExecutor
from .job_runner import (
    DuplicatingRecurrence,
    JobRunner,
    OneTimeCompletion,
    RecurrencePolicy,
    RunOutcome,
)
from .messaging_service import MessagingService

__all__ = [
    "DuplicatingRecurrence",
    "JobExecutor",
    "JobRunner",
    "MessagingService",
    "OneTimeCompletion",
    "RecurrencePolicy",
    "RunOutcome",
]
