"""
Domain models for jobpoller.

This package contains pure domain logic with no database coupling.
"""

from .job import PUSH_MESSAGE, Job, JobInsert, JobKind, JobStatus, PushMessageParameters
from .message import Message, MessageRole, text_block
from .user import User

__all__ = [
    "PUSH_MESSAGE",
    "Job",
    "JobInsert",
    "JobKind",
    "JobStatus",
    "Message",
    "MessageRole",
    "PushMessageParameters",
    "User",
    "text_block",
]
