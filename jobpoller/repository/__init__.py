"""
Repository layer for job, user and conversation persistence.

This package contains the repository pattern implementation for
storing and retrieving records from persistent storage.
"""

from .interface import ConversationLog, JobLeases, JobStore, UserStore
from .memory_repository import (
    MemoryConversationLog,
    MemoryJobLeases,
    MemoryJobStore,
    MemoryUserStore,
)
from .sqlite_repository import (
    SqliteConversationLog,
    SqliteDatabase,
    SqliteJobLeases,
    SqliteJobStore,
    SqliteUserStore,
)

__all__ = [
    "ConversationLog",
    "JobLeases",
    "JobStore",
    "MemoryConversationLog",
    "MemoryJobLeases",
    "MemoryJobStore",
    "MemoryUserStore",
    "SqliteConversationLog",
    "SqliteDatabase",
    "SqliteJobLeases",
    "SqliteJobStore",
    "SqliteUserStore",
    "UserStore",
]
