"""
Error types for the job pipeline.

Components below the job runner raise these; the runner is the only place
where they are caught and turned into a status change (or a silent retry).
"""

from typing import Optional


class JobPollerError(Exception):
    """Base class for all jobpoller errors."""


class ConfigError(JobPollerError):
    pass


class ClassificationError(JobPollerError):
    """A job whose data can never execute; never worth retrying as-is."""


class UnknownJobType(ClassificationError):
    def __init__(self, job_type):
        self.job_type = job_type
        super().__init__(f"Unknown job parameters type: {job_type!r}")


class InvalidJobParameters(ClassificationError):
    pass


class DispatchError(JobPollerError):
    """Failure while pushing a message to a user."""


class UserNotFound(DispatchError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found.")


class NoDeliveryHandle(DispatchError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} has no messaging handle.")


class DeliveryFailed(DispatchError):
    def __init__(self, message: str, status_code: Optional[int] = None,
                 reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        super().__init__(message)


class ExecutionTimeout(DeliveryFailed):
    def __init__(self, job_id: str, seconds: float):
        self.job_id = job_id
        self.seconds = seconds
        super().__init__(f"Job {job_id} did not finish within {seconds:g}s")


class ConversationLogError(DispatchError):
    """The message was delivered but could not be recorded."""


class StoreError(JobPollerError):
    pass


class NotFoundError(StoreError):
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")
