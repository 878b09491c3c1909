"""
Route a job to the handler for its parameters type.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from jobpoller.domain import PUSH_MESSAGE, Job, PushMessageParameters
from jobpoller.errors import InvalidJobParameters, UnknownJobType

from .messaging_service import MessagingService

LOG = logging.getLogger(__name__)

Handler = Callable[[Job, Dict[str, Any]], Any]


class JobExecutor:
    """
    Stateless dispatcher from `parameters.type` to a handler.

    The built-in `push-message` handler always takes precedence over a
    plugin registering the same type.
    """

    def __init__(self, messaging: MessagingService,
                 extra_handlers: Optional[Dict[str, Handler]] = None):
        self.messaging = messaging
        self._handlers: Dict[str, Handler] = dict(extra_handlers or {})
        self._handlers[PUSH_MESSAGE] = self._push_message

    @property
    def job_types(self):
        return sorted(self._handlers)

    def _push_message(self, job: Job, parameters: Dict[str, Any]):
        _ = parameters
        try:
            push = PushMessageParameters.from_job(job)
        except ValueError as error:
            raise InvalidJobParameters(str(error)) from error
        return self.messaging.push(push.user_id, push.message)

    def execute(self, job: Job) -> Any:
        """
        Execute a job.

        Returns:
            Whatever the handler returned

        Raises:
            InvalidJobParameters: If the parameters are not a mapping with a
                string type
            UnknownJobType: If no handler exists for the parameters type
            JobPollerError: Whatever the handler raised
        """
        if not isinstance(job.parameters, dict):
            raise InvalidJobParameters(
                f"job {job.id} parameters must be an object, not "
                f"{type(job.parameters).__name__}")
        job_type = job.parameters.get("type")
        if job_type is not None and not isinstance(job_type, str):
            raise InvalidJobParameters(
                f"job {job.id} has a non-string parameters type: {job_type!r}")
        handler = self._handlers.get(job_type)
        if handler is None:
            raise UnknownJobType(job_type)
        LOG.debug("executing job %s with %s handler", job.id, job_type)
        return handler(job, job.parameters)
