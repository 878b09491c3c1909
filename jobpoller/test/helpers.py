from contextlib import contextmanager
from io import StringIO
import os
import sys

from jobpoller.delivery import DeliveryGateway
from jobpoller.domain import JobInsert, JobKind, PushMessageParameters, User
from jobpoller.errors import DeliveryFailed
from jobpoller.repository import MemoryConversationLog, MemoryJobStore, MemoryUserStore
from jobpoller.service_layer import JobExecutor, JobRunner, MessagingService


def resetEnv():
    os.environ["JOBPOLLER_STATE_DIR"] = "/tmp/BADDIR"
    os.environ.pop("JOBPOLLER_DELIVERY_TOKEN", None)


@contextmanager
def capturedOutput():
    ''' Used to capture stdout or stderr.
    eg.
    with capturedOutput() as (out, err):
        print("foo")

    self.assertEqual(out.getvalue(), "foo")
    '''
    newOut, newErr = StringIO(), StringIO()
    oldOut, oldErr = sys.stdout, sys.stderr
    try:
        sys.stdout, sys.stderr = newOut, newErr
        yield sys.stdout, sys.stderr
    finally:
        sys.stdout, sys.stderr = oldOut, oldErr


class RecordingGateway(DeliveryGateway):
    """Delivery gateway that records sends and can be told to fail."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send_text_message(self, handle, text):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((handle, text))
        return ["m{}".format(len(self.sent))]

    def reject(self, status_code=500, reason="Internal Server Error"):
        self.fail_with = DeliveryFailed(
            "Error: {} {}".format(status_code, reason),
            status_code=status_code, reason=reason)


class Pipeline(object):
    """The whole job pipeline wired over in-memory stores."""

    def __init__(self, users=(User("U1", messaging_handle="H1"),), timeout=None):
        self.jobs = MemoryJobStore()
        self.users = MemoryUserStore(users)
        self.log = MemoryConversationLog()
        self.gateway = RecordingGateway()
        self.messaging = MessagingService(self.users, self.gateway, self.log)
        self.executor = JobExecutor(self.messaging)
        self.runner = JobRunner(self.executor, self.jobs, timeout=timeout)

    def add_push_job(self, kind=JobKind.RECURRING, user_id="U1", message="hi",
                     schedule=None):
        return self.jobs.create(JobInsert(
            kind=kind,
            parameters=PushMessageParameters(user_id, message).to_parameters(),
            user_id=user_id,
            schedule=schedule,
        ))
