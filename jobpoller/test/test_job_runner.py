"""
Tests for JobRunner and the recurrence policies.
"""

import threading
import unittest
from unittest.mock import MagicMock, patch

from jobpoller.domain import JobInsert, JobKind, JobStatus, MessageRole, User
from jobpoller.errors import (
    DeliveryFailed,
    ExecutionTimeout,
    InvalidJobParameters,
    NoDeliveryHandle,
    StoreError,
    UnknownJobType,
)
from jobpoller.service_layer import JobExecutor, JobRunner, RecurrencePolicy

from .helpers import Pipeline

RUNNER_LOG = "jobpoller.service_layer.job_runner"


def _withParams(jobs, params):
    return [j for j in jobs.list_all() if j.parameters == params]


class TestRecurringJobs(unittest.TestCase):
    def setUp(self):
        self.pipeline = Pipeline()
        self.params = {"type": "push-message", "userId": "U1", "message": "hi"}
        self.job = self.pipeline.jobs.create(JobInsert(
            kind=JobKind.RECURRING, parameters=self.params, user_id="U1"))

    def test_success_completes_and_duplicates(self):
        outcome = self.pipeline.runner.run(self.job)

        self.assertTrue(outcome.succeeded)
        self.assertIsNone(outcome.error)
        jobs = self.pipeline.jobs
        self.assertEqual(jobs.get(self.job.id).status, JobStatus.COMPLETED)

        copies = _withParams(jobs, self.params)
        self.assertEqual(len(copies), 2)
        successor = outcome.successor
        self.assertNotEqual(successor.id, self.job.id)
        self.assertEqual(jobs.get(successor.id).status, JobStatus.PENDING)
        self.assertEqual(successor.kind, JobKind.RECURRING)
        self.assertEqual(successor.user_id, "U1")
        self.assertEqual([j.id for j in jobs.list_pending()], [successor.id])

        messages = self.pipeline.log.list_for_user("U1")
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].role, MessageRole.ASSISTANT)
        self.assertEqual(messages[0].content, [{"type": "text", "text": "hi"}])
        self.assertEqual(self.pipeline.gateway.sent, [("H1", "hi")])

    def test_delivery_rejected_fails_and_still_duplicates(self):
        self.pipeline.gateway.reject(500, "Internal Server Error")

        outcome = self.pipeline.runner.run(self.job)

        self.assertFalse(outcome.succeeded)
        self.assertIsInstance(outcome.error, DeliveryFailed)
        jobs = self.pipeline.jobs
        self.assertEqual(jobs.get(self.job.id).status, JobStatus.FAILED)
        self.assertEqual(len(_withParams(jobs, self.params)), 2)
        self.assertEqual(len(jobs.list_pending()), 1)
        self.assertEqual(len(self.pipeline.log), 0)

    def test_each_run_leaves_one_pending_copy(self):
        runner = self.pipeline.runner
        for _ in range(3):
            pending = self.pipeline.jobs.list_pending()
            self.assertEqual(len(pending), 1)
            runner.run(pending[0])

        statuses = sorted(j.status.value for j in self.pipeline.jobs.list_all())
        self.assertEqual(statuses, ["completed"] * 3 + ["pending"])

    def test_run_cron_job_ignores_kind(self):
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME)
        outcome = self.pipeline.runner.run_cron_job(job)
        self.assertIsNotNone(outcome.successor)

    def test_successor_failure_is_logged(self):
        jobs = self.pipeline.jobs
        with patch.object(jobs, "create", side_effect=StoreError("db locked")):
            with self.assertLogs(RUNNER_LOG, "ERROR") as logs:
                outcome = self.pipeline.runner.run(self.job)

        self.assertTrue(outcome.succeeded)
        self.assertIsNone(outcome.successor)
        self.assertEqual(jobs.get(self.job.id).status, JobStatus.COMPLETED)
        self.assertIn("Failed to create successor", "\n".join(logs.output))

    def test_status_failure_still_duplicates(self):
        jobs = self.pipeline.jobs
        with patch.object(jobs, "update_by_id", side_effect=StoreError("db locked")):
            with self.assertLogs(RUNNER_LOG, "ERROR") as logs:
                outcome = self.pipeline.runner.run(self.job)

        self.assertIsNotNone(outcome.successor)
        self.assertEqual(jobs.get(self.job.id).status, JobStatus.PENDING)
        self.assertIn("Failed to update job", "\n".join(logs.output))


class TestOneTimeJobs(unittest.TestCase):
    def setUp(self):
        self.pipeline = Pipeline()

    def test_success_completes_without_duplicate(self):
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME)

        outcome = self.pipeline.runner.run(job)

        self.assertTrue(outcome.succeeded)
        self.assertIsNone(outcome.successor)
        self.assertEqual(self.pipeline.jobs.get(job.id).status, JobStatus.COMPLETED)
        self.assertEqual(len(self.pipeline.jobs.list_all()), 1)

    def test_failure_leaves_job_pending(self):
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME, user_id="ghost")

        outcome = self.pipeline.runner.run(job)

        self.assertFalse(outcome.succeeded)
        self.assertEqual(self.pipeline.jobs.get(job.id).status, JobStatus.PENDING)
        self.assertEqual(len(self.pipeline.jobs.list_all()), 1)

    def test_failed_job_is_retried_on_every_run(self):
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME)
        self.pipeline.gateway.reject()
        for _ in range(3):
            self.assertFalse(self.pipeline.runner.run(job).succeeded)
        self.assertTrue(self.pipeline.jobs.get(job.id).is_pending())

        self.pipeline.gateway.fail_with = None
        self.assertTrue(self.pipeline.runner.run(job).succeeded)
        self.assertEqual(self.pipeline.jobs.get(job.id).status, JobStatus.COMPLETED)

    def test_unknown_type_is_logged_and_left_pending(self):
        job = self.pipeline.jobs.create(JobInsert(
            kind=JobKind.ONE_TIME, parameters={"type": "foo"}))

        with self.assertLogs(RUNNER_LOG, "ERROR") as logs:
            outcome = self.pipeline.runner.run(job)

        self.assertIsInstance(outcome.error, UnknownJobType)
        self.assertIn("Unknown job parameters type: 'foo'", "\n".join(logs.output))
        self.assertEqual(self.pipeline.jobs.get(job.id).status, JobStatus.PENDING)
        self.assertEqual(len(self.pipeline.jobs.list_all()), 1)
        self.assertEqual(self.pipeline.gateway.sent, [])
        self.assertEqual(len(self.pipeline.log), 0)

    def test_malformed_parameters_are_a_classification_error(self):
        job = self.pipeline.jobs.create(JobInsert(kind=JobKind.ONE_TIME))
        job.parameters = ["push-message", "U1", "hi"]

        with self.assertLogs(RUNNER_LOG, "ERROR") as logs:
            outcome = self.pipeline.runner.run(job)

        self.assertIsInstance(outcome.error, InvalidJobParameters)
        self.assertFalse(logs.records[0].exc_info)
        self.assertTrue(self.pipeline.jobs.get(job.id).is_pending())

    def test_no_handle(self):
        pipeline = Pipeline(users=(User("U1"),))
        job = pipeline.add_push_job(kind=JobKind.ONE_TIME)

        outcome = pipeline.runner.run(job)

        self.assertIsInstance(outcome.error, NoDeliveryHandle)
        self.assertEqual(len(pipeline.log), 0)


class TestRunnerErrors(unittest.TestCase):
    def setUp(self):
        self.pipeline = Pipeline()

    def test_unexpected_handler_error_is_contained(self):
        broken = MagicMock(side_effect=RuntimeError("boom"))
        executor = JobExecutor(self.pipeline.messaging, extra_handlers={"broken": broken})
        runner = JobRunner(executor, self.pipeline.jobs)
        job = self.pipeline.jobs.create(JobInsert(
            kind=JobKind.RECURRING, parameters={"type": "broken"}))

        with self.assertLogs(RUNNER_LOG, "ERROR"):
            outcome = runner.run(job)

        self.assertIsInstance(outcome.error, RuntimeError)
        self.assertEqual(self.pipeline.jobs.get(job.id).status, JobStatus.FAILED)
        self.assertIsNotNone(outcome.successor)

    def test_timeout(self):
        release = threading.Event()

        def slow(job, parameters):
            _ = job, parameters
            release.wait(5)

        executor = JobExecutor(self.pipeline.messaging, extra_handlers={"slow": slow})
        runner = JobRunner(executor, self.pipeline.jobs, timeout=0.05)
        job = self.pipeline.jobs.create(JobInsert(
            kind=JobKind.ONE_TIME, parameters={"type": "slow"}))
        try:
            with self.assertLogs(RUNNER_LOG, "ERROR"):
                outcome = runner.run(job)
        finally:
            release.set()

        self.assertIsInstance(outcome.error, ExecutionTimeout)
        self.assertIsInstance(outcome.error, DeliveryFailed)
        self.assertEqual(outcome.error.job_id, job.id)
        self.assertTrue(self.pipeline.jobs.get(job.id).is_pending())

    def test_timeout_not_hit(self):
        runner = JobRunner(self.pipeline.executor, self.pipeline.jobs, timeout=5)
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME)
        self.assertTrue(runner.run(job).succeeded)

    def test_custom_policy(self):
        policy = MagicMock(RecurrencePolicy)
        policy.on_success.return_value = None
        runner = JobRunner(self.pipeline.executor, self.pipeline.jobs,
                           policies={JobKind.ONE_TIME: policy})
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME)

        runner.run(job)

        policy.on_success.assert_called_once_with(job)
        self.assertTrue(self.pipeline.jobs.get(job.id).is_pending())

    def test_policy_error_is_contained(self):
        policy = MagicMock(RecurrencePolicy)
        policy.on_failure.side_effect = RuntimeError("policy bug")
        runner = JobRunner(self.pipeline.executor, self.pipeline.jobs,
                           policies={JobKind.ONE_TIME: policy})
        job = self.pipeline.add_push_job(kind=JobKind.ONE_TIME, user_id="ghost")

        with self.assertLogs(RUNNER_LOG, "ERROR") as logs:
            outcome = runner.run(job)

        self.assertFalse(outcome.succeeded)
        self.assertIn("recurrence policy failed", "\n".join(logs.output))


if __name__ == "__main__":
    unittest.main()
