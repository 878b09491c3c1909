"""
Tests for MessagingService.
"""

import unittest
from unittest.mock import patch

from jobpoller.domain import MessageRole, User
from jobpoller.errors import (
    ConversationLogError,
    DeliveryFailed,
    NoDeliveryHandle,
    UserNotFound,
)

from .helpers import Pipeline


class TestMessagingService(unittest.TestCase):
    def setUp(self):
        self.pipeline = Pipeline(users=(
            User("U1", messaging_handle="H1"),
            User("U2"),
        ))
        self.service = self.pipeline.messaging

    def test_push_delivers_then_logs(self):
        ids = self.service.push("U1", "good morning")

        self.assertEqual(ids, ["m1"])
        self.assertEqual(self.pipeline.gateway.sent, [("H1", "good morning")])
        messages = self.pipeline.log.list_for_user("U1")
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].role, MessageRole.ASSISTANT)
        self.assertEqual(messages[0].content, [{"type": "text", "text": "good morning"}])

    def test_unknown_user(self):
        with self.assertRaises(UserNotFound) as ctx:
            self.service.push("nobody", "hi")

        self.assertEqual(str(ctx.exception), "User nobody not found.")
        self.assertEqual(self.pipeline.gateway.sent, [])
        self.assertEqual(len(self.pipeline.log), 0)

    def test_user_without_handle(self):
        with self.assertRaises(NoDeliveryHandle):
            self.service.push("U2", "hi")

        self.assertEqual(self.pipeline.gateway.sent, [])
        self.assertEqual(len(self.pipeline.log), 0)

    def test_delivery_failure_is_not_logged(self):
        self.pipeline.gateway.reject(502, "Bad Gateway")

        with self.assertRaisesRegex(DeliveryFailed, "502 Bad Gateway"):
            self.service.push("U1", "hi")

        self.assertEqual(len(self.pipeline.log), 0)

    def test_log_failure_after_delivery(self):
        with patch.object(self.pipeline.log, "append", side_effect=IOError("disk full")):
            with self.assertRaisesRegex(ConversationLogError, "disk full"):
                self.service.push("U1", "hi")

        # the user got the message even though the push failed
        self.assertEqual(self.pipeline.gateway.sent, [("H1", "hi")])


if __name__ == "__main__":
    unittest.main()
