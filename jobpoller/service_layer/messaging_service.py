"""
Push a message to a user and record it in their conversation log.
"""

from __future__ import annotations

import logging
from typing import List

from jobpoller.delivery import DeliveryGateway
from jobpoller.domain import MessageRole, text_block
from jobpoller.errors import ConversationLogError, NoDeliveryHandle, NotFoundError, UserNotFound
from jobpoller.repository import ConversationLog, UserStore

LOG = logging.getLogger(__name__)


class MessagingService:
    """
    Deliver messages to users.

    Delivery happens before the log append. If the append fails the push is
    reported as failed even though the user already received the message;
    callers cannot tell that case apart from a failed delivery.
    """

    def __init__(self, users: UserStore, gateway: DeliveryGateway,
                 conversation_log: ConversationLog):
        self.users = users
        self.gateway = gateway
        self.conversation_log = conversation_log

    def push(self, user_id: str, message: str) -> List[str]:
        """
        Push message to the user.

        Returns:
            Provider ids of the delivered messages

        Raises:
            UserNotFound: If the user does not exist
            NoDeliveryHandle: If the user has no messaging handle
            DeliveryFailed: If the provider rejected the message
            ConversationLogError: If the message was delivered but not logged
        """
        try:
            user = self.users.get(user_id)
        except NotFoundError:
            raise UserNotFound(user_id) from None

        if not user.can_receive_push():
            LOG.info("User %s has no messaging handle", user_id)
            raise NoDeliveryHandle(user_id)

        LOG.info("Pushing message to user %s", user_id)
        message_ids = self.gateway.send_text_message(user.messaging_handle, message)

        try:
            self.conversation_log.append(
                user.id, MessageRole.ASSISTANT, [text_block(message)])
        except Exception as error:
            LOG.error("Message delivered to %s but not logged: %s", user_id, error)
            raise ConversationLogError(
                f"failed to log message for user {user_id}: {error}") from error

        return message_ids
