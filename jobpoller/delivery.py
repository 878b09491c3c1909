"""
Outbound message delivery.

The delivery provider is a small HTTP service that forwards a text message to
a recipient on the messaging platform:

    POST <url>  {"to": "<handle>", "message": "<text>"}
    200         {"sentMessages": [{"id": "..."}, ...]}
"""

from abc import ABC, abstractmethod
import logging
from typing import List, Optional

import requests

from jobpoller.errors import DeliveryFailed

LOG = logging.getLogger(__name__)


class DeliveryGateway(ABC):
    @abstractmethod
    def send_text_message(self, handle: str, text: str) -> List[str]:
        """
        Send text to the recipient identified by handle.

        Returns:
            The provider's ids for the sent messages

        Raises:
            DeliveryFailed: If the provider did not accept the message
        """


def _sentMessageIds(response) -> List[str]:
    try:
        return [str(m['id']) for m in response.json()['sentMessages']]
    except (KeyError, TypeError, ValueError):
        return []


class HttpDeliveryGateway(DeliveryGateway):
    def __init__(self, url: str, timeout: float = 10.0, token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.token = token
        self.session = session or requests.Session()

    def send_text_message(self, handle: str, text: str) -> List[str]:
        payload = {
            'to': handle,
            'message': text,
        }
        headers = {
            'Content-Type': 'application/json; charset=UTF-8',
        }
        if self.token:
            headers['Authorization'] = 'Bearer ' + self.token

        LOG.debug("POST %s to=%s", self.url, handle)
        try:
            ret = self.session.post(
                self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as error:
            raise DeliveryFailed(f"Error: {error}") from error

        if not ret.ok:
            LOG.error("Failed to send text message: %d %s", ret.status_code, ret.reason)
            raise DeliveryFailed(
                f"Error: {ret.status_code} {ret.reason}",
                status_code=ret.status_code,
                reason=ret.reason)

        return _sentMessageIds(ret)
