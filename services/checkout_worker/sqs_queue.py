"""SQS adapter for the start-checkout queue: long-poll receive and delete-by-handle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from common.config import QueueConfig, get_config
from services.checkout_worker.aws import make_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = 1


class SqsCheckoutQueue:
    """
    Each ``receive`` leases at most ``max_messages`` (one) message for
    ``visibility_timeout_seconds``. A message that is never deleted becomes
    visible again when the lease expires.
    """

    def __init__(self, settings: Optional[QueueConfig] = None, client: Any = None) -> None:
        self.settings = settings or get_config().queue
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = make_client("sqs")
        return self._client

    @property
    def url(self) -> str:
        return self.settings.url

    def receive(self) -> List[QueueMessage]:
        logger.debug("Getting messages from %s", self.url)
        response = self.client.receive_message(
            QueueUrl=self.url,
            MaxNumberOfMessages=self.settings.max_messages,
            VisibilityTimeout=self.settings.visibility_timeout_seconds,
            WaitTimeSeconds=self.settings.wait_time_seconds,
            AttributeNames=["ApproximateReceiveCount"],
        )
        messages = []
        for raw in response.get("Messages", []):
            attributes = raw.get("Attributes") or {}
            messages.append(
                QueueMessage(
                    message_id=raw["MessageId"],
                    receipt_handle=raw["ReceiptHandle"],
                    body=raw.get("Body", ""),
                    receive_count=int(attributes.get("ApproximateReceiveCount", "1")),
                )
            )
        return messages

    def delete(self, receipt_handle: str) -> None:
        self.client.delete_message(QueueUrl=self.url, ReceiptHandle=receipt_handle)


__all__ = ["QueueMessage", "SqsCheckoutQueue"]
