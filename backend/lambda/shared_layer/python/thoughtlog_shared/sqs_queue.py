"""sqs_queue.py — Amazon SQS implementation of the deferred work queue."""
from __future__ import annotations

import logging
from typing import Any

from thoughtlog_shared.aws_clients import _get_sqs

logger = logging.getLogger(__name__)

__all__ = ["SqsQueue"]


class SqsQueue:
    def __init__(self, queue_url: str, client: Any = None):
        self.queue_url = queue_url
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_sqs()
        return self._client

    def send_message(self, message: str) -> None:
        resp = self.client.send_message(QueueUrl=self.queue_url, MessageBody=message)
        logger.info("Queued message %s on %s", (resp or {}).get("MessageId", ""), self.queue_url)
