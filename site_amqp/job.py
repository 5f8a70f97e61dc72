"""
AMQP Job

A message taken from a work queue, with helpers for replying to
synchronous callers.
"""

import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

STATUS_SUCCESS = 'success'
STATUS_FAIL = 'fail'


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return value


class AMQPJob:
    """
    A single job received by a worker.

    Replies are only published when the caller asked for one (the message
    has a ``reply_to`` queue). Sending a reply also acknowledges the job.
    """

    def __init__(self, channel, message, queue_name: str, exchange: Optional[str] = None):
        self.channel = channel
        self.message = message
        self.queue_name = queue_name
        self.exchange = exchange
        self._acked = False

    @property
    def body(self) -> bytes:
        body = self.message.body
        if isinstance(body, str):
            return body.encode('utf-8')
        return body

    @property
    def text(self) -> str:
        return self.body.decode('utf-8')

    @property
    def correlation_id(self) -> Optional[str]:
        return _as_text(self.message.correlation_id)

    @property
    def reply_to(self) -> Optional[str]:
        return _as_text(self.message.reply_to)

    @property
    def is_acked(self) -> bool:
        return self._acked

    def send_success(self, body: Any = '') -> None:
        """Reply with a success response and acknowledge the job."""
        self._reply(STATUS_SUCCESS, body)

    def send_fail(self, body: Any = '') -> None:
        """Reply with a failure response and acknowledge the job."""
        self._reply(STATUS_FAIL, body)

    def ack(self) -> None:
        """Acknowledge the job so it leaves the queue."""
        if not self._acked:
            self.message.ack()
            self._acked = True

    def reject(self, requeue: bool = True) -> None:
        """Reject the job, by default returning it to the queue."""
        self.message.reject(requeue=requeue)
        self._acked = True

    def _reply(self, status: str, body: Any) -> None:
        reply_to = self.reply_to
        if reply_to:
            payload = json.dumps({'status': status, 'body': _as_text(body)})
            self.channel.basic.publish(
                body=payload,
                routing_key=reply_to,
                exchange='',
                properties={
                    'correlation_id': self.correlation_id,
                    'content_type': 'application/json',
                },
            )
            logger.debug(f"Sent {status} reply to {reply_to}")

        self.ack()
