"""
AMQP Module

Publishes jobs to a message broker, either fire-and-forget or as a
synchronous request/reply call that waits for the job processor's response.
"""

import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Set

import amqpstorm
from amqpstorm import AMQPConnectionError, AMQPError

from site_application.module_definition import ApplicationModule, ModuleDependency
from site_config.settings import AMQPSettings

from .exceptions import AMQPNotConfiguredError, JobFailureError, is_read_timeout

logger = logging.getLogger(__name__)

PERSISTENT = 2

UNKNOWN_FORMAT_MESSAGE = 'AMQP job response data is in an unknown format.'
TIMEOUT_MESSAGE = 'Did not receive response from AMQP job processor before timeout.'


def exchange_key(namespace: Optional[str], name: str) -> str:
    """Get the broker name of an exchange. An empty namespace gives the bare name."""
    if namespace:
        return f"{namespace}.{name}"
    return name


def parse_reply(raw_body: Any) -> Dict[str, Any]:
    """
    Parse the body of an RPC reply.

    Bodies that are not a JSON object with a ``status`` field are replaced by
    a failure response. The raw body is always attached as ``raw_body``.

    Args:
        raw_body: Reply body as received

    Returns:
        Response dict with at least ``status`` and ``raw_body``
    """
    if isinstance(raw_body, str):
        raw_body = raw_body.encode('utf-8')

    try:
        response = json.loads(raw_body)
    except (TypeError, ValueError):
        response = None

    if not isinstance(response, dict) or 'status' not in response:
        response = {'status': 'fail', 'body': UNKNOWN_FORMAT_MESSAGE}

    response['raw_body'] = raw_body
    return response


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return value


class SiteAMQPModule(ApplicationModule):
    """
    Application module for publishing jobs over AMQP.

    The broker connection is opened on first use. Exchanges are declared
    lazily and cached for the lifetime of the channel they were declared on.
    """

    connection_class = amqpstorm.Connection

    # seconds between polls of a reply queue
    REPLY_POLL_INTERVAL = 0.01

    def __init__(self, app):
        super().__init__(app)
        self.default_namespace = ''
        self._connection = None
        self._channel = None
        self._exchanges: Set[str] = set()
        self._settings: Optional[AMQPSettings] = None

    def depends(self) -> List[ModuleDependency]:
        return super().depends() + [ModuleDependency('SiteConfigModule')]

    def init(self) -> None:
        config = self.app.get_module('SiteConfigModule')
        self.default_namespace = config.get('amqp.default_namespace') or ''

    def get_settings(self) -> AMQPSettings:
        """
        Get validated broker settings from configuration.

        Raises:
            AMQPNotConfiguredError: If ``amqp.server`` is not set
        """
        if self._settings is None:
            config = self.app.get_module('SiteConfigModule')
            settings = AMQPSettings.from_config(config)
            if settings is None:
                raise AMQPNotConfiguredError('No AMQP server is configured (amqp.server).')
            self._settings = settings
        return self._settings

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.is_open

    def connect(self) -> None:
        """Open the broker connection if it is not open already."""
        if self.is_connected:
            return

        settings = self.get_settings()
        logger.debug(f"Connecting to AMQP broker at {settings.host}:{settings.port}")
        self._connection = self.connection_class(
            settings.host,
            settings.username,
            settings.password,
            port=settings.port,
            virtual_host=settings.virtual_host,
            timeout=settings.sync_timeout_seconds,
        )
        self._channel = None
        self._exchanges = set()

    def get_channel(self):
        """
        Get the channel used for publishing.

        A channel that is no longer open is replaced and every exchange
        declared on it is forgotten.
        """
        self.connect()

        if self._channel is None:
            self._channel = self._connection.channel()
        elif not self._channel.is_open:
            logger.info("AMQP channel is closed, opening a new one")
            self._channel = self._connection.channel()
            self._exchanges = set()

        return self._channel

    def get_exchange(self, namespace: Optional[str], name: str) -> str:
        """
        Declare an exchange and its queue, once per channel.

        The exchange is a durable direct exchange with a durable queue of the
        same name bound to it.

        Returns:
            str: The exchange name
        """
        channel = self.get_channel()
        key = exchange_key(namespace, name)
        if key in self._exchanges:
            return key

        channel.exchange.declare(exchange=key, exchange_type='direct', durable=True)
        channel.queue.declare(queue=key, durable=True)
        channel.queue.bind(queue=key, exchange=key, routing_key='')
        self._exchanges.add(key)
        logger.debug(f"Declared AMQP exchange: {key}")
        return key

    def publish_async(self, namespace: Optional[str], exchange: str, message: Any,
                      attributes: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish a job without waiting for a response.

        Args:
            namespace: Exchange namespace
            exchange: Exchange name
            message: Job body
            attributes: Message properties. Delivery is always persistent.
        """
        properties = dict(attributes or {})
        properties['delivery_mode'] = PERSISTENT

        key = self.get_exchange(namespace, exchange)
        self.get_channel().basic.publish(
            body=self._encode(message),
            routing_key='',
            exchange=key,
            properties=properties,
        )
        logger.debug(f"Published async job to {key}")

    def do_async(self, exchange: str, message: Any,
                 attributes: Optional[Dict[str, Any]] = None) -> None:
        """Publish a job in the default namespace without waiting for a response."""
        self.publish_async(self.default_namespace, exchange, message, attributes)

    def call_sync(self, namespace: Optional[str], exchange: str, message: Any,
                  attributes: Optional[Dict[str, Any]] = None,
                  timeout: Optional[int] = None) -> Dict[str, Any]:
        """
        Publish a job and wait for the job processor's response.

        Args:
            namespace: Exchange namespace
            exchange: Exchange name
            message: Job body
            attributes: Message properties
            timeout: Milliseconds to wait for the response. Defaults to
                ``amqp.sync_timeout``.

        Returns:
            The response with ``status``, ``body`` and ``raw_body``

        Raises:
            JobFailureError: If the job failed, the response could not be
                parsed, or no response arrived before the timeout
            AMQPConnectionError: On other broker connection errors
        """
        if timeout is None:
            timeout = self.get_settings().sync_timeout

        key = self.get_exchange(namespace, exchange)
        channel = self.get_channel()

        reply_queue = channel.queue.declare(queue='', exclusive=True)['queue']
        correlation_id = uuid.uuid4().hex

        properties = dict(attributes or {})
        properties['delivery_mode'] = PERSISTENT
        properties['correlation_id'] = correlation_id
        properties['reply_to'] = reply_queue

        try:
            channel.basic.publish(
                body=self._encode(message),
                routing_key='',
                exchange=key,
                properties=properties,
                mandatory=True,
            )
            logger.debug(f"Published sync job {correlation_id} to {key}")
            response = self._wait_for_reply(channel, reply_queue, correlation_id, timeout / 1000)
        except AMQPConnectionError as e:
            if not is_read_timeout(e):
                raise
            response = None
        finally:
            self._delete_queue(channel, reply_queue)

        if response is None:
            raise JobFailureError(TIMEOUT_MESSAGE, timed_out=True)

        if response['status'] == 'fail':
            raise JobFailureError(response.get('body', ''), raw_body=response['raw_body'])

        return response

    def do_sync(self, exchange: str, message: Any,
                attributes: Optional[Dict[str, Any]] = None,
                timeout: Optional[int] = None) -> Dict[str, Any]:
        """Call a job in the default namespace and wait for the response."""
        return self.call_sync(self.default_namespace, exchange, message, attributes, timeout)

    def receive(self, channel, queue: str, timeout: float):
        """
        Take one message from a queue, waiting up to ``timeout`` seconds.

        Returns:
            The message, or None if the queue stayed empty
        """
        deadline = time.monotonic() + timeout
        while True:
            message = channel.basic.get(queue=queue, no_ack=False, auto_decode=False)
            if message is not None:
                return message

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(self.REPLY_POLL_INTERVAL, remaining))

    def close(self) -> None:
        """Close the channel and connection."""
        if self._channel is not None and self._channel.is_open:
            self._channel.close()
        if self._connection is not None and self._connection.is_open:
            self._connection.close()

        self._channel = None
        self._connection = None
        self._exchanges = set()

    def _wait_for_reply(self, channel, queue: str, correlation_id: str,
                        timeout: float) -> Optional[Dict[str, Any]]:
        deadline = time.monotonic() + timeout
        while True:
            message = self.receive(channel, queue, deadline - time.monotonic())
            if message is None:
                return None

            message.ack()
            if _as_text(message.correlation_id) == correlation_id:
                return parse_reply(message.body)

            # stale reply from an earlier call
            logger.debug(f"Discarding AMQP reply with correlation id {message.correlation_id!r}")

    def _delete_queue(self, channel, queue: str) -> None:
        try:
            channel.queue.delete(queue=queue)
        except AMQPError as e:
            logger.warning(f"Could not delete AMQP reply queue {queue}: {e}")

    @staticmethod
    def _encode(message: Any):
        if isinstance(message, (bytes, str)):
            return message
        return str(message)
