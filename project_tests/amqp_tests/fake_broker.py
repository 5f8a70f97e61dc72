"""
In-memory AMQP broker for tests.

Implements the parts of the amqpstorm connection, channel and message API
used by the AMQP module and worker: exchange/queue declaration and binding,
publishing, and polling with basic.get. Responders registered on an
exchange play the part of a job processor answering synchronous calls.
"""

import itertools
from collections import deque
from typing import Callable, Dict, List, Optional

from amqpstorm import AMQPConnectionError


class FakeMessage:
    """A queued message, shaped like amqpstorm.Message."""

    def __init__(self, broker, queue: str, body, properties: Optional[dict] = None):
        self.broker = broker
        self.queue = queue
        self.body = body
        self.properties = dict(properties or {})
        self.acked = False
        self.rejected = False

    @property
    def correlation_id(self):
        return self.properties.get('correlation_id')

    @property
    def reply_to(self):
        return self.properties.get('reply_to')

    def ack(self):
        self.acked = True
        self.broker.acked.append(self)

    def reject(self, requeue=True):
        self.rejected = True
        if requeue:
            self.broker.queues[self.queue].appendleft(self)


class FakeExchangeOps:
    def __init__(self, channel):
        self.channel = channel

    def declare(self, exchange='', exchange_type='direct', durable=False, **kwargs):
        broker = self.channel.check()
        broker.exchanges[exchange] = {'type': exchange_type, 'durable': durable}
        broker.exchange_declarations.append(exchange)


class FakeQueueOps:
    def __init__(self, channel):
        self.channel = channel

    def declare(self, queue='', durable=False, exclusive=False, **kwargs):
        broker = self.channel.check()
        if not queue:
            queue = f"amq.gen-{next(broker.queue_names)}"
        broker.queues.setdefault(queue, deque())
        broker.queue_declarations.append({'queue': queue, 'durable': durable, 'exclusive': exclusive})
        return {'queue': queue, 'message_count': 0, 'consumer_count': 0}

    def bind(self, queue='', exchange='', routing_key='', **kwargs):
        broker = self.channel.check()
        bindings = broker.bindings.setdefault(exchange, [])
        if (routing_key, queue) not in bindings:
            bindings.append((routing_key, queue))

    def delete(self, queue='', **kwargs):
        broker = self.channel.check()
        broker.queues.pop(queue, None)
        broker.deleted_queues.append(queue)


class FakeBasicOps:
    def __init__(self, channel):
        self.channel = channel

    def publish(self, body, routing_key, exchange='', properties=None, mandatory=False, **kwargs):
        broker = self.channel.check()
        properties = dict(properties or {})
        broker.published.append({
            'body': body,
            'routing_key': routing_key,
            'exchange': exchange,
            'properties': properties,
            'mandatory': mandatory,
        })

        if exchange == '':
            targets = [routing_key]
        else:
            targets = [queue for key, queue in broker.bindings.get(exchange, []) if key == routing_key]

        for queue in targets:
            if queue in broker.queues:
                broker.queues[queue].append(FakeMessage(broker, queue, body, properties))

        responder = broker.responders.get(exchange)
        if responder is not None and properties.get('reply_to'):
            broker.respond(responder, body, properties)

    def get(self, queue='', no_ack=False, auto_decode=True, **kwargs):
        broker = self.channel.check()
        broker.gets += 1
        if broker.get_errors:
            raise broker.get_errors.pop(0)
        pending = broker.queues.get(queue)
        if not pending:
            return None
        return pending.popleft()


class FakeChannel:
    def __init__(self, connection):
        self.connection = connection
        self.is_open = True
        self.exchange = FakeExchangeOps(self)
        self.queue = FakeQueueOps(self)
        self.basic = FakeBasicOps(self)

    def check(self):
        if not self.is_open:
            raise AMQPConnectionError('channel is closed')
        return self.connection.broker

    def close(self):
        self.is_open = False


class FakeConnection:
    def __init__(self, broker, hostname, username, password, port=5672, **kwargs):
        self.broker = broker
        self.hostname = hostname
        self.username = username
        self.password = password
        self.port = port
        self.options = kwargs
        self.is_open = True
        self.channels: List[FakeChannel] = []

    def channel(self):
        channel = FakeChannel(self)
        self.channels.append(channel)
        return channel

    def close(self):
        self.is_open = False
        for channel in self.channels:
            channel.close()


class FakeBroker:
    """
    Broker state shared by every connection made through connect().

    Attributes:
        connect_errors: Exceptions raised by the next connection attempts
        get_errors: Exceptions raised by the next basic.get calls
        responders: Map of exchange name to a callable taking the request
            body and returning a reply body, or None for no reply
    """

    def __init__(self):
        self.exchanges: Dict[str, dict] = {}
        self.queues: Dict[str, deque] = {}
        self.bindings: Dict[str, list] = {}
        self.published: List[dict] = []
        self.acked: List[FakeMessage] = []
        self.exchange_declarations: List[str] = []
        self.queue_declarations: List[dict] = []
        self.deleted_queues: List[str] = []
        self.connections: List[FakeConnection] = []
        self.connect_errors: List[Exception] = []
        self.get_errors: List[Exception] = []
        self.responders: Dict[str, Callable] = {}
        self.stale_replies: List[bytes] = []
        self.queue_names = itertools.count(1)
        self.gets = 0

    def connect(self, hostname, username, password, port=5672, **kwargs) -> FakeConnection:
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        connection = FakeConnection(self, hostname, username, password, port, **kwargs)
        self.connections.append(connection)
        return connection

    def respond(self, responder: Callable, body, properties: dict) -> None:
        reply_to = properties['reply_to']
        for stale in self.stale_replies:
            self.queues[reply_to].append(
                FakeMessage(self, reply_to, stale, {'correlation_id': b'stale-id'})
            )

        reply = responder(body)
        if reply is None:
            return
        if isinstance(reply, str):
            reply = reply.encode('utf-8')

        correlation_id = properties['correlation_id'].encode('utf-8')
        self.queues[reply_to].append(
            FakeMessage(self, reply_to, reply, {'correlation_id': correlation_id})
        )

    def enqueue(self, queue: str, body, properties: Optional[dict] = None) -> FakeMessage:
        """Put a message straight onto a queue."""
        message = FakeMessage(self, queue, body, properties)
        self.queues.setdefault(queue, deque()).append(message)
        return message
