"""
AMQP support: job publishing, synchronous job calls and worker processes.
"""

from .amqp_module import SiteAMQPModule, exchange_key, parse_reply
from .exceptions import AMQPNotConfiguredError, JobFailureError, is_read_timeout
from .job import AMQPJob
from .worker_application import AMQPWorkerApplication, WorkerState

__all__ = [
    'SiteAMQPModule',
    'AMQPJob',
    'AMQPWorkerApplication',
    'WorkerState',
    'JobFailureError',
    'AMQPNotConfiguredError',
    'exchange_key',
    'parse_reply',
    'is_read_timeout',
]
