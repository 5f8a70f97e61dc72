"""
AMQP Exceptions
"""

import errno
import socket
from typing import Optional

from site_application.exceptions import SiteException


class JobFailureError(SiteException):
    """
    A job processor could not complete a synchronous job.

    Raised when the worker replied with a failure, the reply could not be
    parsed, or no reply arrived before the timeout.

    Attributes:
        raw_body: The raw reply body, when a reply was received
        timed_out: Whether the failure is a reply timeout
    """

    def __init__(self, message: str, raw_body: Optional[bytes] = None, timed_out: bool = False):
        super().__init__(message)
        self.raw_body = raw_body
        self.timed_out = timed_out


class AMQPNotConfiguredError(SiteException):
    """No broker server is configured."""


def is_read_timeout(error: Optional[BaseException]) -> bool:
    """
    Check whether a transport error is a read timeout.

    Socket timeouts and "resource temporarily unavailable" OS errors anywhere
    in the exception chain count as timeouts.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        if isinstance(error, (socket.timeout, TimeoutError)):
            return True
        if isinstance(error, OSError) and error.errno in (errno.EAGAIN, errno.EWOULDBLOCK):
            return True
        error = error.__cause__ or error.__context__
    return False
