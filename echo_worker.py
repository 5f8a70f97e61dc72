"""
Echo Worker

Example AMQP worker that replies to every job with the body it received.

Usage:
    python echo_worker.py localhost --port 5672 -v
"""

import logging
import os
import sys

from site_amqp import AMQPJob, AMQPWorkerApplication
from site_config import configure_logging

logger = logging.getLogger(__name__)

QUEUE = os.getenv('ECHO_WORKER_QUEUE', 'echo')
CONFIG_FILENAME = os.getenv('ECHO_WORKER_CONFIG')


class EchoWorker(AMQPWorkerApplication):
    """Worker that echoes job bodies back to the caller."""

    def init(self) -> None:
        self.jobs_processed = 0

    def do_work(self, job: AMQPJob) -> None:
        try:
            text = job.text
        except UnicodeDecodeError:
            logger.warning(f"Rejecting job with a non UTF-8 body from {job.queue_name}")
            job.send_fail('Job body is not valid UTF-8.')
            return

        job.send_success(text)
        self.jobs_processed += 1
        logger.debug(f"Echoed job {self.jobs_processed}: {text!r}")


def main(argv=None) -> None:
    configure_logging()
    worker = EchoWorker(QUEUE, config_filename=CONFIG_FILENAME)
    worker.run(argv)


if __name__ == '__main__':
    main(sys.argv[1:])
