"""
AMQP Worker Application

A long running process that takes jobs from a broker queue one at a time
and hands each to the subclass for processing.
"""

import argparse
import logging
import signal
import time
from abc import abstractmethod
from enum import Enum
from typing import Dict, List, Optional, Type

import amqpstorm
from amqpstorm import AMQPConnectionError, AMQPError

from site_application.application import SiteApplication
from site_application.module_definition import ApplicationModule
from site_config.config_module import SiteConfigModule
from site_config.settings import DEFAULT_AMQP_PORT

from .amqp_module import exchange_key
from .job import AMQPJob

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """State of the worker loop."""
    CONNECTING = "connecting"
    WORKING = "working"
    RECONNECTING = "reconnecting"


class AMQPWorkerApplication(SiteApplication):
    """
    Base class for AMQP job processors.

    Subclasses implement do_work() to process exactly one job. Jobs are taken
    synchronously, so a termination signal is only acted on between jobs.
    Broker connection errors are retried forever with a fixed delay; any
    other error raised while working ends the process.
    """

    # seconds to wait before polling an empty queue again
    WORK_LOOP_TIMEOUT = 0.1

    # seconds to wait before reconnecting after a connection error
    RECONNECT_DELAY = 10

    connection_class = amqpstorm.Connection

    def __init__(self, queue: str, parser: Optional[argparse.ArgumentParser] = None,
                 config_filename: Optional[str] = None):
        """
        Create a new worker.

        Args:
            queue: Name of the queue to take jobs from, without namespace
            parser: Command line parser. Defaults to build_parser().
            config_filename: Optional configuration file to load
        """
        self.queue = queue
        self.queue_name = queue
        self.parser = parser if parser is not None else self.build_parser()
        self.args: Optional[argparse.Namespace] = None
        self.connection = None
        self.channel = None
        self.state = WorkerState.CONNECTING
        self._sigterm_received = False

        super().__init__(queue, config_filename)

    def get_default_module_list(self) -> Dict[str, Type[ApplicationModule]]:
        modules = super().get_default_module_list()
        modules['config'] = SiteConfigModule
        return modules

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the command line parser: broker address, port and verbosity."""
        parser = argparse.ArgumentParser(description=f"AMQP worker for queue '{self.queue}'")
        parser.add_argument('address', help='AMQP broker host')
        parser.add_argument('--port', type=int, default=DEFAULT_AMQP_PORT,
                            help=f'AMQP broker port (default {DEFAULT_AMQP_PORT})')
        parser.add_argument('-v', '--verbose', action='count', default=0,
                            help='Increase log verbosity (-v info, -vv debug)')
        return parser

    def run(self, argv: Optional[List[str]] = None) -> None:
        """
        Run this worker until it is terminated.

        Args:
            argv: Command line arguments. Defaults to sys.argv.
        """
        if hasattr(signal, 'SIGTERM'):
            signal.signal(signal.SIGTERM, self._on_sigterm)

        self.init_modules()
        self.args = self.parser.parse_args(argv)
        self.set_log_level(self.args.verbose)
        self.init()

        self.state = WorkerState.CONNECTING
        while True:
            self.run_state()

    def run_state(self) -> None:
        """Run one step of the worker loop for the current state."""
        if self.state is WorkerState.CONNECTING:
            try:
                self.connect()
                self.state = WorkerState.WORKING
            except AMQPConnectionError as e:
                logger.error(f"Could not connect to AMQP broker at "
                             f"{self.args.address}:{self.args.port}: {e}")
                self.state = WorkerState.RECONNECTING

        elif self.state is WorkerState.WORKING:
            try:
                self.work()
            except AMQPConnectionError as e:
                logger.error(f"AMQP connection error: {e}")
                self.state = WorkerState.RECONNECTING

        else:
            self.disconnect()
            logger.info(f"Reconnecting in {self.RECONNECT_DELAY} seconds")
            time.sleep(self.RECONNECT_DELAY)
            self.state = WorkerState.CONNECTING

    def connect(self) -> None:
        """
        Connect to the broker and declare the work queue.

        The queue is named ``<default_namespace>.<queue>``, or just the queue
        name when no namespace is configured, and is bound to a durable direct
        exchange of the same name.
        """
        config = self.get_module('SiteConfigModule')
        self.queue_name = exchange_key(config.get('amqp.default_namespace'), self.queue)

        self.connection = self.connection_class(
            self.args.address,
            config.get('amqp.username'),
            config.get('amqp.password'),
            port=self.args.port,
            virtual_host=config.get('amqp.virtual_host'),
        )
        self.channel = self.connection.channel()
        self.channel.exchange.declare(exchange=self.queue_name, exchange_type='direct', durable=True)
        self.channel.queue.declare(queue=self.queue_name, durable=True)
        self.channel.queue.bind(queue=self.queue_name, exchange=self.queue_name, routing_key='')

        logger.info(f"Connected to {self.args.address}:{self.args.port}, "
                    f"waiting for jobs on {self.queue_name}")

    def disconnect(self) -> None:
        """Close the broker connection if it is open."""
        connection, self.connection, self.channel = self.connection, None, None
        if connection is None or not connection.is_open:
            return

        try:
            connection.close()
        except AMQPError as e:
            logger.warning(f"Error closing AMQP connection: {e}")

    def work(self) -> None:
        """Take and process at most one job."""
        if self._sigterm_received:
            self.handle_sigterm()

        if not self.can_work():
            time.sleep(self.WORK_LOOP_TIMEOUT)
            return

        message = self.channel.basic.get(queue=self.queue_name, no_ack=False, auto_decode=False)
        if message is None:
            logger.debug(f"No jobs on {self.queue_name}, waiting {self.WORK_LOOP_TIMEOUT}s")
            time.sleep(self.WORK_LOOP_TIMEOUT)
            return

        self.do_work(AMQPJob(self.channel, message, self.queue_name, exchange=self.queue_name))

    def init(self) -> None:
        """Hook run once after modules are initialized and arguments are parsed."""
        pass

    def can_work(self) -> bool:
        """Whether this worker is ready to take a job."""
        return True

    @abstractmethod
    def do_work(self, job: AMQPJob) -> None:
        """
        Process one job to completion.

        Implementations reply with job.send_success() or job.send_fail().
        """
        pass

    def handle_sigterm(self) -> None:
        """Shut down between jobs after a termination signal."""
        logger.info(f"Received SIGTERM, shutting down worker '{self.id}'")
        self.disconnect()
        raise SystemExit(0)

    def set_log_level(self, verbosity: int) -> None:
        """Raise the root log level for -v (info) and -vv (debug)."""
        if verbosity >= 2:
            logging.getLogger().setLevel(logging.DEBUG)
        elif verbosity == 1:
            logging.getLogger().setLevel(logging.INFO)

    def _on_sigterm(self, signum, frame) -> None:
        self._sigterm_received = True
