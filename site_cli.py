"""
Site Command Line Tool

Inspect the modules of an application and send jobs to AMQP job processors
from the command line.
"""

import argparse
import importlib
import logging
import sys
from typing import Dict, Optional, Type

from amqpstorm import AMQPError

from site_amqp import JobFailureError, SiteAMQPModule
from site_application import ApplicationModule, SiteApplication, SiteException
from site_config import SiteConfigModule, configure_logging

logger = logging.getLogger(__name__)


class CommandLineApplication(SiteApplication):
    """Minimal application with configuration and AMQP modules."""

    def get_default_module_list(self) -> Dict[str, Type[ApplicationModule]]:
        return {
            'config': SiteConfigModule,
            'amqp': SiteAMQPModule,
        }

    def run(self) -> None:
        self.init_modules()


def load_application_class(path: str) -> Type[SiteApplication]:
    """
    Import an application class from a ``package.module:Class`` path.

    Raises:
        SiteException: If the path is malformed or does not name an application class
    """
    module_name, _, class_name = path.partition(':')
    if not module_name or not class_name:
        raise SiteException(f"Application must be given as package.module:Class, got '{path}'")

    module = importlib.import_module(module_name)
    app_class = getattr(module, class_name, None)
    if not isinstance(app_class, type) or not issubclass(app_class, SiteApplication):
        raise SiteException(f"'{path}' is not a SiteApplication class")
    return app_class


class SiteCLI:
    """Command-line interface for Site applications."""

    def list_modules(self, app: SiteApplication) -> None:
        """Print the modules of an application in load order."""
        modules = app.modules.describe()

        if not modules:
            print("No modules registered.")
            return

        print(f"\nModules of application '{app.id}':")
        print("-" * 80)
        print(f"{'Id':<12} {'Class':<24} {'Status':<12} {'Depends'}")
        print("-" * 80)

        for info in modules:
            print(f"{info['id']:<12} {info['class']:<24} {info['status']:<12} "
                  f"{', '.join(info['depends']) or '-'}")
            if info['last_error']:
                print(f"{'':<12} error: {info['last_error']}")

        print("-" * 80)

    def publish(self, app: SiteApplication, exchange: str, message: str,
                namespace: Optional[str] = None) -> None:
        """Publish a job without waiting for a response."""
        amqp = app.get_module('SiteAMQPModule')
        if namespace is None:
            amqp.do_async(exchange, message)
        else:
            amqp.publish_async(namespace, exchange, message)
        print(f"Published job to '{exchange}'.")

    def call(self, app: SiteApplication, exchange: str, message: str,
             namespace: Optional[str] = None, timeout: Optional[int] = None) -> bool:
        """
        Call a job and print the response.

        Returns:
            bool: True if the job succeeded
        """
        amqp = app.get_module('SiteAMQPModule')
        try:
            if namespace is None:
                response = amqp.do_sync(exchange, message, timeout=timeout)
            else:
                response = amqp.call_sync(namespace, exchange, message, timeout=timeout)
        except JobFailureError as e:
            print(f"Job failed: {e.message}")
            return False

        print(response.get('body', ''))
        return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Site application tool")
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Modules command
    modules_parser = subparsers.add_parser('modules', help='List the modules of an application')
    modules_parser.add_argument('--app', required=True, help='Application class as package.module:Class')
    modules_parser.add_argument('--id', default='site', help='Application identifier')
    modules_parser.add_argument('--config', help='Configuration file')

    # Publish command
    publish_parser = subparsers.add_parser('publish', help='Publish a job without waiting')
    publish_parser.add_argument('exchange', help='Exchange name')
    publish_parser.add_argument('message', help='Job body')
    publish_parser.add_argument('--namespace', help='Exchange namespace (default amqp.default_namespace)')
    publish_parser.add_argument('--config', required=True, help='Configuration file')

    # Call command
    call_parser = subparsers.add_parser('call', help='Call a job and wait for the response')
    call_parser.add_argument('exchange', help='Exchange name')
    call_parser.add_argument('message', help='Job body')
    call_parser.add_argument('--namespace', help='Exchange namespace (default amqp.default_namespace)')
    call_parser.add_argument('--timeout', type=int, help='Milliseconds to wait (default amqp.sync_timeout)')
    call_parser.add_argument('--config', required=True, help='Configuration file')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging('DEBUG' if args.verbose else None)
    cli = SiteCLI()

    try:
        if args.command == 'modules':
            app_class = load_application_class(args.app)
            app = app_class(args.id, config_filename=args.config)
            cli.list_modules(app)
            return 0

        app = CommandLineApplication('site-cli', config_filename=args.config)
        app.run()
        try:
            if args.command == 'publish':
                cli.publish(app, args.exchange, args.message, args.namespace)
                return 0
            return 0 if cli.call(app, args.exchange, args.message, args.namespace, args.timeout) else 1
        finally:
            app.get_module('SiteAMQPModule').close()
    except (SiteException, AMQPError, ImportError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
