"""
Command Line Tests

This module tests the site command line tool and the echo worker:
- Listing the modules of an application
- Publishing jobs and calling jobs through an in-memory broker
- Echo worker replies
"""

import io
import json
import signal
import sys
from collections import deque
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

import pytest

# Add the project root to the path so we can import the site packages
sys.path.insert(0, str(Path(__file__).parent.parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import site_cli
from echo_worker import EchoWorker
from fake_broker import FakeBroker
from site_amqp import SiteAMQPModule
from site_application import SiteException

TEMP_DIR = Path(__file__).parent.parent / ".temp"


def write_config(name, text):
    TEMP_DIR.mkdir(exist_ok=True)
    path = TEMP_DIR / name
    path.write_text(text, encoding='utf-8')
    return path


def run_cli(argv, broker=None):
    """Run the command line tool, returning the exit code and output."""
    output = io.StringIO()
    with redirect_stdout(output):
        if broker is None:
            code = site_cli.main(argv)
        else:
            with mock.patch.object(SiteAMQPModule, 'connection_class', broker.connect):
                code = site_cli.main(argv)
    return code, output.getvalue()


def test_list_modules():
    """Test the modules command prints an application's modules in load order."""
    print("📋 TESTING MODULES COMMAND")
    print("-" * 50)

    code, output = run_cli(['modules', '--app', 'site_cli:CommandLineApplication'])

    assert code == 0
    lines = output.splitlines()
    config_line = next(i for i, line in enumerate(lines) if line.startswith('config'))
    amqp_line = next(i for i, line in enumerate(lines) if line.startswith('amqp'))
    assert config_line < amqp_line
    assert 'SiteConfigModule' in lines[amqp_line]
    print("✅ Modules listed in load order")


def test_bad_application_path():
    """Test malformed application paths are reported."""
    with pytest.raises(SiteException):
        site_cli.load_application_class('site_cli')
    with pytest.raises(SiteException):
        site_cli.load_application_class('site_cli:SiteCLI')

    code, output = run_cli(['modules', '--app', 'no_such_module:App'])
    assert code == 1
    assert output.startswith('Error:')
    print("✅ Bad application paths reported")


def test_publish_and_call():
    """Test jobs are published and called through the configured broker."""
    print("\n📡 TESTING PUBLISH AND CALL COMMANDS")
    print("-" * 50)

    path = write_config("cli_test.ini", (
        "[amqp]\n"
        "server = broker.test\n"
        "default_namespace = site\n"
    ))

    broker = FakeBroker()
    code, output = run_cli(['publish', 'mail', 'hello', '--config', str(path)], broker)
    assert code == 0
    assert broker.published[0]['exchange'] == 'site.mail'
    assert broker.connections[0].is_open is False
    print("✅ Job published")

    broker = FakeBroker()
    broker.responders['other.echo'] = lambda body: json.dumps({'status': 'success', 'body': 'pong'})
    code, output = run_cli(['call', 'echo', 'ping', '--namespace', 'other', '--config', str(path)], broker)
    assert code == 0
    assert output.strip() == 'pong'
    print("✅ Job called and response printed")

    broker = FakeBroker()
    broker.responders['site.echo'] = lambda body: json.dumps({'status': 'fail', 'body': 'bad input'})
    code, output = run_cli(['call', 'echo', 'ping', '--config', str(path)], broker)
    assert code == 1
    assert output.strip() == 'Job failed: bad input'
    print("✅ Job failure reported")


def test_echo_worker():
    """Test the echo worker replies with the job body."""
    broker = FakeBroker()
    broker.queues['caller'] = deque()
    broker.enqueue('echo', b'hello', {'reply_to': 'caller', 'correlation_id': 'c-1'})
    broker.enqueue('echo', b'\xff', {'reply_to': 'caller', 'correlation_id': 'c-2'})

    worker = EchoWorker('echo')
    worker.connection_class = broker.connect

    def stop_when_idle(seconds):
        worker._on_sigterm(signal.SIGTERM, None)

    previous = signal.getsignal(signal.SIGTERM)
    try:
        with mock.patch('site_amqp.worker_application.time.sleep', side_effect=stop_when_idle):
            with pytest.raises(SystemExit):
                worker.run(['broker.test'])
    finally:
        signal.signal(signal.SIGTERM, previous)

    replies = [json.loads(message.body) for message in broker.queues['caller']]
    assert replies == [
        {'status': 'success', 'body': 'hello'},
        {'status': 'fail', 'body': 'Job body is not valid UTF-8.'},
    ]
    assert worker.jobs_processed == 1
    print("✅ Echo worker replied to both jobs")


def main():
    """Run all command line tests."""
    print("🧪 COMMAND LINE TESTS")
    print("=" * 70)

    tests = [
        test_list_modules,
        test_bad_application_path,
        test_publish_and_call,
        test_echo_worker,
    ]
    for test in tests:
        test()

    print("\n🎉 ALL COMMAND LINE TESTS PASSED!")


if __name__ == "__main__":
    main()
