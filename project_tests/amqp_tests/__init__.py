"""
AMQP Testing Package

Tests for publishing, synchronous calls, workers and the command line,
run against the in-memory broker in fake_broker.py.
"""
