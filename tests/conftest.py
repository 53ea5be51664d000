"""Shared test fixtures for calclane."""

import pytest

from calclane.broker import JSONSerializer, Submitter
from calclane.channel import InMemoryChannel
from calclane.collector import ResultCollector
from calclane.result import InMemoryResultStore
from calclane.worker import TaskWorker


@pytest.fixture
def serializer() -> JSONSerializer:
    return JSONSerializer()


@pytest.fixture
def task_channel() -> InMemoryChannel:
    """Task channel with a short poll interval so long polls end quickly."""
    return InMemoryChannel(name="tasks", visibility_timeout=30.0, poll_interval=0.01)


@pytest.fixture
def result_channel() -> InMemoryChannel:
    return InMemoryChannel(name="results", visibility_timeout=30.0, poll_interval=0.01)


@pytest.fixture
def store() -> InMemoryResultStore:
    return InMemoryResultStore()


@pytest.fixture
def submitter(task_channel: InMemoryChannel) -> Submitter:
    return Submitter(task_channel=task_channel)


@pytest.fixture
def worker(task_channel: InMemoryChannel, result_channel: InMemoryChannel) -> TaskWorker:
    """Worker that never waits: receive returns at once, no pause between cycles."""
    return TaskWorker(
        task_channel=task_channel,
        result_channel=result_channel,
        wait_seconds=0,
        cycle_interval=0,
    )


@pytest.fixture
def collector(result_channel: InMemoryChannel, store: InMemoryResultStore) -> ResultCollector:
    return ResultCollector(
        result_channel=result_channel,
        store=store,
        wait_seconds=0,
        cycle_interval=0,
    )
